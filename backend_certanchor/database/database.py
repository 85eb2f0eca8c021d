"""
Store layer for certificates and verification records.

The engine only sees the abstract CertificateStore / VerificationStore
interfaces. The SQLAlchemy implementation works against SQLite (default) or
PostgreSQL via DATABASE_URL. Store calls are async; the synchronous session
work runs in a worker thread so the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, and_, create_engine, func, or_, select, true
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_certanchor.certanchor_logging import get_logger
from backend_certanchor.core.exceptions import DuplicateCertificate
from backend_certanchor.database.models import (
    Certificate,
    CertificateFilter,
    VerificationFilter,
    VerificationRecord,
)

logger = get_logger(__name__)

Base = declarative_base()


# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class CertificateRow(Base):
    __tablename__ = "certificates"

    id = Column(String(32), primary_key=True)
    certificate_id = Column(String(128), unique=True, nullable=False, index=True)
    title = Column(String(256), nullable=False)
    description = Column(String(2048), nullable=True)
    issuer_name = Column(String(256), nullable=False, index=True)
    recipient_email = Column(String(320), nullable=False)
    recipient_public_key = Column(String(64), nullable=True)
    blockchain_tx_hash = Column(String(64), nullable=True, index=True)
    issued_at = Column(DateTime(timezone=True), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    is_revoked = Column(Boolean, nullable=False, default=False, index=True)


class VerificationRow(Base):
    """Append-only audit trail: one row per verification attempt."""

    __tablename__ = "verifications"

    id = Column(String(32), primary_key=True)
    certificate_pk = Column(String(32), ForeignKey("certificates.id"), nullable=False, index=True)
    success = Column(Boolean, nullable=False, index=True)
    verified_at = Column(DateTime(timezone=True), nullable=False, index=True)


def _to_utc(value: datetime | None) -> datetime | None:
    """Normalize to aware UTC. SQLite hands back naive datetimes."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _certificate_from_row(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        certificate_id=row.certificate_id,
        title=row.title,
        description=row.description,
        issuer_name=row.issuer_name,
        recipient_email=row.recipient_email,
        recipient_public_key=row.recipient_public_key,
        blockchain_tx_hash=row.blockchain_tx_hash,
        issued_at=_to_utc(row.issued_at),
        expires_at=_to_utc(row.expires_at),
        is_revoked=bool(row.is_revoked),
    )


def _verification_from_row(row: VerificationRow) -> VerificationRecord:
    return VerificationRecord(
        id=row.id,
        certificate_pk=row.certificate_pk,
        success=bool(row.success),
        verified_at=_to_utc(row.verified_at),
    )


def _certificate_clause(flt: CertificateFilter) -> Any:
    """AND of the set fields of one filter; true() when nothing is set."""
    conds = []
    if flt.id is not None:
        conds.append(CertificateRow.id == flt.id)
    if flt.certificate_id is not None:
        conds.append(CertificateRow.certificate_id == flt.certificate_id)
    if flt.blockchain_tx_hash is not None:
        conds.append(CertificateRow.blockchain_tx_hash == flt.blockchain_tx_hash)
    if flt.issuer_name is not None:
        conds.append(CertificateRow.issuer_name == flt.issuer_name)
    if flt.is_revoked is not None:
        conds.append(CertificateRow.is_revoked == flt.is_revoked)
    if flt.issued_from is not None:
        conds.append(CertificateRow.issued_at >= _to_utc(flt.issued_from))
    if flt.issued_to is not None:
        conds.append(CertificateRow.issued_at <= _to_utc(flt.issued_to))
    if flt.expires_before is not None:
        conds.append(CertificateRow.expires_at.is_not(None))
        conds.append(CertificateRow.expires_at < _to_utc(flt.expires_before))
    return and_(true(), *conds)


def _verification_clause(flt: VerificationFilter) -> Any:
    conds = []
    if flt.certificate_pk is not None:
        conds.append(VerificationRow.certificate_pk == flt.certificate_pk)
    if flt.success is not None:
        conds.append(VerificationRow.success == flt.success)
    if flt.verified_since is not None:
        conds.append(VerificationRow.verified_at >= _to_utc(flt.verified_since))
    return and_(true(), *conds)


# -----------------------------------------------------------------------------
# Abstract stores: the engine depends on these only.
# -----------------------------------------------------------------------------


class CertificateStore(ABC):
    """Persistence for certificates. create() is atomic and uniqueness-enforcing."""

    @abstractmethod
    async def create(self, certificate: Certificate) -> Certificate:
        """Insert a certificate. Raises DuplicateCertificate on certificate_id conflict."""
        ...

    @abstractmethod
    async def find_one(self, *filters: CertificateFilter) -> Certificate | None:
        """Return the first certificate matching any of the filters, or None."""
        ...

    @abstractmethod
    async def find_all(
        self,
        flt: CertificateFilter | None = None,
        *,
        newest_first: bool = True,
    ) -> list[Certificate]:
        """Return certificates ordered by issued_at."""
        ...

    @abstractmethod
    async def count(self, flt: CertificateFilter | None = None) -> int:
        ...

    @abstractmethod
    async def top_issuers(self, flt: CertificateFilter | None = None, *, limit: int = 5) -> list[tuple[str, int]]:
        """Return (issuer_name, certificate_count) pairs, largest first."""
        ...


class VerificationStore(ABC):
    """Append-only persistence for verification attempts."""

    @abstractmethod
    async def create(self, record: VerificationRecord) -> VerificationRecord:
        ...

    @abstractmethod
    async def count(self, flt: VerificationFilter | None = None) -> int:
        ...

    @abstractmethod
    async def list_for_certificate(self, certificate_pk: str) -> list[VerificationRecord]:
        """Return all attempts for a certificate, oldest first."""
        ...


# -----------------------------------------------------------------------------
# SQLAlchemy implementation
# -----------------------------------------------------------------------------


class Database:
    """Engine and session factory shared by both SQLAlchemy stores."""

    def __init__(self, url: str) -> None:
        self.url = url
        connect_args: dict[str, Any] = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self._engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self._engine
        )
        logger.info("certanchor_db_engine", url=url.split("?")[0].split("//")[-1])

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        Base.metadata.create_all(self._engine)

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class SQLAlchemyCertificateStore(CertificateStore):
    def __init__(self, db: Database) -> None:
        self._db = db

    async def create(self, certificate: Certificate) -> Certificate:
        return await asyncio.to_thread(self._create, certificate)

    async def find_one(self, *filters: CertificateFilter) -> Certificate | None:
        if not filters:
            raise ValueError("find_one needs at least one filter")
        return await asyncio.to_thread(self._find_one, filters)

    async def find_all(
        self,
        flt: CertificateFilter | None = None,
        *,
        newest_first: bool = True,
    ) -> list[Certificate]:
        return await asyncio.to_thread(self._find_all, flt or CertificateFilter(), newest_first)

    async def count(self, flt: CertificateFilter | None = None) -> int:
        return await asyncio.to_thread(self._count, flt or CertificateFilter())

    async def top_issuers(self, flt: CertificateFilter | None = None, *, limit: int = 5) -> list[tuple[str, int]]:
        return await asyncio.to_thread(self._top_issuers, flt or CertificateFilter(), limit)

    def _create(self, certificate: Certificate) -> Certificate:
        row = CertificateRow(
            id=certificate.id,
            certificate_id=certificate.certificate_id,
            title=certificate.title,
            description=certificate.description,
            issuer_name=certificate.issuer_name,
            recipient_email=certificate.recipient_email,
            recipient_public_key=certificate.recipient_public_key,
            blockchain_tx_hash=certificate.blockchain_tx_hash,
            issued_at=_to_utc(certificate.issued_at),
            expires_at=_to_utc(certificate.expires_at),
            is_revoked=certificate.is_revoked,
        )
        try:
            with self._db.session_scope() as session:
                session.add(row)
        except IntegrityError as e:
            # Only a clash on certificate_id is a duplicate; other constraint failures propagate.
            if not self._certificate_id_taken(certificate.certificate_id):
                raise
            logger.warning(
                "certificate_store_conflict",
                certificate_id=certificate.certificate_id,
                error=str(e.orig),
            )
            raise DuplicateCertificate(certificate.certificate_id) from e
        return _certificate_from_row(row)

    def _certificate_id_taken(self, certificate_id: str) -> bool:
        stmt = select(CertificateRow.id).where(CertificateRow.certificate_id == certificate_id).limit(1)
        with self._db.session_scope() as session:
            return session.execute(stmt).first() is not None

    def _find_one(self, filters: tuple[CertificateFilter, ...]) -> Certificate | None:
        stmt = (
            select(CertificateRow)
            .where(or_(*(_certificate_clause(f) for f in filters)))
            .limit(1)
        )
        with self._db.session_scope() as session:
            row = session.execute(stmt).scalars().first()
            return _certificate_from_row(row) if row is not None else None

    def _find_all(self, flt: CertificateFilter, newest_first: bool) -> list[Certificate]:
        order = CertificateRow.issued_at.desc() if newest_first else CertificateRow.issued_at.asc()
        stmt = select(CertificateRow).where(_certificate_clause(flt)).order_by(order)
        with self._db.session_scope() as session:
            return [_certificate_from_row(r) for r in session.execute(stmt).scalars().all()]

    def _count(self, flt: CertificateFilter) -> int:
        stmt = select(func.count()).select_from(CertificateRow).where(_certificate_clause(flt))
        with self._db.session_scope() as session:
            return int(session.execute(stmt).scalar_one())

    def _top_issuers(self, flt: CertificateFilter, limit: int) -> list[tuple[str, int]]:
        n = func.count(CertificateRow.id).label("n")
        stmt = (
            select(CertificateRow.issuer_name, n)
            .where(_certificate_clause(flt))
            .group_by(CertificateRow.issuer_name)
            .order_by(n.desc(), CertificateRow.issuer_name.asc())
            .limit(limit)
        )
        with self._db.session_scope() as session:
            return [(name, int(count)) for name, count in session.execute(stmt).all()]


class SQLAlchemyVerificationStore(VerificationStore):
    def __init__(self, db: Database) -> None:
        self._db = db

    async def create(self, record: VerificationRecord) -> VerificationRecord:
        return await asyncio.to_thread(self._create, record)

    async def count(self, flt: VerificationFilter | None = None) -> int:
        return await asyncio.to_thread(self._count, flt or VerificationFilter())

    async def list_for_certificate(self, certificate_pk: str) -> list[VerificationRecord]:
        return await asyncio.to_thread(self._list_for_certificate, certificate_pk)

    def _create(self, record: VerificationRecord) -> VerificationRecord:
        row = VerificationRow(
            id=record.id,
            certificate_pk=record.certificate_pk,
            success=record.success,
            verified_at=_to_utc(record.verified_at),
        )
        with self._db.session_scope() as session:
            session.add(row)
        return _verification_from_row(row)

    def _count(self, flt: VerificationFilter) -> int:
        stmt = select(func.count()).select_from(VerificationRow).where(_verification_clause(flt))
        with self._db.session_scope() as session:
            return int(session.execute(stmt).scalar_one())

    def _list_for_certificate(self, certificate_pk: str) -> list[VerificationRecord]:
        stmt = (
            select(VerificationRow)
            .where(VerificationRow.certificate_pk == certificate_pk)
            .order_by(VerificationRow.verified_at.asc())
        )
        with self._db.session_scope() as session:
            return [_verification_from_row(r) for r in session.execute(stmt).scalars().all()]


def get_database(url: str) -> Database:
    """Return a Database for the given SQLAlchemy URL with schema ensured."""
    db = Database(url)
    db.ensure_schema()
    return db
