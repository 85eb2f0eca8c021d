"""
Domain models for persisted entities and store filters.

Certificates and their append-only verification records. Used by the store
layer and the engine; no ORM coupling so store backends stay swappable.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Certificate:
    """Issued certificate. blockchain_tx_hash is set once, at issuance."""

    certificate_id: str
    """External id chosen by the issuer; unique across the store."""
    title: str
    issuer_name: str
    recipient_email: str
    blockchain_tx_hash: str | None
    issued_at: datetime
    description: str | None = None
    recipient_public_key: str | None = None
    """Ledger account the anchoring transaction was sent to."""
    expires_at: datetime | None = None
    is_revoked: bool = False
    id: str = field(default_factory=new_id)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Read-time predicate; expiry is never stored as a state."""
        if self.expires_at is None:
            return False
        return self.expires_at < (now or utcnow())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class VerificationRecord:
    """One verification attempt. Append-only; never updated or deleted."""

    certificate_pk: str
    """Internal id of the owning Certificate."""
    success: bool
    verified_at: datetime
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CertificateFilter:
    """AND of all set fields. None means "don't filter on this"."""

    certificate_id: str | None = None
    blockchain_tx_hash: str | None = None
    id: str | None = None
    issuer_name: str | None = None
    is_revoked: bool | None = None
    issued_from: datetime | None = None
    issued_to: datetime | None = None
    expires_before: datetime | None = None


@dataclass(frozen=True)
class VerificationFilter:
    certificate_pk: str | None = None
    success: bool | None = None
    verified_since: datetime | None = None
