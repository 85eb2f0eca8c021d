"""
Certificate anchoring service: issue and verify certificates against the ledger.

issue: resolve destination -> derive memo -> submit ledger transaction ->
persist the certificate only after the ledger reported success.
verify: look up by certificate id or tx hash -> re-check the ledger
transaction -> append a verification record -> return a definitive answer.

Ledger write happens before the store write and no transaction spans the two;
a crash in between leaves an orphaned ledger transaction with no local record.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, Awaitable, Callable, TypeVar

from backend_certanchor.address_validation.service import AddressValidationService
from backend_certanchor.anchoring.memo import build_memo, memo_matches
from backend_certanchor.certanchor_logging import get_logger
from backend_certanchor.certanchor_logging.logger import bind_certificate, short_address
from backend_certanchor.core.exceptions import (
    AnchoringFailed,
    DuplicateCertificate,
    InvalidInput,
    LedgerUnavailable,
    NotFound,
)
from backend_certanchor.database.database import CertificateStore, VerificationStore
from backend_certanchor.database.models import (
    Certificate,
    CertificateFilter,
    VerificationRecord,
    utcnow,
)
from backend_certanchor.ledger.gateway import LedgerGateway

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class IssueCertificateRequest:
    certificate_id: str
    title: str
    issuer_name: str
    recipient_email: str
    description: str | None = None
    recipient_public_key: str | None = None
    """Destination account; a fresh account is created when omitted."""
    expires_at: datetime | None = None


@dataclass(frozen=True)
class VerificationResult:
    certificate: Certificate
    is_valid: bool
    blockchain_valid: bool
    is_expired: bool
    verified_at: datetime

    def to_dict(self) -> dict[str, Any]:
        out = self.certificate.to_dict()
        out.update(
            is_valid=self.is_valid,
            blockchain_valid=self.blockchain_valid,
            is_expired=self.is_expired,
            verified_at=self.verified_at,
        )
        return out


class CertificateAnchoringService:
    def __init__(
        self,
        certificates: CertificateStore,
        verifications: VerificationStore,
        gateway: LedgerGateway,
        address_validation: AddressValidationService,
        *,
        network: str,
        ledger_timeout_sec: float,
        expiry_blocks_verification: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._certificates = certificates
        self._verifications = verifications
        self._gateway = gateway
        self._address_validation = address_validation
        self._network = network
        self._ledger_timeout_sec = ledger_timeout_sec
        self._expiry_blocks_verification = expiry_blocks_verification
        self._clock = clock
        self._last_verified_at: datetime | None = None
        self._verified_at_lock = Lock()

    async def _ledger_call(self, call: Awaitable[T], op: str) -> T:
        """Bound a gateway call; a timeout becomes LedgerUnavailable."""
        try:
            return await asyncio.wait_for(call, timeout=self._ledger_timeout_sec)
        except asyncio.TimeoutError as e:
            logger.warning("ledger_call_timeout", op=op, timeout_sec=self._ledger_timeout_sec)
            raise LedgerUnavailable(f"{op} timed out after {self._ledger_timeout_sec}s") from e

    def _next_verified_at(self) -> datetime:
        # verified_at never goes backwards within the process, even if the wall clock does.
        with self._verified_at_lock:
            now = self._clock()
            if self._last_verified_at is not None and now < self._last_verified_at:
                now = self._last_verified_at
            self._last_verified_at = now
            return now

    # --- issue ---

    async def _resolve_destination(self, request: IssueCertificateRequest) -> str:
        if request.recipient_public_key:
            check = await self._address_validation.validate(
                request.recipient_public_key, self._network, check_exists=False
            )
            if not check.is_valid:
                raise InvalidInput(f"Invalid recipient public key: {check.error}")
            return request.recipient_public_key
        try:
            account = await self._ledger_call(self._gateway.create_account(), "create_account")
        except LedgerUnavailable as e:
            raise AnchoringFailed(f"Could not create recipient account: {e.message}", reason=e.message) from e
        return account.public_key

    async def issue(self, request: IssueCertificateRequest) -> Certificate:
        log = bind_certificate(request.certificate_id)
        destination = await self._resolve_destination(request)
        memo = build_memo(request.certificate_id)

        try:
            result = await self._ledger_call(
                self._gateway.submit_transaction(destination, memo), "submit_transaction"
            )
        except LedgerUnavailable as e:
            log.warning("certificate_anchoring_failed", reason=e.message)
            raise AnchoringFailed(f"Stellar transaction failed: {e.message}", reason=e.message) from e

        if not result.successful or not result.hash:
            reason = result.error or "transaction was not successful"
            log.warning("certificate_anchoring_failed", reason=reason)
            raise AnchoringFailed(f"Stellar transaction failed: {reason}", reason=reason)

        certificate = Certificate(
            certificate_id=request.certificate_id,
            title=request.title,
            description=request.description,
            issuer_name=request.issuer_name,
            recipient_email=request.recipient_email,
            recipient_public_key=destination,
            blockchain_tx_hash=result.hash,
            issued_at=self._clock(),
            expires_at=request.expires_at,
            is_revoked=False,
        )
        try:
            saved = await self._certificates.create(certificate)
        except DuplicateCertificate:
            log.warning("certificate_duplicate_orphaned_tx", tx_hash=result.hash)
            raise
        log.info("certificate_issued", tx_hash=result.hash, destination=short_address(destination))
        return saved

    # --- verify ---

    async def _find_by_serial(self, serial: str) -> Certificate:
        serial = (serial or "").strip()
        if not serial:
            raise InvalidInput("serial must be non-empty")
        certificate = await self._certificates.find_one(
            CertificateFilter(certificate_id=serial),
            CertificateFilter(blockchain_tx_hash=serial),
        )
        if certificate is None:
            raise NotFound(f"Certificate with serial {serial} not found")
        return certificate

    async def _check_anchor(self, certificate: Certificate) -> bool:
        """Ledger-side validity. No hash means no ledger claim to falsify."""
        tx_hash = certificate.blockchain_tx_hash
        if not tx_hash:
            return True
        try:
            lookup = await self._ledger_call(self._gateway.get_transaction(tx_hash), "get_transaction")
        except LedgerUnavailable as e:
            logger.warning(
                "certificate_anchor_check_failed",
                certificate_id=certificate.certificate_id,
                tx_hash=tx_hash,
                error=e.message,
            )
            return False
        if not lookup.successful:
            logger.info(
                "certificate_anchor_invalid",
                certificate_id=certificate.certificate_id,
                tx_hash=tx_hash,
                found=lookup.found,
            )
            return False
        if not memo_matches(lookup.memo, certificate.certificate_id):
            logger.warning("certificate_memo_mismatch", certificate_id=certificate.certificate_id, tx_hash=tx_hash)
            return False
        return True

    async def verify(self, serial: str) -> VerificationResult:
        certificate = await self._find_by_serial(serial)
        blockchain_valid = await self._check_anchor(certificate)

        verified_at = self._next_verified_at()
        is_expired = certificate.is_expired(verified_at)
        is_valid = blockchain_valid and not certificate.is_revoked
        if self._expiry_blocks_verification and is_expired:
            is_valid = False

        await self._verifications.create(
            VerificationRecord(certificate_pk=certificate.id, success=is_valid, verified_at=verified_at)
        )
        logger.info(
            "certificate_verified",
            certificate_id=certificate.certificate_id,
            is_valid=is_valid,
            blockchain_valid=blockchain_valid,
            is_revoked=certificate.is_revoked,
            is_expired=is_expired,
        )
        return VerificationResult(
            certificate=certificate,
            is_valid=is_valid,
            blockchain_valid=blockchain_valid,
            is_expired=is_expired,
            verified_at=verified_at,
        )

    # --- reads ---

    async def find_all(self) -> list[Certificate]:
        return await self._certificates.find_all(newest_first=True)

    async def find_one(self, certificate_pk: str) -> Certificate:
        certificate = await self._certificates.find_one(CertificateFilter(id=certificate_pk))
        if certificate is None:
            raise NotFound(f"Certificate with ID {certificate_pk} not found")
        return certificate

    async def get_verification_history(self, serial: str) -> list[VerificationRecord]:
        certificate = await self._find_by_serial(serial)
        return await self._verifications.list_for_certificate(certificate.id)
