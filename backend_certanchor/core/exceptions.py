"""
Application-level exceptions.

InvalidInput, NotFound, AnchoringFailed and DuplicateCertificate reach the
caller. LedgerUnavailable and RateLimited are recovered inside the engine:
verification and address validation always return a structured result.
"""

from __future__ import annotations


class CertAnchorError(Exception):
    """Base for all engine errors. `code` is stable and safe to expose."""

    code = "certanchor_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(CertAnchorError):
    """Malformed address, network or request; detected locally."""

    code = "invalid_input"


class NotFound(CertAnchorError):
    """Certificate lookup miss."""

    code = "not_found"


class AnchoringFailed(CertAnchorError):
    """Ledger rejected or never confirmed the anchoring transaction; nothing persisted."""

    code = "anchoring_failed"

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class DuplicateCertificate(CertAnchorError):
    """Store rejected a certificate_id that already exists."""

    code = "duplicate_certificate"

    def __init__(self, certificate_id: str) -> None:
        super().__init__(f"Certificate with id {certificate_id} already exists")
        self.certificate_id = certificate_id


class LedgerUnavailable(CertAnchorError):
    """Timeout, connection failure, or unexpected response from the ledger."""

    code = "ledger_unavailable"


class RateLimited(CertAnchorError):
    """Existence check throttled by the process-wide token bucket."""

    code = "rate_limited"
