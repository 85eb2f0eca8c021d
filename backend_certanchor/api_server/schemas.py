"""
Request models for the HTTP surface.

These are the explicit shape checks run before the engine is invoked; the
engine does not re-validate what they guarantee.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from backend_certanchor.address_validation.service import MAX_BULK_ADDRESSES
from backend_certanchor.anchoring.service import IssueCertificateRequest

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
NetworkName = Literal["public", "test"]


def as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes from clients are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class IssueCertificateBody(BaseModel):
    """POST /certificates body."""

    certificate_id: str = Field(..., min_length=1, max_length=128, description="Unique certificate ID")
    title: str = Field(..., min_length=1, max_length=256, description="Title of the certificate")
    description: str | None = Field(None, max_length=2048)
    issuer_name: str = Field(..., min_length=1, max_length=256)
    recipient_email: str = Field(..., pattern=EMAIL_PATTERN, max_length=320)
    recipient_public_key: str | None = Field(
        None, min_length=1, max_length=64, description="Stellar public key of the recipient"
    )
    expires_at: datetime | None = Field(None, description="Expiration date (ISO 8601)")

    @field_validator("certificate_id", "title", "issuer_name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must be non-empty")
        return v

    def to_request(self) -> IssueCertificateRequest:
        return IssueCertificateRequest(
            certificate_id=self.certificate_id,
            title=self.title,
            description=self.description,
            issuer_name=self.issuer_name,
            recipient_email=self.recipient_email,
            recipient_public_key=(self.recipient_public_key or "").strip() or None,
            expires_at=as_utc(self.expires_at),
        )


class ValidateAddressBody(BaseModel):
    """POST /stellar/validate-address body."""

    address: str = Field(..., max_length=256)
    network: NetworkName = "public"
    check_exists: bool = False


class ValidateAddressesBody(BaseModel):
    """POST /stellar/validate-addresses body."""

    addresses: list[str] = Field(..., min_length=1, max_length=MAX_BULK_ADDRESSES)
    network: NetworkName = "public"
    check_exists: bool = False
