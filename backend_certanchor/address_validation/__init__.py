"""
Address validation: Stellar account id rules, TTL cache, rate limiting.

Used standalone (validate-address requests) and by the anchoring service to
check a caller-supplied recipient before any ledger call.
"""

from backend_certanchor.address_validation.cache import TTLCache
from backend_certanchor.address_validation.rate_limiter import TokenBucketRateLimiter
from backend_certanchor.address_validation.service import (
    AddressValidationResult,
    AddressValidationService,
    BulkValidationResult,
)
from backend_certanchor.address_validation.strkey import classify

__all__ = [
    "AddressValidationResult",
    "AddressValidationService",
    "BulkValidationResult",
    "TTLCache",
    "TokenBucketRateLimiter",
    "classify",
]
