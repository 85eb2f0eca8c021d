"""
Address validation service: local StrKey rules, optional existence check,
TTL cache, and token-bucket limiting of outbound existence calls.

Existence checks are best-effort. A throttled or failed check leaves
account_exists unknown (None) with an explanatory error and never changes
is_valid, which is decided by format, checksum and network alone. Only
definitive results are cached. Concurrent checks of the same address and
network share one lookup, so a duplicate never spends a rate-limit token.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field, replace
from typing import Any

from backend_certanchor.address_validation.cache import TTLCache
from backend_certanchor.address_validation.rate_limiter import TokenBucketRateLimiter
from backend_certanchor.address_validation.strkey import classify
from backend_certanchor.certanchor_logging import get_logger
from backend_certanchor.certanchor_logging.logger import short_address
from backend_certanchor.config.env import KNOWN_NETWORKS, normalize_network
from backend_certanchor.core.exceptions import InvalidInput, LedgerUnavailable, RateLimited
from backend_certanchor.ledger.gateway import AccountLookup, LedgerGateway

logger = get_logger(__name__)

MAX_BULK_ADDRESSES = 100
ERROR_RATE_LIMITED = "Account existence check rate limited"

CacheKey = tuple[str, str, bool]


@dataclass(frozen=True)
class AddressValidationResult:
    address: str
    network: str
    is_format_valid: bool
    is_checksum_valid: bool
    is_network_valid: bool
    is_valid: bool
    account_exists: bool | None = None
    account_details: dict[str, Any] | None = field(default=None, compare=False)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BulkValidationResult:
    total: int
    valid: int
    invalid: int
    results: list[AddressValidationResult]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "valid": self.valid,
            "invalid": self.invalid,
            "results": [r.to_dict() for r in self.results],
        }


def resolve_network(network: str) -> str:
    resolved = normalize_network(network)
    if resolved is None:
        raise InvalidInput(f"network must be one of {', '.join(KNOWN_NETWORKS)}, got {network!r}")
    return resolved


class AddressValidationService:
    def __init__(
        self,
        gateway: LedgerGateway,
        cache: TTLCache[CacheKey, AddressValidationResult],
        rate_limiter: TokenBucketRateLimiter,
        *,
        ledger_timeout_sec: float,
    ) -> None:
        self._gateway = gateway
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._ledger_timeout_sec = ledger_timeout_sec
        # Existence lookups in flight, per cache key. Event-loop confined.
        self._inflight: dict[CacheKey, asyncio.Future[AddressValidationResult]] = {}

    async def validate(
        self,
        address: str,
        network: str,
        check_exists: bool = False,
    ) -> AddressValidationResult:
        if not isinstance(address, str):
            raise InvalidInput("address must be a string")
        network = resolve_network(network)
        key: CacheKey = (address, network, bool(check_exists))

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("address_validation_cache_hit", address=short_address(address), network=network)
            return cached

        c = classify(address, network)
        result = AddressValidationResult(
            address=address,
            network=network,
            is_format_valid=c.is_format_valid,
            is_checksum_valid=c.is_checksum_valid,
            is_network_valid=c.is_network_valid,
            is_valid=c.is_valid,
            error=c.error,
        )

        if check_exists and result.is_valid:
            pending = self._inflight.get(key)
            if pending is not None:
                # Same key already being looked up; share its answer.
                logger.debug("address_exists_check_joined", address=short_address(address), network=network)
                return await asyncio.shield(pending)
            return await self._check_exists(key, result)

        self._cache.set(key, result)
        logger.debug(
            "address_validated",
            address=short_address(address),
            network=network,
            is_valid=result.is_valid,
            account_exists=result.account_exists,
        )
        return result

    async def _check_exists(self, key: CacheKey, local: AddressValidationResult) -> AddressValidationResult:
        """Run the existence lookup for key, publishing the outcome to concurrent callers."""
        future: asyncio.Future[AddressValidationResult] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await self._existence_result(key, local)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            future.exception()  # retrieved here when nobody joined
            raise
        else:
            future.set_result(result)
            return result
        finally:
            del self._inflight[key]

    async def _existence_result(self, key: CacheKey, local: AddressValidationResult) -> AddressValidationResult:
        address, network = local.address, local.network
        try:
            lookup = await self._lookup_account(address, network)
        except RateLimited as e:
            logger.info("address_exists_rate_limited", address=short_address(address), network=network)
            return replace(local, error=e.message)
        except LedgerUnavailable as e:
            logger.warning(
                "address_exists_check_failed",
                address=short_address(address),
                network=network,
                error=e.message,
            )
            return replace(local, error=f"Account existence check failed: {e.message}")

        result = replace(local, account_exists=lookup.exists, account_details=lookup.details)
        self._cache.set(key, result)
        logger.debug(
            "address_validated",
            address=short_address(address),
            network=network,
            is_valid=result.is_valid,
            account_exists=result.account_exists,
        )
        return result

    async def validate_and_check_exists(self, address: str, network: str) -> AddressValidationResult:
        return await self.validate(address, network, check_exists=True)

    async def validate_bulk(
        self,
        addresses: list[str],
        network: str,
        check_exists: bool = False,
    ) -> BulkValidationResult:
        if not addresses:
            raise InvalidInput("addresses must be non-empty")
        if len(addresses) > MAX_BULK_ADDRESSES:
            raise InvalidInput(f"at most {MAX_BULK_ADDRESSES} addresses per request")
        network = resolve_network(network)
        results = await asyncio.gather(*(self.validate(a, network, check_exists) for a in addresses))
        valid = sum(1 for r in results if r.is_valid)
        logger.info("address_bulk_validated", total=len(results), valid=valid, network=network)
        return BulkValidationResult(
            total=len(results),
            valid=valid,
            invalid=len(results) - valid,
            results=list(results),
        )

    async def _lookup_account(self, address: str, network: str) -> AccountLookup:
        if not self._rate_limiter.try_acquire():
            raise RateLimited(ERROR_RATE_LIMITED)
        try:
            return await asyncio.wait_for(
                self._gateway.account_exists(address, network),
                timeout=self._ledger_timeout_sec,
            )
        except asyncio.TimeoutError as e:
            raise LedgerUnavailable("Account existence check timed out") from e

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("address_validation_cache_cleared")

    def get_cache_stats(self) -> dict[str, Any]:
        return self._cache.stats()
