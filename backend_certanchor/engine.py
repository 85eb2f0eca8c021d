"""
Engine facade: the operations thin controllers call.

issue / verify / validate_address / validate_bulk / get_statistics /
clear_cache / get_cache_stats, plus certificate reads. Collaborators are
passed in explicitly; build_engine() wires the production ones from settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from backend_certanchor.address_validation.cache import TTLCache
from backend_certanchor.address_validation.rate_limiter import TokenBucketRateLimiter
from backend_certanchor.address_validation.service import (
    AddressValidationResult,
    AddressValidationService,
    BulkValidationResult,
)
from backend_certanchor.analytics.stats import StatsAggregator, StatsQuery, StatsSnapshot
from backend_certanchor.anchoring.service import (
    CertificateAnchoringService,
    IssueCertificateRequest,
    VerificationResult,
)
from backend_certanchor.certanchor_logging import get_logger
from backend_certanchor.config.settings import EngineSettings, get_settings
from backend_certanchor.database.database import (
    CertificateStore,
    Database,
    SQLAlchemyCertificateStore,
    SQLAlchemyVerificationStore,
    VerificationStore,
    get_database,
)
from backend_certanchor.database.models import Certificate, VerificationRecord
from backend_certanchor.ledger.gateway import LedgerGateway
from backend_certanchor.ledger.horizon import HorizonGateway

logger = get_logger(__name__)


@dataclass
class CertAnchorEngine:
    settings: EngineSettings
    gateway: LedgerGateway
    address_validation: AddressValidationService
    anchoring: CertificateAnchoringService
    stats: StatsAggregator
    database: Database | None = None

    async def issue(self, request: IssueCertificateRequest) -> Certificate:
        return await self.anchoring.issue(request)

    async def verify(self, serial: str) -> VerificationResult:
        return await self.anchoring.verify(serial)

    async def validate_address(
        self, address: str, network: str, check_exists: bool = False
    ) -> AddressValidationResult:
        return await self.address_validation.validate(address, network, check_exists)

    async def validate_bulk(
        self, addresses: list[str], network: str, check_exists: bool = False
    ) -> BulkValidationResult:
        return await self.address_validation.validate_bulk(addresses, network, check_exists)

    async def get_statistics(self, query: StatsQuery | None = None) -> StatsSnapshot:
        return await self.stats.get_statistics(query)

    def clear_cache(self) -> None:
        self.address_validation.clear_cache()

    def get_cache_stats(self) -> dict[str, Any]:
        return self.address_validation.get_cache_stats()

    async def find_all(self) -> list[Certificate]:
        return await self.anchoring.find_all()

    async def find_one(self, certificate_pk: str) -> Certificate:
        return await self.anchoring.find_one(certificate_pk)

    async def get_verification_history(self, serial: str) -> list[VerificationRecord]:
        return await self.anchoring.get_verification_history(serial)

    async def aclose(self) -> None:
        await self.gateway.aclose()
        if self.database is not None:
            self.database.dispose()


def assemble_engine(
    settings: EngineSettings,
    gateway: LedgerGateway,
    certificates: CertificateStore,
    verifications: VerificationStore,
    *,
    database: Database | None = None,
) -> CertAnchorEngine:
    """Wire services around the given collaborators."""
    validation_cache: TTLCache[tuple[str, str, bool], AddressValidationResult] = TTLCache(
        ttl_ms=settings.cache_ttl_ms, max_size=settings.cache_max_size
    )
    rate_limiter = TokenBucketRateLimiter(settings.rate_limit_rps, settings.rate_limit_burst)
    address_validation = AddressValidationService(
        gateway,
        validation_cache,
        rate_limiter,
        ledger_timeout_sec=settings.ledger_timeout_sec,
    )
    anchoring = CertificateAnchoringService(
        certificates,
        verifications,
        gateway,
        address_validation,
        network=settings.stellar_network,
        ledger_timeout_sec=settings.ledger_timeout_sec,
        expiry_blocks_verification=settings.expiry_blocks_verification,
    )
    stats_cache: TTLCache[str, StatsSnapshot] = TTLCache(
        ttl_ms=int(settings.stats_cache_ttl_sec * 1000), max_size=256
    )
    stats = StatsAggregator(certificates, verifications, stats_cache)
    return CertAnchorEngine(
        settings=settings,
        gateway=gateway,
        address_validation=address_validation,
        anchoring=anchoring,
        stats=stats,
        database=database,
    )


def build_engine(settings: EngineSettings | None = None) -> CertAnchorEngine:
    """Production wiring: SQLAlchemy stores + Horizon gateway, from env when settings omitted."""
    cfg = settings or get_settings()
    db = get_database(cfg.database_url)
    engine = assemble_engine(
        cfg,
        HorizonGateway(cfg),
        SQLAlchemyCertificateStore(db),
        SQLAlchemyVerificationStore(db),
        database=db,
    )
    logger.info(
        "certanchor_engine_ready",
        network=cfg.stellar_network,
        horizon_url=cfg.horizon_url,
        cache_ttl_ms=cfg.cache_ttl_ms,
        cache_max_size=cfg.cache_max_size,
    )
    return engine
