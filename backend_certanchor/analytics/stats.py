"""
Statistics aggregator: certificate counts, issuance trend, verification rates.

A cache miss fans out all sub-queries concurrently and caches the combined
snapshot only once every sub-query resolved. Expired is computed at query
time (expires_at < now), never stored. The cache key covers the full query.
"""

from __future__ import annotations

import asyncio
import json
from collections import Counter
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable

from backend_certanchor.address_validation.cache import TTLCache
from backend_certanchor.certanchor_logging import get_logger
from backend_certanchor.core.exceptions import InvalidInput
from backend_certanchor.database.database import CertificateStore, VerificationStore
from backend_certanchor.database.models import CertificateFilter, VerificationFilter, utcnow

logger = get_logger(__name__)

CACHE_KEY_PREFIX = "cert-stats:"
TREND_WINDOW_DAYS = 30
WEEKLY_WINDOW_DAYS = 7
TOP_ISSUERS_LIMIT = 5


@dataclass(frozen=True)
class StatsQuery:
    start_date: datetime | None = None
    end_date: datetime | None = None
    issuer_name: str | None = None

    def cache_key(self) -> str:
        payload = {
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "issuer_name": self.issuer_name,
        }
        return CACHE_KEY_PREFIX + json.dumps(payload, sort_keys=True)


@dataclass(frozen=True)
class IssuanceTrendPoint:
    date: str
    count: int


@dataclass(frozen=True)
class TopIssuer:
    issuer_name: str
    certificate_count: int


@dataclass(frozen=True)
class VerificationStats:
    total_verifications: int = 0
    successful_verifications: int = 0
    failed_verifications: int = 0
    daily_verifications: int = 0
    weekly_verifications: int = 0


@dataclass(frozen=True)
class StatsSnapshot:
    total_certificates: int = 0
    active_certificates: int = 0
    revoked_certificates: int = 0
    expired_certificates: int = 0
    issuance_trend: list[IssuanceTrendPoint] = field(default_factory=list)
    top_issuers: list[TopIssuer] = field(default_factory=list)
    verification_stats: VerificationStats = field(default_factory=VerificationStats)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class StatsAggregator:
    def __init__(
        self,
        certificates: CertificateStore,
        verifications: VerificationStore,
        cache: TTLCache[str, StatsSnapshot],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._certificates = certificates
        self._verifications = verifications
        self._cache = cache
        self._clock = clock

    async def get_statistics(self, query: StatsQuery | None = None) -> StatsSnapshot:
        query = query or StatsQuery()
        if query.start_date and query.end_date and query.start_date > query.end_date:
            raise InvalidInput("start_date must not be after end_date")

        key = query.cache_key()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        now = self._clock()
        base = self._base_filter(query)
        totals, trend, top, verification = await asyncio.gather(
            self._total_stats(base, now),
            self._issuance_trend(query, now),
            self._top_issuers(base),
            self._verification_stats(now),
        )
        total, active, revoked, expired = totals
        snapshot = StatsSnapshot(
            total_certificates=total,
            active_certificates=active,
            revoked_certificates=revoked,
            expired_certificates=expired,
            issuance_trend=trend,
            top_issuers=top,
            verification_stats=verification,
        )
        self._cache.set(key, snapshot)
        logger.info("certificate_stats_computed", total=total, verifications=verification.total_verifications)
        return snapshot

    @staticmethod
    def _base_filter(query: StatsQuery) -> CertificateFilter:
        # Date range applies only when both bounds are given.
        if query.start_date and query.end_date:
            return CertificateFilter(
                issuer_name=query.issuer_name,
                issued_from=query.start_date,
                issued_to=query.end_date,
            )
        return CertificateFilter(issuer_name=query.issuer_name)

    async def _total_stats(self, base: CertificateFilter, now: datetime) -> tuple[int, int, int, int]:
        total, active, revoked, expired = await asyncio.gather(
            self._certificates.count(base),
            self._certificates.count(replace(base, is_revoked=False)),
            self._certificates.count(replace(base, is_revoked=True)),
            self._certificates.count(replace(base, expires_before=now)),
        )
        return total, active, revoked, expired

    async def _issuance_trend(self, query: StatsQuery, now: datetime) -> list[IssuanceTrendPoint]:
        since = now - timedelta(days=TREND_WINDOW_DAYS)
        certificates = await self._certificates.find_all(
            CertificateFilter(issuer_name=query.issuer_name, issued_from=since),
            newest_first=False,
        )
        buckets = Counter(c.issued_at.date().isoformat() for c in certificates)
        return [IssuanceTrendPoint(date=d, count=n) for d, n in sorted(buckets.items())]

    async def _top_issuers(self, base: CertificateFilter) -> list[TopIssuer]:
        rows = await self._certificates.top_issuers(base, limit=TOP_ISSUERS_LIMIT)
        return [TopIssuer(issuer_name=name, certificate_count=n) for name, n in rows]

    async def _verification_stats(self, now: datetime) -> VerificationStats:
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        last_week = now - timedelta(days=WEEKLY_WINDOW_DAYS)
        total, successful, failed, daily, weekly = await asyncio.gather(
            self._verifications.count(),
            self._verifications.count(VerificationFilter(success=True)),
            self._verifications.count(VerificationFilter(success=False)),
            self._verifications.count(VerificationFilter(verified_since=start_of_day)),
            self._verifications.count(VerificationFilter(verified_since=last_week)),
        )
        return VerificationStats(
            total_verifications=total,
            successful_verifications=successful,
            failed_verifications=failed,
            daily_verifications=daily,
            weekly_verifications=weekly,
        )
