"""
Statistics aggregator: counts, issuance trend, top issuers, verification
rollups, and snapshot caching.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from backend_certanchor.address_validation.cache import TTLCache
from backend_certanchor.analytics import StatsAggregator, StatsQuery
from backend_certanchor.core.exceptions import InvalidInput
from backend_certanchor.database import Certificate, VerificationRecord
from backend_certanchor.database.models import utcnow
from conftest import run

NOW = utcnow()


@pytest.fixture
def aggregator(certificate_store, verification_store, clock):
    cache = TTLCache(ttl_ms=300_000, max_size=16, clock=clock)
    return StatsAggregator(certificate_store, verification_store, cache, clock=lambda: NOW)


def _cert(store, certificate_id, issuer_name, issued_at, **extra) -> Certificate:
    return run(
        store.create(
            Certificate(
                certificate_id=certificate_id,
                title="Course",
                issuer_name=issuer_name,
                recipient_email="r@example.com",
                blockchain_tx_hash=None,
                issued_at=issued_at,
                **extra,
            )
        )
    )


@pytest.fixture
def populated(certificate_store, verification_store):
    a = _cert(certificate_store, "A", "Alpha", NOW - timedelta(days=1))
    _cert(certificate_store, "B", "Alpha", NOW - timedelta(days=1), is_revoked=True)
    _cert(certificate_store, "C", "Beta", NOW - timedelta(days=3), expires_at=NOW - timedelta(hours=1))
    _cert(certificate_store, "D", "Beta", NOW - timedelta(days=40))
    _cert(certificate_store, "E", "Gamma", NOW)
    for success, age in [(True, timedelta(0)), (False, timedelta(0)), (True, timedelta(days=3)), (True, timedelta(days=10))]:
        run(verification_store.create(VerificationRecord(certificate_pk=a.id, success=success, verified_at=NOW - age)))


def test_empty_store_yields_zeros(aggregator):
    snapshot = run(aggregator.get_statistics())

    assert snapshot.total_certificates == 0
    assert snapshot.active_certificates == 0
    assert snapshot.revoked_certificates == 0
    assert snapshot.expired_certificates == 0
    assert snapshot.issuance_trend == []
    assert snapshot.top_issuers == []
    assert snapshot.verification_stats.total_verifications == 0
    assert snapshot.verification_stats.weekly_verifications == 0


def test_certificate_counts(aggregator, populated):
    snapshot = run(aggregator.get_statistics())

    assert snapshot.total_certificates == 5
    assert snapshot.active_certificates == 4
    assert snapshot.revoked_certificates == 1
    assert snapshot.expired_certificates == 1


def test_issuance_trend_last_30_days(aggregator, populated):
    trend = run(aggregator.get_statistics()).issuance_trend

    day = lambda delta: (NOW - timedelta(days=delta)).date().isoformat()  # noqa: E731
    assert [(p.date, p.count) for p in trend] == [(day(3), 1), (day(1), 2), (day(0), 1)]


def test_top_issuers(aggregator, populated):
    top = run(aggregator.get_statistics()).top_issuers
    assert [(t.issuer_name, t.certificate_count) for t in top] == [("Alpha", 2), ("Beta", 2), ("Gamma", 1)]


def test_verification_stats(aggregator, populated):
    v = run(aggregator.get_statistics()).verification_stats

    assert v.total_verifications == 4
    assert v.successful_verifications == 3
    assert v.failed_verifications == 1
    assert v.daily_verifications == 2
    assert v.weekly_verifications == 3


def test_issuer_filter(aggregator, populated):
    snapshot = run(aggregator.get_statistics(StatsQuery(issuer_name="Alpha")))
    assert snapshot.total_certificates == 2
    assert snapshot.revoked_certificates == 1
    assert [t.issuer_name for t in snapshot.top_issuers] == ["Alpha"]


def test_date_range_needs_both_bounds(aggregator, populated):
    both = run(aggregator.get_statistics(StatsQuery(start_date=NOW - timedelta(days=2), end_date=NOW)))
    start_only = run(aggregator.get_statistics(StatsQuery(start_date=NOW - timedelta(days=2))))

    assert both.total_certificates == 3
    assert start_only.total_certificates == 5


def test_start_after_end_rejected(aggregator):
    with pytest.raises(InvalidInput):
        run(aggregator.get_statistics(StatsQuery(start_date=NOW, end_date=NOW - timedelta(days=1))))


def test_snapshot_cached_until_ttl(aggregator, certificate_store, populated, clock):
    first = run(aggregator.get_statistics())
    _cert(certificate_store, "F", "Delta", NOW)

    assert run(aggregator.get_statistics()) is first

    clock.advance(301)
    assert run(aggregator.get_statistics()).total_certificates == 6


def test_cache_key_covers_whole_query():
    assert StatsQuery(issuer_name="Alpha").cache_key() != StatsQuery(issuer_name="Beta").cache_key()
    assert StatsQuery().cache_key() == StatsQuery().cache_key()
    assert StatsQuery().cache_key().startswith("cert-stats:")


def test_snapshot_to_dict_shape(aggregator, populated):
    out = run(aggregator.get_statistics()).to_dict()
    assert set(out) == {
        "total_certificates",
        "active_certificates",
        "revoked_certificates",
        "expired_certificates",
        "issuance_trend",
        "top_issuers",
        "verification_stats",
    }
    assert out["top_issuers"][0] == {"issuer_name": "Alpha", "certificate_count": 2}
