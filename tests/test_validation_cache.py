"""
TTL cache: staleness, LRU eviction, bounded size under concurrent writers.
"""

from __future__ import annotations

import threading

import pytest

from backend_certanchor.address_validation.cache import TTLCache


def test_hit_then_stale_after_ttl(clock):
    cache = TTLCache(ttl_ms=1000, max_size=10, clock=clock)
    cache.set("a", 1)
    assert cache.get("a") == 1

    clock.advance(1.0)
    assert cache.get("a") == 1  # exactly at ttl is still fresh

    clock.advance(0.001)
    assert cache.get("a") is None
    assert len(cache) == 0


def test_get_default_on_miss(clock):
    cache = TTLCache(ttl_ms=1000, max_size=10, clock=clock)
    assert cache.get("missing") is None
    assert cache.get("missing", "fallback") == "fallback"


def test_full_cache_evicts_exactly_one(clock):
    cache = TTLCache(ttl_ms=60_000, max_size=3, clock=clock)
    for k in ("a", "b", "c"):
        cache.set(k, k.upper())
        clock.advance(0.1)
    cache.set("d", "D")

    assert len(cache) == 3
    assert cache.get("d") == "D"
    assert sum(1 for k in ("a", "b", "c") if cache.get(k) is None) == 1


def test_eviction_drops_least_recently_used(clock):
    cache = TTLCache(ttl_ms=60_000, max_size=3, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    cache.get("a")
    cache.set("d", 4)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_eviction_prefers_stale_entry(clock):
    cache = TTLCache(ttl_ms=1000, max_size=2, clock=clock)
    cache.set("old", 1)
    clock.advance(0.5)
    cache.set("fresh", 2)
    cache.get("old")
    clock.advance(0.6)  # "old" is now stale even though it was used last
    cache.set("new", 3)

    assert cache.get("fresh") == 2
    assert cache.get("new") == 3
    assert cache.get("old") is None


def test_overwrite_existing_key_does_not_evict(clock):
    cache = TTLCache(ttl_ms=60_000, max_size=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)

    assert len(cache) == 2
    assert cache.get("a") == 10
    assert cache.get("b") == 2


def test_overwrite_resets_ttl(clock):
    cache = TTLCache(ttl_ms=1000, max_size=2, clock=clock)
    cache.set("a", 1)
    clock.advance(0.9)
    cache.set("a", 2)
    clock.advance(0.9)
    assert cache.get("a") == 2


def test_clear_and_stats(clock):
    cache = TTLCache(ttl_ms=300_000, max_size=1000, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.stats() == {"size": 2, "ttl": 300_000, "max_size": 1000}

    cache.clear()
    assert cache.stats()["size"] == 0
    assert cache.get("a") is None


def test_rejects_non_positive_max_size():
    with pytest.raises(ValueError):
        TTLCache(ttl_ms=1000, max_size=0)


def test_concurrent_writers_never_exceed_max_size():
    cache = TTLCache(ttl_ms=60_000, max_size=50)

    def writer(n: int) -> None:
        for i in range(200):
            cache.set((n, i), i)
            cache.get((n, i // 2))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) <= 50
