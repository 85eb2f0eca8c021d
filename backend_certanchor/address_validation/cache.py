"""
Bounded in-process TTL cache.

Entries older than ttl are stale and treated as absent (evicted lazily on
read). When the cache is full, inserting a new key evicts the least recently
used entry. One lock guards every read and write; values are replaced
wholesale, never mutated in place.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    value: V
    inserted_at: float

    def is_stale(self, now: float, ttl_sec: float) -> bool:
        return now - self.inserted_at > ttl_sec


class TTLCache(Generic[K, V]):
    """Thread-safe bounded map with per-entry TTL and LRU eviction."""

    def __init__(
        self,
        *,
        ttl_ms: int,
        max_size: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._ttl_ms = ttl_ms
        self._ttl_sec = ttl_ms / 1000.0
        self._max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[K, CacheEntry[V]] = OrderedDict()
        self._lock = Lock()

    def get(self, key: K, default: V | None = None) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            now = self._clock()
            if entry.is_stale(now, self._ttl_sec):
                del self._entries[key]
                return default
            self._entries.move_to_end(key)
            return entry.value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            now = self._clock()
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self._max_size:
                self._evict_one(now)
            self._entries[key] = CacheEntry(value=value, inserted_at=now)

    def _evict_one(self, now: float) -> None:
        # Prefer a stale entry; otherwise drop the least recently used.
        for k, entry in self._entries.items():
            if entry.is_stale(now, self._ttl_sec):
                del self._entries[k]
                return
        self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, Any]:
        """size / ttl (ms) / max_size."""
        with self._lock:
            return {"size": len(self._entries), "ttl": self._ttl_ms, "max_size": self._max_size}
