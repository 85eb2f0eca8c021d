"""Process-wide token bucket guarding outbound account-existence calls."""

from __future__ import annotations

import time
from threading import Lock
from typing import Callable


class TokenBucketRateLimiter:
    """
    Token bucket: refills at rate_per_second up to burst tokens. try_acquire()
    never blocks; callers degrade when denied instead of waiting.
    """

    def __init__(
        self,
        rate_per_second: float,
        burst: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be > 0")
        if burst < 1:
            raise ValueError("burst must be >= 1")
        self._rate = float(rate_per_second)
        self._capacity = float(burst)
        self._clock = clock
        self._tokens = float(burst)
        self._last_refill = clock()
        self._lock = Lock()

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_refill = now

    def try_acquire(self, tokens: float = 1.0) -> bool:
        with self._lock:
            self._refill(self._clock())
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    @property
    def available(self) -> float:
        with self._lock:
            self._refill(self._clock())
            return self._tokens
