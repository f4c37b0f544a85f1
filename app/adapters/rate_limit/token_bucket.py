"""Thread-safe token bucket primitive and the global (shared) bucket limiter.

Tokens are added continuously at ``rate`` per second up to ``burst``. Each
admitted request consumes one token; when fewer than one token is available
the request is denied without blocking.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


def validate_bucket_params(rate: float, burst: int) -> None:
    """Fail fast on token bucket misconfiguration.

    Raises:
        ValueError: If rate or burst are not positive.
    """
    if not rate > 0:
        raise ValueError("rate must be > 0")
    if burst < 1:
        raise ValueError("burst must be >= 1")


def advisory_retry_after(rate: float) -> int:
    """Fixed Retry-After hint for token bucket denials: time for one token."""
    return max(1, math.ceil(1.0 / rate))


class TokenBucket:
    """Continuous-refill token bucket.

    The bucket starts full. All state changes happen under a per-bucket lock,
    so concurrent callers for the same identifier always see a consistent
    token count.

    A bucket can be *retired* by the registry sweep. A retired bucket no
    longer takes admission decisions: ``try_allow`` returns ``None`` and the
    caller must resolve a fresh bucket.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        validate_bucket_params(rate, burst)

        self.rate = float(rate)
        self.burst = burst
        self._clock = clock
        self._lock = threading.Lock()

        now = clock()
        self._tokens = float(burst)
        self._last_refill = now
        self._last_access = now
        self._retired = False

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TokenBucket(rate={self.rate}, burst={self.burst}, "
            f"tokens={self.tokens_available():.3f}, retired={self._retired})"
        )

    @property
    def retired(self) -> bool:
        return self._retired

    @property
    def last_access(self) -> float:
        return self._last_access

    def _level_at(self, now: float) -> float:
        elapsed = max(0.0, now - self._last_refill)
        return min(float(self.burst), self._tokens + elapsed * self.rate)

    def _refill_locked(self, now: float) -> None:
        self._tokens = self._level_at(now)
        self._last_refill = now

    def try_allow(self) -> bool | None:
        """Consume one token if available.

        Returns:
            True if admitted, False if denied, None if the bucket was retired.
        """
        with self._lock:
            if self._retired:
                return None

            now = self._clock()
            self._refill_locked(now)
            self._last_access = now

            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def allow(self) -> bool:
        """Non-blocking admission check; a retired bucket denies."""
        return bool(self.try_allow())

    def tokens_available(self) -> float:
        """Current fill level, without consuming or mutating state."""
        with self._lock:
            return self._level_at(self._clock())

    def is_full(self) -> bool:
        return self.tokens_available() >= self.burst

    def retire_if_idle(self, idle_seconds: float) -> bool:
        """Retire the bucket when it is full and unused for ``idle_seconds``.

        A full bucket carries no state a freshly created one would not have,
        so evicting it never grants a client extra permits.

        Returns:
            True if the bucket is now retired.
        """
        with self._lock:
            if self._retired:
                return True

            now = self._clock()
            full = self._level_at(now) >= self.burst
            idle = (now - self._last_access) >= idle_seconds
            if full and idle:
                self._retired = True
            return self._retired


class GlobalTokenBucketLimiter(AbstractRateLimiter):
    """Single token bucket shared by every client.

    Useful as a coarse process-wide ceiling. The key passed to ``consume`` is
    ignored, and there is no per-identifier state to sweep.
    """

    strategy = "global"

    def __init__(
        self,
        *,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._bucket = TokenBucket(rate, burst, clock=clock)
        self._retry_after = advisory_retry_after(rate)

    @property
    def rate(self) -> float:
        return self._bucket.rate

    @property
    def burst(self) -> int:
        return self._bucket.burst

    def consume(self, key: str) -> RateLimitResult:
        allowed = self._bucket.allow()
        return RateLimitResult(
            allowed=allowed,
            limit=self._bucket.rate,
            remaining=int(self._bucket.tokens_available()) if allowed else 0,
            retry_after_seconds=None if allowed else self._retry_after,
        )

    def sweep(self) -> int:
        return 0

    def denial_message(self) -> str:
        return "Too many requests"
