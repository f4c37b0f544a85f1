"""Per-identifier token bucket registry.

Each client identifier (typically an IP address) gets its own token bucket,
created lazily on first use and evicted by a periodic sweep once idle.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Lookups of an existing bucket do not take the registry lock; creation,
  eviction and full iteration do.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.token_bucket import (
    TokenBucket,
    advisory_retry_after,
    validate_bucket_params,
)

logger = logging.getLogger(__name__)


class LimiterRegistry(AbstractRateLimiter):
    """Map of identifier -> TokenBucket with atomic insert-if-absent.

    Idle policy: a bucket is evicted when it is full *and* has not been
    accessed for at least ``idle_seconds``. The fullness check alone cannot
    tell a never-used bucket from one that refilled, which is harmless for
    correctness; the last-access guard additionally keeps recently active
    identifiers resident between sweeps.
    """

    strategy = "ip"

    def __init__(
        self,
        *,
        rate: float,
        burst: int,
        idle_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the registry.

        Args:
            rate: Sustained permits per second for new buckets.
            burst: Bucket capacity for new buckets.
            idle_seconds: Minimum time since last access before eviction.
            clock: Monotonic time source shared by all buckets.

        Raises:
            ValueError: If rate, burst or idle_seconds are invalid.
        """
        validate_bucket_params(rate, burst)
        if idle_seconds < 0:
            raise ValueError("idle_seconds must be >= 0")

        self.rate = float(rate)
        self.burst = burst
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._retry_after = advisory_retry_after(rate)
        self._lock = threading.Lock()
        self._entries: dict[str, TokenBucket] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get_or_create(self, key: str) -> TokenBucket:
        """Return the live bucket for ``key``, creating it if absent.

        The existence check and the insertion happen in one exclusive
        section, so concurrent first use of the same identifier always
        converges on a single bucket.
        """
        bucket = self._entries.get(key)
        if bucket is not None and not bucket.retired:
            return bucket

        with self._lock:
            bucket = self._entries.get(key)
            if bucket is None or bucket.retired:
                bucket = TokenBucket(self.rate, self.burst, clock=self._clock)
                self._entries[key] = bucket
            return bucket

    def admit(self, key: str) -> bool:
        """Consume one permit for ``key``.

        Re-resolves the bucket when a concurrent sweep retired the one we
        looked up, so no decision is taken against an evicted bucket.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        while True:
            decision = self.get_or_create(key).try_allow()
            if decision is not None:
                return decision

    def consume(self, key: str) -> RateLimitResult:
        allowed = self.admit(key)
        if not allowed:
            return RateLimitResult(
                allowed=False,
                limit=self.rate,
                remaining=0,
                retry_after_seconds=self._retry_after,
            )

        bucket = self._entries.get(key)
        remaining = int(bucket.tokens_available()) if bucket is not None else 0
        return RateLimitResult(allowed=True, limit=self.rate, remaining=remaining)

    def sweep(self) -> int:
        """Evict every bucket that is full and idle.

        Returns:
            Number of identifiers removed.
        """
        with self._lock:
            stale_keys = [
                key
                for key, bucket in self._entries.items()
                if bucket.retire_if_idle(self.idle_seconds)
            ]
            for key in stale_keys:
                del self._entries[key]
            remaining = len(self._entries)

        logger.debug(
            "rate_limit.sweep",
            extra={
                "strategy": self.strategy,
                "evicted": len(stale_keys),
                "tracked": remaining,
            },
        )
        return len(stale_keys)

    def denial_message(self) -> str:
        return "Too many requests from your IP address"
