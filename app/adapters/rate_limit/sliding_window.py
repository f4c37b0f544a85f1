"""In-memory exact sliding-window rate limiter.

Each identifier maps to a deque of request timestamps in chronological order. On
every check, timestamps that fell out of the trailing window are pruned and
the remaining count is compared against the limit. The decision is always
based on the exact number of requests inside ``[now - window, now]``.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a single lock serializes every mutation of the history map.
"""

from __future__ import annotations

import bisect
import logging
import math
import threading
import time
from collections import deque
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    format_duration,
)

logger = logging.getLogger(__name__)


class WindowLimiter(AbstractRateLimiter):
    """Sliding-window limiter allowing ``limit`` requests per ``window_seconds``."""

    strategy = "window"

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the sliding-window limiter.

        Args:
            limit: Maximum number of requests per identifier within the window.
            window_seconds: Trailing window duration in seconds.
            clock: Monotonic time source returning seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if not window_seconds > 0:
            raise ValueError("window_seconds must be > 0")

        self.limit = limit
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._history: dict[str, deque[float]] = {}

    def __len__(self) -> int:
        return len(self._history)

    def __contains__(self, key: object) -> bool:
        return key in self._history

    def history(self, key: str) -> list[float]:
        """Snapshot of the recorded timestamps for ``key``."""
        with self._lock:
            return list(self._history.get(key, ()))

    def _prune_locked(self, events: deque[float], cutoff: float) -> None:
        # Deque is chronological, so stop at the first timestamp in the window.
        while events and events[0] < cutoff:
            events.popleft()

    def _decide_locked(self, key: str, now: float) -> tuple[bool, deque[float]]:
        events = self._history.get(key)
        if events is None:
            events = deque()
        self._prune_locked(events, now - self.window_seconds)

        if len(events) >= self.limit:
            self._history[key] = events
            return False, events

        if events and now < events[-1]:
            # Late sample, insert in order so the deque stays chronological.
            bisect.insort(events, now)
        else:
            events.append(now)
        self._history[key] = events
        return True, events

    def allow(self, key: str, now: float | None = None) -> bool:
        """Admit or deny a request for ``key`` at instant ``now``.

        ``now`` is sampled once and used both as the prune cutoff reference
        and as the recorded timestamp.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            if now is None:
                now = self._clock()
            allowed, _ = self._decide_locked(key, now)
            return allowed

    def consume(self, key: str) -> RateLimitResult:
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            now = self._clock()
            allowed, events = self._decide_locked(key, now)
            if allowed:
                return RateLimitResult(
                    allowed=True,
                    limit=self.limit,
                    remaining=max(0, self.limit - len(events)),
                    window_seconds=self.window_seconds,
                )
            oldest = events[0]

        retry_after = max(1, math.ceil(oldest + self.window_seconds - now))
        return RateLimitResult(
            allowed=False,
            limit=self.limit,
            remaining=0,
            retry_after_seconds=retry_after,
            window_seconds=self.window_seconds,
        )

    def sweep(self, now: float | None = None) -> int:
        """Prune every identifier and drop those left with no history.

        Returns:
            Number of identifiers removed.
        """
        if now is None:
            now = self._clock()
        cutoff = now - self.window_seconds

        with self._lock:
            stale_keys = []
            for key, events in self._history.items():
                self._prune_locked(events, cutoff)
                if not events:
                    stale_keys.append(key)
            for key in stale_keys:
                del self._history[key]
            remaining = len(self._history)

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
        return f"Maximum {self.limit} requests per {format_duration(self.window_seconds)}"
