"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete strategies) so
the token-bucket and sliding-window limiters stay interchangeable behind the
same admission middleware.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


def _fixed(value: float, decimals: int) -> str:
    # Widen until a positive value no longer renders as zero.
    while value > 0 and float(f"{value:.{decimals}f}") == 0:
        decimals += 1
    return f"{value:.{decimals}f}"


def format_rate(value: float) -> str:
    """Render a limit for headers and messages.

    Integral values render without a decimal point (``10``); fractional
    values render with two fixed decimals (``0.50``), or as many as needed
    for very small rates (``0.001``).
    """
    if float(value).is_integer():
        return str(int(value))
    return _fixed(value, 2)


def format_duration(seconds: float) -> str:
    """Render a duration in seconds with an ``s`` suffix (``60s``, ``1.5s``)."""
    if float(seconds).is_integer():
        return f"{int(seconds)}s"
    return _fixed(seconds, 3).rstrip("0").rstrip(".") + "s"


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit admission check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Advertised limit (permits/second for token buckets, requests
            per window for the sliding window).
        remaining: Whole permits left after this decision (0 when blocked).
        retry_after_seconds: Suggested wait time in seconds when blocked.
        window_seconds: Window duration, set only by window-based limiters.
    """

    allowed: bool
    limit: float
    remaining: int
    retry_after_seconds: int | None = None
    window_seconds: float | None = None


class AbstractRateLimiter(ABC):
    """Interface shared by every limiter strategy."""

    #: Short strategy name reported by the health endpoint.
    strategy: str = "abstract"

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Decide admission for ``key`` at the current instant.

        Args:
            key: Client identifier (e.g., IP address).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Evict idle per-identifier state.

        Returns:
            Number of identifiers removed.
        """
        raise NotImplementedError

    @abstractmethod
    def denial_message(self) -> str:
        """Human-readable explanation attached to a rejection."""
        raise NotImplementedError

    def __len__(self) -> int:
        """Number of identifiers currently tracked."""
        return 0
