"""Rate limiting adapters.

In-memory, per-process limiter strategies sharing one interface so the HTTP
layer can swap between a global token bucket, per-identifier token buckets
and an exact sliding window without code changes.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.registry import LimiterRegistry
from app.adapters.rate_limit.sliding_window import WindowLimiter
from app.adapters.rate_limit.sweeper import PeriodicSweeper
from app.adapters.rate_limit.token_bucket import GlobalTokenBucketLimiter, TokenBucket

__all__ = [
    "AbstractRateLimiter",
    "RateLimitResult",
    "LimiterRegistry",
    "WindowLimiter",
    "PeriodicSweeper",
    "GlobalTokenBucketLimiter",
    "TokenBucket",
]
