"""Factory for building the configured rate limiter.

Centralizes strategy selection so the app factory and tests can build
independent limiter instances from settings instead of sharing a
module-level singleton.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.registry import LimiterRegistry
from app.adapters.rate_limit.sliding_window import WindowLimiter
from app.adapters.rate_limit.sweeper import PeriodicSweeper
from app.adapters.rate_limit.token_bucket import GlobalTokenBucketLimiter
from app.core.config import RateLimitSettings, settings
from app.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_rate_limiter(
    rate_settings: RateLimitSettings | None = None,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> AbstractRateLimiter:
    """Build a limiter for the configured strategy.

    Args:
        rate_settings: Rate limit settings; defaults to global settings.
        clock: Monotonic time source for the limiter.

    Returns:
        Configured limiter instance.

    Raises:
        ValidationAppError: If the strategy is unknown or the parameters
            are rejected by the limiter.
    """

    cfg = rate_settings or settings.rate_limit

    try:
        if cfg.strategy == "global":
            limiter: AbstractRateLimiter = GlobalTokenBucketLimiter(
                rate=cfg.rate,
                burst=cfg.burst,
                clock=clock,
            )
        elif cfg.strategy == "ip":
            limiter = LimiterRegistry(
                rate=cfg.rate,
                burst=cfg.burst,
                idle_seconds=cfg.idle_seconds,
                clock=clock,
            )
        elif cfg.strategy == "window":
            limiter = WindowLimiter(
                limit=cfg.limit,
                window_seconds=cfg.window_seconds,
                clock=clock,
            )
        else:
            raise ValidationAppError(
                code="unsupported_rate_limit_strategy",
                message=f"Unsupported rate limit strategy: {cfg.strategy}",
                details={"hint": "Use one of: global, ip, window"},
            )
    except ValueError as exc:
        raise ValidationAppError(
            code="invalid_rate_limit_config",
            message=str(exc),
        ) from exc

    logger.info(
        "rate_limit.configured",
        extra={
            "strategy": limiter.strategy,
            "rate": cfg.rate,
            "burst": cfg.burst,
            "limit": cfg.limit,
            "window_s": cfg.window_seconds,
            "sweep_interval_s": cfg.sweep_interval_seconds,
        },
    )
    return limiter


def create_sweeper(
    limiter: AbstractRateLimiter,
    rate_settings: RateLimitSettings | None = None,
) -> PeriodicSweeper | None:
    """Build the reaper for ``limiter``, or None when it keeps no per-client state."""

    cfg = rate_settings or settings.rate_limit
    if isinstance(limiter, GlobalTokenBucketLimiter):
        return None

    return PeriodicSweeper(
        limiter.sweep,
        interval_seconds=cfg.sweep_interval_seconds,
        name=f"rate-limit-sweeper-{limiter.strategy}",
    )
