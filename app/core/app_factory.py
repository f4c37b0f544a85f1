"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the lifecycle of the rate limiter: the limiter is built here, stored
on ``app.state`` and its reaper is started and stopped by the lifespan.
Each call returns an app with its own independent limiter state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.factory import create_rate_limiter, create_sweeper
from app.api.routes import health_router, rate_limit_router
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.rate_limit import RateLimitMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the limiter reaper on startup and stop it on shutdown."""
    sweeper = app.state.rate_limit_sweeper
    if sweeper is not None:
        sweeper.start()
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.stop()


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.

    Raises:
        ValidationAppError: If the rate limit configuration is invalid.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title=cfg.app.name,
        description=(
            "HTTP API guarded by per-client rate limiting. Supports a global "
            "token bucket, per-IP token buckets and an exact sliding window, "
            "each with a background reaper for idle client state."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    rate_cfg = cfg.rate_limit
    app.state.request_id_header = cfg.log.request_id_header
    app.state.rate_limit_settings = rate_cfg
    app.state.rate_limiter = None
    app.state.rate_limit_sweeper = None

    if rate_cfg.enabled:
        limiter = create_rate_limiter(rate_cfg)
        app.state.rate_limiter = limiter
        app.state.rate_limit_sweeper = create_sweeper(limiter, rate_cfg)

        if rate_cfg.apply_globally:
            app.add_middleware(
                RateLimitMiddleware,
                limiter=limiter,
                exempt_paths=rate_cfg.exempt_paths,
                trust_forwarded_for=rate_cfg.trust_forwarded_for,
                include_headers=rate_cfg.include_headers,
            )
    else:
        logger.info("rate_limit.disabled")

    # Added last so it wraps the limiter and 429s also carry a request id
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(rate_limit_router, prefix="/v1")

    return app
