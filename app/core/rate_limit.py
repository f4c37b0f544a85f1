"""Rate limiting adapters for the HTTP layer.

This module wires the limiter strategies into FastAPI/Starlette:

- ``RateLimitMiddleware`` gates every request of the application.
- ``enforce_rate_limit`` is a route dependency for gating selected routes.

Both resolve a client identifier, ask the limiter for a decision, and on
denial short-circuit with HTTP 429, a ``{"error", "message"}`` body and
advisory headers (limit, remaining=0, Retry-After or X-RateLimit-Window).

The limiter instance is owned by the application (``app.state.rate_limiter``),
never by this module.
"""

from __future__ import annotations

import logging
from typing import Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    format_duration,
    format_rate,
)
from app.core.errors import RateLimitExceededError
from app.core.exception_handlers import rate_limit_response
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)


UNKNOWN_CLIENT = "unknown"


def client_identifier(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Resolve the identifier used to partition rate limit state.

    Args:
        request: Incoming request.
        trust_forwarded_for: Prefer the first X-Forwarded-For entry. Only
            enable behind a proxy that overwrites the header.

    Returns:
        Client address, or ``"unknown"`` when none is available.
    """

    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def build_rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Advisory headers for a denied request.

    Window-based results advertise the window duration; token-bucket
    results advertise a Retry-After hint.
    """

    headers = {
        "X-RateLimit-Limit": format_rate(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
    }
    if result.window_seconds is not None:
        headers["X-RateLimit-Window"] = format_duration(result.window_seconds)
    else:
        headers["Retry-After"] = str(result.retry_after_seconds or 1)
    return headers


def check_rate_limit(
    limiter: AbstractRateLimiter,
    identifier: str,
    *,
    path: str,
) -> RateLimitResult:
    """Consume one permit for ``identifier`` and log denials."""

    result = limiter.consume(identifier)
    if not result.allowed:
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "strategy": limiter.strategy,
                "key_hash": hash_identifier(identifier),
                "limit": result.limit,
                "retry_after_s": result.retry_after_seconds,
                "window_s": result.window_seconds,
                "path": path,
            },
        )
    return result


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Application-wide admission gate.

    Usage:
        app.add_middleware(RateLimitMiddleware, limiter=limiter)
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        limiter: AbstractRateLimiter,
        exempt_paths: Iterable[str] = ("/health",),
        trust_forwarded_for: bool = False,
        include_headers: bool = True,
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.exempt_paths = frozenset(exempt_paths)
        self.trust_forwarded_for = trust_forwarded_for
        self.include_headers = include_headers

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        identifier = client_identifier(request, trust_forwarded_for=self.trust_forwarded_for)
        result = check_rate_limit(self.limiter, identifier, path=request.url.path)
        if result.allowed:
            # Routes that also declare enforce_rate_limit must not consume twice.
            request.state.rate_limit_result = result
            return await call_next(request)

        headers = build_rate_limit_headers(result) if self.include_headers else None
        return rate_limit_response(self.limiter.denial_message(), headers)


async def enforce_rate_limit(request: Request) -> RateLimitResult | None:
    """FastAPI dependency enforcing the application's limiter on a route.

    Usage:
        @router.post("/login", dependencies=[Depends(enforce_rate_limit)])

    Returns:
        The admission result (already taken by the middleware if it ran),
        or None when rate limiting is disabled.

    Raises:
        RateLimitExceededError: When the client is throttled; the exception
            handler turns it into a 429 response.
    """

    existing: RateLimitResult | None = getattr(request.state, "rate_limit_result", None)
    if existing is not None:
        return existing

    limiter: AbstractRateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return None

    rate_settings = request.app.state.rate_limit_settings
    identifier = client_identifier(request, trust_forwarded_for=rate_settings.trust_forwarded_for)
    result = check_rate_limit(limiter, identifier, path=request.url.path)
    if result.allowed:
        request.state.rate_limit_result = result
        return result

    raise RateLimitExceededError(
        message=limiter.denial_message(),
        headers=build_rate_limit_headers(result) if rate_settings.include_headers else {},
    )
