"""Pydantic schemas for rate limit responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitStatusResponse(BaseModel):
    """Caller's admission budget after the current request."""

    enabled: bool = Field(
        ..., description="Whether rate limiting is active."
    )
    limit: float | None = Field(
        default=None,
        description="Permits per second (token bucket) or requests per window (window).",
    )
    remaining: int | None = Field(
        default=None,
        description="Whole permits left after this request.",
    )
    window_seconds: float | None = Field(
        default=None,
        description="Trailing window duration (window strategy only).",
    )


class RateLimitRejection(BaseModel):
    """Body of a 429 response."""

    error: str = Field(
        "rate limit exceeded", description="Fixed rejection marker."
    )
    message: str = Field(
        ..., description="Human-readable explanation of the limit that was hit."
    )
