from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems to determine service
    health. Also reports how many client identifiers the limiter tracks,
    which makes reaper problems (unbounded growth) visible.

    Returns:
        dict: ``status`` plus a ``rate_limit`` summary.
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    return {
        "status": "ok",
        "rate_limit": {
            "enabled": limiter is not None,
            "strategy": limiter.strategy if limiter is not None else None,
            "tracked_identifiers": len(limiter) if limiter is not None else 0,
        },
    }
