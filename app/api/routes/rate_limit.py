from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.adapters.rate_limit.base import RateLimitResult
from app.core.rate_limit import enforce_rate_limit
from app.schemas.rate_limit import RateLimitRejection, RateLimitStatusResponse

router = APIRouter(tags=["Rate limit"])


@router.get(
    "/rate-limit/status",
    response_model=RateLimitStatusResponse,
    responses={429: {"model": RateLimitRejection, "description": "Rate limit exceeded"}},
)
async def rate_limit_status(
    result: Annotated[RateLimitResult | None, Depends(enforce_rate_limit)],
) -> RateLimitStatusResponse:
    """Report the caller's admission budget.

    The call itself consumes one permit, so ``remaining`` is the budget left
    after this request.
    """

    if result is None:
        return RateLimitStatusResponse(enabled=False)

    return RateLimitStatusResponse(
        enabled=True,
        limit=result.limit,
        remaining=result.remaining,
        window_seconds=result.window_seconds,
    )
