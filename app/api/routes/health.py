from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from app.core.rate_limit import get_rate_limiter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(
    limiter: Annotated[SlidingWindowRateLimiter, Depends(get_rate_limiter)],
) -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems. The service stays healthy
    while Redis is down (the limiter falls back to local memory), so the
    active rate limit backend is reported for visibility only.

    Returns:
        dict: ``status`` ("ok") and the rate limiter backend in use.
    """

    return {
        "status": "ok",
        "rate_limiter": {"backend": limiter.active_backend()},
    }
