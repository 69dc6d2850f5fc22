from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
rate limiter lifecycle) so tests can build isolated instances.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from app.api.routes import contact_router, health_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.rate_limit import build_rate_limiter

OPENAPI_TAGS = [
    {
        "name": "Contact",
        "description": "Contact form submission, rate limited per client IP.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]


def create_app(
    limiter_factory: Callable[[], SlidingWindowRateLimiter] = build_rate_limiter,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        limiter_factory: Builds the rate limiter at startup. The limiter is
            stored on ``app.state.rate_limiter`` and closed on shutdown.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        limiter = limiter_factory()
        app.state.rate_limiter = limiter
        try:
            yield
        finally:
            limiter.close()

    app = FastAPI(
        title="Contact API",
        description=(
            "Contact form endpoint for the company website. Submissions are "
            "limited per client IP with a sliding window backed by Redis, "
            "falling back to in-process limiting while Redis is unreachable."
        ),
        version="0.1.0",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(contact_router, prefix="/v1")
    app.include_router(health_router)

    return app
