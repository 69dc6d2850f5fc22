"""Rate limiting wiring for FastAPI routes.

This module builds the limiter once at startup and exposes it to routes as a
dependency.

Design goals:
- Explicit lifecycle: the limiter (and its Redis connection) lives on
  ``app.state`` and is closed on shutdown; no module-level singletons.
- Minimal coupling: routes depend on dependency functions only.
- Fail to local limiting: Redis outages degrade to the in-memory store, never
  to "unlimited" and never to an error response.

Rate limiting strategy:
- Sliding window per client IP (default 3 submissions per hour).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import Request

from app.adapters.rate_limit.base import RateLimitResult
from app.adapters.rate_limit.in_memory import InMemoryTimestampStore
from app.adapters.rate_limit.redis_store import RedisTimestampStore
from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from app.core.config import Settings, settings
from app.core.errors import RateLimitedAppError
from app.utils.client_ip import anonymize_ip, get_client_ip

logger = logging.getLogger(__name__)


def build_rate_limiter(cfg: Settings | None = None) -> SlidingWindowRateLimiter:
    """Build the limiter described by settings.

    When Redis is disabled the in-memory store is used on its own.

    Args:
        cfg: Settings to use; defaults to the global settings.

    Returns:
        SlidingWindowRateLimiter ready to serve requests.
    """

    cfg = cfg or settings

    fallback = InMemoryTimestampStore(
        sweep_interval_seconds=cfg.app.fallback_sweep_interval_seconds,
    )

    if cfg.redis.enabled:
        primary: RedisTimestampStore | InMemoryTimestampStore = RedisTimestampStore.from_url(
            cfg.redis.url,
            socket_timeout_seconds=cfg.redis.socket_timeout_seconds,
            connect_timeout_seconds=cfg.redis.connect_timeout_seconds,
            key_prefix=cfg.redis.key_prefix,
            retry_interval_seconds=cfg.redis.retry_interval_seconds,
        )
        primary.connect()
    else:
        primary = fallback

    limiter = SlidingWindowRateLimiter(
        primary,
        fallback,
        limit=cfg.app.rate_limit_requests,
        window_seconds=cfg.app.rate_limit_window_seconds,
    )

    logger.info(
        "rate_limit.configured",
        extra={
            "primary": primary.name,
            "limit": cfg.app.rate_limit_requests,
            "window_s": cfg.app.rate_limit_window_seconds,
        },
    )
    return limiter


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """Return the limiter created at application startup."""

    return request.app.state.rate_limiter


def format_reset_time(reset_time_ms: int) -> str:
    """Render an epoch-millisecond timestamp as ISO-8601 UTC."""

    return datetime.fromtimestamp(reset_time_ms / 1000, tz=timezone.utc).isoformat()


def build_rate_limit_headers(limiter: SlidingWindowRateLimiter, result: RateLimitResult) -> dict[str, str]:
    """Build the X-RateLimit-* headers describing ``result``."""

    if not settings.app.rate_limit_include_headers:
        return {}
    return {
        "X-RateLimit-Limit": str(limiter.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": format_reset_time(result.reset_time),
    }


def client_key(request: Request) -> str:
    """Rate limit key for the current request (the client IP)."""

    return get_client_ip(request, trust_forwarded=settings.app.trust_forwarded_headers)


def enforce_contact_rate_limit(
    request: Request,
    limiter: SlidingWindowRateLimiter,
) -> RateLimitResult | None:
    """Enforce the contact form submission limit for the current caller.

    Routes call this after the payload validated, so malformed submissions
    never consume budget. When enabled, records one attempt for the caller's
    IP. If the caller exceeds the configured rate, raises a 429 error.

    Args:
        request: FastAPI request.
        limiter: Limiter from application state.

    Returns:
        The admitted RateLimitResult, or None when rate limiting is disabled.

    Raises:
        RateLimitedAppError: When the caller exhausted its budget.
    """

    if not settings.app.rate_limit_enabled:
        return None

    ip = client_key(request)
    result = limiter.check(ip)
    if not result.limited:
        return result

    now = limiter.now_ms()
    minutes = result.minutes_until_reset(now)
    logger.warning(
        "contact.rate_limited",
        extra={
            "client_ip_anon": anonymize_ip(ip),
            "limit": limiter.limit,
            "minutes_until_reset": minutes,
        },
    )

    raise RateLimitedAppError(
        code="rate_limited",
        message=f"Too many submissions. Please try again in {minutes} minutes.",
        details={
            "retry_after": minutes * 60,
            "limit": limiter.limit,
            "reset_time": format_reset_time(result.reset_time),
        },
    )
