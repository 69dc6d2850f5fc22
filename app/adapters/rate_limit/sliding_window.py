"""Sliding-window rate limiter with a local fallback store.

The decision logic is store-agnostic. Each call runs against the primary
(shared) store unless it is known to be down; a ``StoreUnavailableError``
raised mid-call re-runs the whole operation on the fallback store for that
call only. There is no persistent mode switch.
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from typing import Callable, TypeVar

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    Clock,
    RateLimitResult,
    TimestampStore,
    now_ms,
)
from app.adapters.rate_limit.in_memory import InMemoryTimestampStore
from app.core.errors import StoreUnavailableError
from app.core.logging import SECURITY

logger = logging.getLogger(__name__)

MAX_REQUESTS_PER_WINDOW = 3
WINDOW_SIZE_SECONDS = 60 * 60

T = TypeVar("T")


def _hash_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing the caller."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests in the trailing window per key.

    Every check records the attempt before counting, and a request is
    rejected when the count exceeds the limit. Exactly ``limit`` requests are
    admitted per window; the rejected attempt stays recorded.

    Important:
        While the primary store is unreachable the fallback store enforces
        the limit per process only, so N instances admit up to N times the
        limit during an outage.
    """

    def __init__(
        self,
        primary: TimestampStore,
        fallback: TimestampStore | None = None,
        *,
        limit: int = MAX_REQUESTS_PER_WINDOW,
        window_seconds: int = WINDOW_SIZE_SECONDS,
        clock: Clock = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            primary: Store tried first on every call (usually Redis).
            fallback: Store used when the primary is unavailable. Defaults to
                a fresh in-memory store.
            limit: Maximum number of requests per window.
            window_seconds: Size of the sliding window in seconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._primary = primary
        self._fallback = fallback if fallback is not None else InMemoryTimestampStore(clock=clock)
        self._limit = limit
        self._window_seconds = window_seconds
        self._window_ms = window_seconds * 1000
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def now_ms(self) -> int:
        return now_ms(self._clock)

    def check(self, key: str) -> RateLimitResult:
        """Record one attempt for ``key`` and decide whether it is admitted.

        Never raises on store failures: the fallback store answers instead.

        Args:
            key: Caller identifier (e.g. client IP). Not validated.

        Returns:
            RateLimitResult for this attempt.
        """

        result = self._run("check", key, lambda store: self._decide(store, key, record=True))
        if result.limited:
            logger.log(
                SECURITY,
                "rate_limit.exceeded",
                extra={
                    "key_hash": _hash_key(key),
                    "limit": self._limit,
                    "window_s": self._window_seconds,
                    "reset_time_ms": result.reset_time,
                },
            )
        return result

    def status(self, key: str) -> RateLimitResult:
        """Report the state for ``key`` without recording an attempt."""

        return self._run("status", key, lambda store: self._decide(store, key, record=False))

    def reset(self, key: str) -> bool:
        """Clear every recorded attempt for ``key``.

        The fallback store is cleared as well so attempts recorded during an
        outage cannot resurface in the next one.

        Returns:
            True when the key is cleared (including when it never existed),
            False when no store could execute the clear.
        """

        try:
            self._run("reset", key, lambda store: store.clear(key))
            if self._fallback is not self._primary:
                self._fallback.clear(key)
        except StoreUnavailableError as exc:
            logger.error(
                "rate_limit.reset_failed",
                extra={"key_hash": _hash_key(key), "error_code": exc.code},
            )
            return False
        return True

    def active_backend(self) -> str:
        """Name of the store the next call would run against."""

        if self._primary is self._fallback or self._primary.is_available():
            return self._primary.name
        return self._fallback.name

    def close(self) -> None:
        self._primary.close()
        if self._fallback is not self._primary:
            self._fallback.close()

    def _decide(self, store: TimestampStore, key: str, *, record: bool) -> RateLimitResult:
        now = self.now_ms()
        if record:
            store.record(key, now, uuid.uuid4().hex)
        store.prune(key, now - self._window_ms)
        count = store.count(key)
        store.set_expiry(key, self._window_seconds)

        if count > self._limit:
            oldest = store.oldest(key)
            reset_from = oldest if oldest is not None else now
            return RateLimitResult(
                limited=True,
                remaining=0,
                reset_time=reset_from + self._window_ms,
            )

        return RateLimitResult(
            limited=False,
            remaining=max(0, self._limit - count),
            reset_time=now + self._window_ms,
        )

    def _run(self, operation: str, key: str, func: Callable[[TimestampStore], T]) -> T:
        primary = self._primary
        if primary is self._fallback:
            return func(primary)

        if primary.is_available():
            try:
                return func(primary)
            except StoreUnavailableError as exc:
                logger.warning(
                    "rate_limit.fallback_engaged",
                    extra={
                        "operation": operation,
                        "key_hash": _hash_key(key),
                        "primary": primary.name,
                        "fallback": self._fallback.name,
                        "error_code": exc.code,
                    },
                )
        else:
            logger.debug(
                "rate_limit.primary_skipped",
                extra={"operation": operation, "primary": primary.name},
            )

        return func(self._fallback)
