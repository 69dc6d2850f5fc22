"""Redis-backed timestamp store (shared across application instances).

Each key maps to a sorted set whose members are unique request ids scored by
their epoch-millisecond timestamp. Operations are independent round trips,
not a transaction: two concurrent checks on one key may both be admitted.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

import redis
from redis.backoff import NoBackoff
from redis.exceptions import RedisError
from redis.retry import Retry

from app.adapters.rate_limit.base import Clock, TimestampStore
from app.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisTimestampStore(TimestampStore):
    """Timestamp store backed by Redis sorted sets.

    Readiness is tracked locally so an outage costs one timeout, not one per
    request: after a failure the store reports itself unavailable until
    ``retry_interval_seconds`` have passed, then probes with a PING.
    """

    name = "redis"

    def __init__(
        self,
        client: redis.Redis,
        *,
        key_prefix: str = "ratelimit:contact:",
        retry_interval_seconds: float = 30.0,
        clock: Clock = time.time,
    ) -> None:
        if retry_interval_seconds < 0:
            raise ValueError("retry_interval_seconds must be >= 0")

        self._client = client
        self._key_prefix = key_prefix
        self._retry_interval = retry_interval_seconds
        self._clock = clock
        self._ready = False
        self._retry_at = 0.0

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        socket_timeout_seconds: float = 2.0,
        connect_timeout_seconds: float = 2.0,
        **kwargs: Any,
    ) -> "RedisTimestampStore":
        """Build a store with a client whose every command is time-bounded and tried once."""

        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout_seconds,
            socket_connect_timeout=connect_timeout_seconds,
            retry=Retry(NoBackoff(), 0),
            retry_on_timeout=False,
            decode_responses=True,
        )
        return cls(client, **kwargs)

    def connect(self) -> bool:
        """Ping Redis once and record whether it is ready.

        Returns:
            True when Redis answered the ping.
        """

        try:
            self._client.ping()
        except (RedisError, OSError) as exc:
            self._mark_unavailable("ping", exc)
            return False

        if not self._ready:
            logger.info("rate_limit.store_ready", extra={"store": self.name})
        self._ready = True
        return True

    def is_available(self) -> bool:
        if self._ready:
            return True
        if self._clock() < self._retry_at:
            return False
        return self.connect()

    def record(self, key: str, timestamp_ms: int, request_id: str) -> None:
        member = f"{timestamp_ms}-{request_id}"
        self._call("record", lambda: self._client.zadd(self._key(key), {member: timestamp_ms}))

    def prune(self, key: str, min_timestamp_ms: int) -> None:
        self._call(
            "prune",
            lambda: self._client.zremrangebyscore(self._key(key), "-inf", min_timestamp_ms),
        )

    def count(self, key: str) -> int:
        return int(self._call("count", lambda: self._client.zcard(self._key(key))))

    def oldest(self, key: str) -> int | None:
        entries = self._call(
            "oldest",
            lambda: self._client.zrange(self._key(key), 0, 0, withscores=True),
        )
        try:
            _member, score = entries[0]
            return int(score)
        except (TypeError, ValueError, IndexError):
            return None

    def set_expiry(self, key: str, seconds: int) -> None:
        self._call("set_expiry", lambda: self._client.expire(self._key(key), seconds))

    def clear(self, key: str) -> None:
        # DEL on a missing key returns 0, which is still a successful reset.
        self._call("clear", lambda: self._client.delete(self._key(key)))

    def close(self) -> None:
        try:
            self._client.close()
        except (RedisError, OSError) as exc:
            logger.warning(
                "rate_limit.store_close_failed",
                extra={"store": self.name, "error_type": type(exc).__name__},
            )
        self._ready = False

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def _call(self, operation: str, func: Callable[[], T]) -> T:
        try:
            return func()
        except (RedisError, OSError) as exc:
            self._mark_unavailable(operation, exc)
            raise StoreUnavailableError(
                code="store_unavailable",
                message=f"Redis {operation} failed: {type(exc).__name__}",
                details={"store": self.name, "operation": operation},
            ) from exc

    def _mark_unavailable(self, operation: str, exc: BaseException) -> None:
        self._ready = False
        self._retry_at = self._clock() + self._retry_interval
        logger.warning(
            "rate_limit.store_unavailable",
            extra={
                "store": self.name,
                "operation": operation,
                "error_type": type(exc).__name__,
                "retry_in_s": self._retry_interval,
            },
        )
