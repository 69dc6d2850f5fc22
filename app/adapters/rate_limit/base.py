"""Rate limiter interfaces.

The API should depend on these abstractions (not the concrete implementations)
so the shared store (Redis) and the local fallback stay interchangeable.

All timestamps crossing these interfaces are UNIX epoch milliseconds.
"""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

Clock = Callable[[], float]
"""Time source returning UNIX time in seconds (e.g. ``time.time``)."""


def now_ms(clock: Clock = time.time) -> int:
    """Return the clock's current time in whole epoch milliseconds."""

    return int(clock() * 1000)


@dataclass(frozen=True)
class RateLimitResult:
    """Decision returned by a rate limit check or status read.

    Attributes:
        limited: Whether the caller exceeded its budget.
        remaining: Requests left in the current window (0 when limited).
        reset_time: UNIX epoch milliseconds when the budget frees up again.
    """

    limited: bool
    remaining: int
    reset_time: int

    def retry_after_seconds(self, at_ms: int) -> int:
        """Seconds from ``at_ms`` until ``reset_time`` (never negative)."""

        return max(0, math.ceil((self.reset_time - at_ms) / 1000))

    def minutes_until_reset(self, at_ms: int) -> int:
        """Whole minutes until reset, rounded up and at least 1."""

        return max(1, math.ceil((self.reset_time - at_ms) / 60_000))


class TimestampStore(ABC):
    """Keyed collection of request timestamps ordered by time.

    Implementations must raise ``StoreUnavailableError`` for connectivity,
    timeout or command failures and nothing else for those conditions.
    """

    name: str = "store"

    @abstractmethod
    def record(self, key: str, timestamp_ms: int, request_id: str) -> None:
        """Record one request for ``key`` at ``timestamp_ms``."""
        raise NotImplementedError

    @abstractmethod
    def prune(self, key: str, min_timestamp_ms: int) -> None:
        """Drop entries at or before ``min_timestamp_ms``."""
        raise NotImplementedError

    @abstractmethod
    def count(self, key: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def oldest(self, key: str) -> int | None:
        """Timestamp of the oldest entry, or None when unknown/empty."""
        raise NotImplementedError

    @abstractmethod
    def set_expiry(self, key: str, seconds: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self, key: str) -> None:
        """Remove every entry for ``key``. A missing key is not an error."""
        raise NotImplementedError

    def is_available(self) -> bool:
        """Cheap probe telling whether the store is worth trying right now."""

        return True

    def close(self) -> None:
        """Release any held resources."""


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, key: str) -> RateLimitResult:
        """Record one attempt for ``key`` and decide whether it is admitted.

        Args:
            key: Caller identifier (e.g. client IP). Any string is accepted.

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError

    @abstractmethod
    def status(self, key: str) -> RateLimitResult:
        """Report the current state for ``key`` without recording anything."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> bool:
        """Forget every recorded attempt for ``key``."""
        raise NotImplementedError
