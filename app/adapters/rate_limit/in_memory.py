"""In-memory timestamp store used as the local fallback.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
  This is best-effort enforcement while the shared store is unreachable.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import logging
import threading
import time

from app.adapters.rate_limit.base import Clock, TimestampStore

logger = logging.getLogger(__name__)


class InMemoryTimestampStore(TimestampStore):
    """Timestamp store keeping a list of epoch-millisecond stamps per key.

    Pruning bounds each list to the window, but keys whose lists decayed to
    empty would otherwise stay in the map forever. An amortized sweep on
    access removes them at most once per ``sweep_interval_seconds``.
    """

    name = "memory"

    def __init__(
        self,
        *,
        sweep_interval_seconds: float = 300,
        clock: Clock = time.time,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            sweep_interval_seconds: Minimum interval between sweeps of empty keys.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If sweep_interval_seconds is negative.
        """
        if sweep_interval_seconds < 0:
            raise ValueError("sweep_interval_seconds must be >= 0")

        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._timestamps_by_key: dict[str, list[int]] = {}
        self._last_sweep = clock()

    def record(self, key: str, timestamp_ms: int, request_id: str) -> None:
        # Only this process writes here, so the bare timestamp cannot collide.
        with self._lock:
            self._timestamps_by_key.setdefault(key, []).append(timestamp_ms)
            self._maybe_sweep_locked()

    def prune(self, key: str, min_timestamp_ms: int) -> None:
        with self._lock:
            timestamps = self._timestamps_by_key.get(key)
            if timestamps is None:
                return
            self._timestamps_by_key[key] = [t for t in timestamps if t > min_timestamp_ms]
            self._maybe_sweep_locked()

    def count(self, key: str) -> int:
        with self._lock:
            return len(self._timestamps_by_key.get(key, ()))

    def oldest(self, key: str) -> int | None:
        with self._lock:
            timestamps = self._timestamps_by_key.get(key)
            return min(timestamps) if timestamps else None

    def set_expiry(self, key: str, seconds: int) -> None:
        # Pruning already bounds growth; nothing to do.
        return None

    def clear(self, key: str) -> None:
        with self._lock:
            self._timestamps_by_key.pop(key, None)

    def sweep(self) -> int:
        """Remove keys with no timestamps left.

        Returns:
            Number of keys removed.
        """

        with self._lock:
            return self._sweep_locked()

    def key_count(self) -> int:
        """Number of keys currently tracked (including empty ones)."""

        with self._lock:
            return len(self._timestamps_by_key)

    def _maybe_sweep_locked(self) -> None:
        if self._clock() - self._last_sweep >= self._sweep_interval:
            self._sweep_locked()

    def _sweep_locked(self) -> int:
        empty_keys = [k for k, stamps in self._timestamps_by_key.items() if not stamps]
        for key in empty_keys:
            del self._timestamps_by_key[key]
        self._last_sweep = self._clock()

        if empty_keys:
            logger.debug(
                "rate_limit.fallback_sweep",
                extra={
                    "removed_keys": len(empty_keys),
                    "tracked_keys": len(self._timestamps_by_key),
                },
            )
        return len(empty_keys)
