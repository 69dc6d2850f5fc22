"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    retry_after: int
    limit: int
    reset_time: str
    store: str
    operation: str


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class RateLimitedAppError(AppError):
    """Raised when a caller exhausted its submission budget.

    ``details["retry_after"]`` carries the number of seconds the caller
    should wait; it is echoed in the ``Retry-After`` response header.
    """


class StoreUnavailableError(AppError):
    """Raised by rate limit stores on connectivity, timeout or command errors.

    The limiter catches exactly this type to fall back to the local store, so
    programming errors raised by a store are never mistaken for an outage.
    """
