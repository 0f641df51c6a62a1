"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what is relevant to it.
    """

    code: str
    message: str
    hint: str
    action: str
    preset: str
    limit: int
    retry_after: int
    http_status: int
    request_id: str
    context: NotRequired[dict[str, Any]]


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


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class RateLimitExceededError(AppError):
    """Raised when a caller exceeds the request ceiling of a rate limit window.

    The retry hint is rounded up to whole seconds so clients never retry
    before the window actually resets.
    """

    def __init__(self, *, action: str, retry_after_seconds: int, limit: int | None = None) -> None:
        details: ErrorDetails = {"action": action, "retry_after": retry_after_seconds}
        if limit is not None:
            details["limit"] = limit
        super().__init__(
            code="too_many_requests",
            message=(
                f"Rate limit exceeded. Please try again in {retry_after_seconds} seconds."
            ),
            details=details,
        )
        self.action = action
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
