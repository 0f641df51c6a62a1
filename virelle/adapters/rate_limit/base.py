"""Rate limiter interfaces.

Request handlers should depend on this abstraction (not the concrete
implementation) so the in-process store can later be swapped for a shared
backend (e.g., Redis) without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class RateLimitEntry:
    """Mutable window state for one ``"<user_id>:<action>"`` key.

    Attributes:
        count: Requests observed in the current window, rejected ones included.
        reset_at: Epoch milliseconds at which the window expires.
    """

    count: int
    reset_at: int

    def is_expired(self, now_ms: int) -> bool:
        """Return True once ``now_ms`` is strictly past the window end."""
        return now_ms > self.reset_at


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only snapshot of a key's usage.

    Attributes:
        action: Action category the snapshot refers to.
        limit: Configured request ceiling for the window.
        count: Requests counted in the live window (0 when none is open).
        remaining: Requests still admitted before throttling kicks in.
        reset_at: Epoch milliseconds when the live window expires, or None.
        retry_after_seconds: Seconds until reset when blocked, else None.
    """

    action: str
    limit: int
    count: int
    remaining: int
    reset_at: int | None
    retry_after_seconds: int | None


def build_key(user_id: int | str, action: str) -> str:
    """Build the composite store key for a user/action pair."""
    return f"{user_id}:{action}"


class AbstractRateLimiter(ABC):
    """Interface for per-user, per-action rate limiters."""

    @abstractmethod
    def check(self, user_id: int | str, action: str, max_requests: int, window_ms: int) -> None:
        """Count one request and raise when the window ceiling is exceeded.

        Args:
            user_id: Stable caller identifier.
            action: Category discriminator (e.g., "ai-generation").
            max_requests: Positive request ceiling per window.
            window_ms: Positive window length in milliseconds.

        Raises:
            RateLimitExceededError: When the request exceeds the ceiling.
            ValueError: When arguments are invalid.
        """
        raise NotImplementedError

    @abstractmethod
    def status(self, user_id: int | str, action: str, max_requests: int) -> RateLimitStatus:
        """Return the current usage for a key without counting a request."""
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Drop expired windows and return how many were removed."""
        raise NotImplementedError

    def start(self) -> None:
        """Start background maintenance, if the backend needs any."""

    def stop(self, timeout: float | None = None) -> None:
        """Stop background maintenance started by :meth:`start`."""
