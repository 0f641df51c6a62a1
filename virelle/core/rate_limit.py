"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency factory only.
- Swap-friendly: the limiter lives on ``app.state`` behind an abstract
  interface, so tests and other backends can inject their own.
- Per-user budgets: callers are identified by the user id header set by the
  upstream gateway; each preset is tracked independently per user.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request

from virelle.adapters.rate_limit.base import AbstractRateLimiter
from virelle.core.config import settings
from virelle.core.errors import ValidationAppError
from virelle.services.rate_limits import RateLimitPreset

logger = logging.getLogger(__name__)


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter owned by the running application.

    Raises:
        RuntimeError: If the application lifespan has not installed one.
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("rate limiter is not initialized; is the app lifespan running?")
    return limiter


def get_user_id(request: Request) -> int:
    """Read the caller's user id from the configured header.

    Raises:
        ValidationAppError: If the header is missing or not a positive integer.
    """

    header_name = settings.app.user_id_header
    raw = request.headers.get(header_name)
    if not raw:
        raise ValidationAppError(
            code="missing_user_id",
            message=f"Missing user id. Provide the {header_name} header.",
        )
    try:
        user_id = int(raw.strip())
    except ValueError:
        user_id = 0
    if user_id < 1:
        raise ValidationAppError(
            code="invalid_user_id",
            message=f"Invalid user id in {header_name} header.",
            details={"hint": "User ids are positive integers"},
        )
    return user_id


def enforce_rate_limit(preset: RateLimitPreset) -> Callable[[Request], None]:
    """Build a FastAPI dependency that charges one request against ``preset``.

    Usage:
        @router.post("/trailers", dependencies=[Depends(enforce_rate_limit(HEAVY_AI))])
        def create_trailer(): ...

    The returned dependency is synchronous; FastAPI runs it in its threadpool,
    which is why the limiter serializes access with a lock.

    Raises:
        RateLimitExceededError: Propagated to the exception handlers (HTTP 429).
        ValidationAppError: When the caller's user id is missing or malformed.
    """

    def _dependency(request: Request) -> None:
        if not settings.app.rate_limit_enabled:
            return

        user_id = get_user_id(request)
        limiter = get_rate_limiter(request)
        preset.check(limiter, user_id)

        logger.debug(
            "rate_limit.allowed",
            extra={
                "preset": preset.name,
                "action": preset.action,
                "user_id": user_id,
                "limit": preset.max_requests,
                "window_ms": preset.window_ms,
            },
        )

    _dependency.__name__ = f"enforce_rate_limit_{preset.name}"
    return _dependency
