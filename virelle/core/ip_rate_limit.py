"""Per-client-IP ceilings on sensitive route prefixes.

Complements the per-user presets: requests are throttled by client IP before
any user is known, which covers login, registration and password reset as
well as a general ceiling on the whole API.

Every matching route limit is charged for each request, each in its own
window: a login attempt counts against the login ceiling and the general one.
The limits share one :class:`InMemoryRateLimiter` installed by the app
lifespan on ``app.state.ip_rate_limiter``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request, Response

from virelle.adapters.rate_limit.base import AbstractRateLimiter
from virelle.core.config import AppSettings, settings
from virelle.core.errors import RateLimitExceededError
from virelle.core.exception_handlers import rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteLimit:
    """Per-IP request ceiling for every path under ``prefix``."""

    prefix: str
    max_requests: int
    window_ms: int

    @property
    def action(self) -> str:
        return f"route:{self.prefix}"

    def matches(self, path: str) -> bool:
        base = self.prefix.rstrip("/")
        return path == base or path.startswith(base + "/")


def build_route_limits(app_settings: AppSettings) -> list[RouteLimit]:
    """Build route limits from settings, specific prefixes before the global one."""

    window_ms = app_settings.ip_rate_limit_window_ms
    limits = [
        RouteLimit(prefix=prefix, max_requests=max_requests, window_ms=window_ms)
        for prefix, max_requests in sorted(
            app_settings.ip_rate_limit_routes.items(), key=lambda item: -len(item[0])
        )
    ]
    limits.append(
        RouteLimit(
            prefix=app_settings.ip_rate_limit_global_prefix,
            max_requests=app_settings.ip_rate_limit_global_max,
            window_ms=window_ms,
        )
    )
    return limits


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def check_route_limits(
    limiter: AbstractRateLimiter, route_limits: list[RouteLimit], ip: str, path: str
) -> None:
    """Charge one request from ``ip`` against every limit covering ``path``.

    Raises:
        RateLimitExceededError: For the first limit whose ceiling is exceeded.
    """

    for route_limit in route_limits:
        if route_limit.matches(path):
            limiter.check(ip, route_limit.action, route_limit.max_requests, route_limit.window_ms)


async def ip_rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware rejecting over-limit clients with 429 before routing.

    Middleware runs outside FastAPI's exception handlers, so the rejection is
    rendered here with the same handler the routes use.
    """

    limiter: AbstractRateLimiter | None = getattr(request.app.state, "ip_rate_limiter", None)
    route_limits: list[RouteLimit] = getattr(request.app.state, "route_limits", [])
    if not settings.app.ip_rate_limit_enabled or limiter is None:
        return await call_next(request)

    ip = client_ip(request)
    try:
        check_route_limits(limiter, route_limits, ip, request.url.path)
    except RateLimitExceededError as exc:
        logger.warning(
            "ip_rate_limit.exceeded",
            extra={"client_ip": ip, "path": request.url.path, "action": exc.action},
        )
        return await rate_limit_exceeded_handler(request, exc)

    return await call_next(request)
