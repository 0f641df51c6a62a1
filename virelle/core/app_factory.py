"""Application factory for the FastAPI app.

Centralizes app construction (lifespan, middleware, handlers, routers) so
tests can build isolated apps, each with its own rate limiter.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from virelle.adapters.rate_limit.base import AbstractRateLimiter
from virelle.adapters.rate_limit.in_memory import InMemoryRateLimiter
from virelle.api.routes import health_router, rate_limits_router
from virelle.core.config import settings
from virelle.core.exception_handlers import setup_exception_handlers
from virelle.core.ip_rate_limit import build_route_limits, ip_rate_limit_middleware
from virelle.core.logging import configure_logging
from virelle.core.middleware import request_id_middleware
from virelle.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


def create_app(
    limiter: AbstractRateLimiter | None = None,
    ip_limiter: AbstractRateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        limiter: Optional per-user limiter to install instead of a fresh
            in-memory one. Its sweep is started and stopped with the app.
        ip_limiter: Optional per-IP route limiter, handled the same way.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if limiter is not None:
            rate_limiter = limiter
        else:
            rate_limiter = InMemoryRateLimiter(
                sweep_interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
            )
        if ip_limiter is not None:
            ip_rate_limiter = ip_limiter
        else:
            ip_rate_limiter = InMemoryRateLimiter(
                sweep_interval_seconds=settings.app.ip_rate_limit_sweep_interval_seconds,
            )
        app.state.rate_limiter = rate_limiter
        app.state.ip_rate_limiter = ip_rate_limiter
        app.state.route_limits = build_route_limits(settings.app)
        rate_limiter.start()
        ip_rate_limiter.start()
        logger.info("Virelle rate limit service started")
        try:
            yield
        finally:
            ip_rate_limiter.stop()
            rate_limiter.stop()
            logger.info("Virelle rate limit service shut down")

    app = FastAPI(
        title="Virelle Studios Rate Limits",
        description=(
            "Per-user rate limits for Virelle Studios' AI generation, heavy "
            "generation and upload endpoints. Callers are identified by the "
            "X-User-Id header; throttled requests receive HTTP 429 with a "
            "Retry-After hint."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    # Middleware; the last one added runs first, so request ids cover 429s too
    app.middleware("http")(ip_rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(rate_limits_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
