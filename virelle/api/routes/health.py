from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check used by load balancers and monitoring.

    Also reports whether the rate limiter's background sweep is running, which
    only happens while the application lifespan is active.
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    return {
        "status": "ok",
        "rate_limiter": {
            "initialized": limiter is not None,
            "sweeper_running": bool(getattr(limiter, "is_running", False)),
        },
    }
