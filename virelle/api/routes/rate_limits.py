from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from virelle.adapters.rate_limit.base import AbstractRateLimiter
from virelle.core.config import settings
from virelle.core.rate_limit import get_rate_limiter, get_user_id
from virelle.schemas.rate_limit import RateLimitPresetResponse, RateLimitStatusResponse
from virelle.services.rate_limits import PRESETS, get_preset

router = APIRouter(tags=["Rate Limits"])


@router.get("/rate-limits/presets", response_model=list[RateLimitPresetResponse])
def list_presets() -> list[RateLimitPresetResponse]:
    """List the configured rate limit presets."""

    return [RateLimitPresetResponse.from_preset(preset) for preset in PRESETS.values()]


@router.post("/rate-limits/{preset_name}", response_model=RateLimitStatusResponse)
def consume_rate_limit(
    preset_name: str,
    user_id: Annotated[int, Depends(get_user_id)],
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
) -> RateLimitStatusResponse:
    """Charge one request for the caller against a preset.

    Upstream handlers call this before running an expensive operation. When
    ``rate_limit_enabled`` is off nothing is counted and the current usage is
    returned as is.

    Returns:
        RateLimitStatusResponse: Usage after the request was counted.

    Raises:
        RateLimitExceededError: Mapped to 429 with a Retry-After header.
        ValidationAppError: Unknown preset or missing user id (400).
    """
    preset = get_preset(preset_name)
    if settings.app.rate_limit_enabled:
        preset.check(limiter, user_id)
    return RateLimitStatusResponse.from_status(preset, preset.status(limiter, user_id))


@router.get("/rate-limits/{preset_name}", response_model=RateLimitStatusResponse)
def get_rate_limit_status(
    preset_name: str,
    user_id: Annotated[int, Depends(get_user_id)],
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
) -> RateLimitStatusResponse:
    """Report the caller's usage of a preset without counting a request."""

    preset = get_preset(preset_name)
    return RateLimitStatusResponse.from_status(preset, preset.status(limiter, user_id))
