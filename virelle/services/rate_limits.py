"""Preset rate limits for Virelle's expensive endpoints.

Each preset fixes the action category, ceiling and window of a limiter check
so request handlers only supply the caller's user id.
"""

from __future__ import annotations

from dataclasses import dataclass

from virelle.adapters.rate_limit.base import AbstractRateLimiter, RateLimitStatus
from virelle.core.errors import ValidationAppError

ONE_MINUTE_MS = 60 * 1000


@dataclass(frozen=True)
class RateLimitPreset:
    """Named binding of an action to its request ceiling and window."""

    name: str
    action: str
    max_requests: int
    window_ms: int
    description: str = ""

    def check(self, limiter: AbstractRateLimiter, user_id: int | str) -> None:
        limiter.check(user_id, self.action, self.max_requests, self.window_ms)

    def status(self, limiter: AbstractRateLimiter, user_id: int | str) -> RateLimitStatus:
        return limiter.status(user_id, self.action, self.max_requests)


AI_GENERATION = RateLimitPreset(
    name="ai",
    action="ai-generation",
    max_requests=10,
    window_ms=ONE_MINUTE_MS,
    description="AI generation endpoints: 10 requests per minute",
)
UPLOAD = RateLimitPreset(
    name="upload",
    action="upload",
    max_requests=20,
    window_ms=ONE_MINUTE_MS,
    description="File upload endpoints: 20 requests per minute",
)
HEAVY_AI = RateLimitPreset(
    name="heavy_ai",
    action="heavy-ai",
    max_requests=3,
    window_ms=ONE_MINUTE_MS,
    description="Heavy generation (quick generate, trailers): 3 requests per minute",
)

PRESETS: dict[str, RateLimitPreset] = {
    preset.name: preset for preset in (AI_GENERATION, UPLOAD, HEAVY_AI)
}


def get_preset(name: str) -> RateLimitPreset:
    """Look up a preset by name.

    Raises:
        ValidationAppError: If no preset is registered under ``name``.
    """
    try:
        return PRESETS[name]
    except KeyError:
        raise ValidationAppError(
            code="unknown_rate_limit_preset",
            message=f"Unknown rate limit preset: {name}",
            details={"preset": name, "hint": f"Use one of: {', '.join(sorted(PRESETS))}"},
        ) from None


def rate_limit_ai(limiter: AbstractRateLimiter, user_id: int | str) -> None:
    AI_GENERATION.check(limiter, user_id)


def rate_limit_upload(limiter: AbstractRateLimiter, user_id: int | str) -> None:
    UPLOAD.check(limiter, user_id)


def rate_limit_heavy_ai(limiter: AbstractRateLimiter, user_id: int | str) -> None:
    HEAVY_AI.check(limiter, user_id)
