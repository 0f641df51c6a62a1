"""Pydantic schemas for rate limit responses."""

from __future__ import annotations

from pydantic import BaseModel, Field

from virelle.adapters.rate_limit.base import RateLimitStatus
from virelle.services.rate_limits import RateLimitPreset


class RateLimitPresetResponse(BaseModel):
    """Public description of a rate limit preset."""

    name: str = Field(..., description="Preset identifier used in URLs (e.g., 'heavy_ai').")
    action: str = Field(..., description="Action category counted by the limiter.")
    max_requests: int = Field(..., description="Requests admitted per window.")
    window_ms: int = Field(..., description="Window length in milliseconds.")
    description: str = Field("", description="What the preset guards.")

    @classmethod
    def from_preset(cls, preset: RateLimitPreset) -> "RateLimitPresetResponse":
        return cls(
            name=preset.name,
            action=preset.action,
            max_requests=preset.max_requests,
            window_ms=preset.window_ms,
            description=preset.description,
        )


class RateLimitStatusResponse(BaseModel):
    """Current usage of one preset for the calling user."""

    preset: str = Field(..., description="Preset the snapshot refers to.")
    action: str = Field(..., description="Action category counted by the limiter.")
    limit: int = Field(..., description="Requests admitted per window.")
    count: int = Field(
        ...,
        description="Requests counted in the live window, rejected ones included (0 if none).",
    )
    remaining: int = Field(..., description="Requests left before throttling.")
    reset_at: int | None = Field(
        None,
        description="Epoch milliseconds when the live window expires; null when no window is open.",
    )
    retry_after_seconds: int | None = Field(
        None,
        description="Seconds to wait before retrying when the budget is exhausted.",
    )

    @classmethod
    def from_status(cls, preset: RateLimitPreset, status: RateLimitStatus) -> "RateLimitStatusResponse":
        return cls(
            preset=preset.name,
            action=status.action,
            limit=status.limit,
            count=status.count,
            remaining=status.remaining,
            reset_at=status.reset_at,
            retry_after_seconds=status.retry_after_seconds,
        )
