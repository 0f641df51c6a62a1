"""Tests for the preset rate limit bindings."""

import pytest

from virelle.core.errors import RateLimitExceededError, ValidationAppError
from virelle.services.rate_limits import (
    AI_GENERATION,
    HEAVY_AI,
    PRESETS,
    UPLOAD,
    get_preset,
    rate_limit_ai,
    rate_limit_heavy_ai,
    rate_limit_upload,
)


@pytest.mark.parametrize(
    "preset, action, max_requests",
    [
        (AI_GENERATION, "ai-generation", 10),
        (UPLOAD, "upload", 20),
        (HEAVY_AI, "heavy-ai", 3),
    ],
)
def test_preset_bindings(preset, action, max_requests) -> None:
    assert preset.action == action
    assert preset.max_requests == max_requests
    assert preset.window_ms == 60_000


def test_registry_by_name() -> None:
    assert set(PRESETS) == {"ai", "upload", "heavy_ai"}
    assert get_preset("heavy_ai") is HEAVY_AI


def test_unknown_preset_raises_validation_error() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        get_preset("unlimited")

    assert exc_info.value.code == "unknown_rate_limit_preset"
    assert exc_info.value.details["preset"] == "unlimited"


@pytest.mark.parametrize(
    "wrapper, allowed",
    [
        (rate_limit_ai, 10),
        (rate_limit_upload, 20),
        (rate_limit_heavy_ai, 3),
    ],
)
def test_wrappers_enforce_their_ceiling(limiter, wrapper, allowed) -> None:
    for _ in range(allowed):
        wrapper(limiter, 42)

    with pytest.raises(RateLimitExceededError) as exc_info:
        wrapper(limiter, 42)

    assert exc_info.value.retry_after_seconds == 60


def test_presets_are_tracked_independently(limiter) -> None:
    for _ in range(3):
        rate_limit_heavy_ai(limiter, 42)
    with pytest.raises(RateLimitExceededError):
        rate_limit_heavy_ai(limiter, 42)

    rate_limit_ai(limiter, 42)
    rate_limit_upload(limiter, 42)


def test_preset_status_reflects_usage(limiter) -> None:
    HEAVY_AI.check(limiter, 9)

    status = HEAVY_AI.status(limiter, 9)

    assert status.action == "heavy-ai"
    assert status.limit == 3
    assert status.remaining == 2
