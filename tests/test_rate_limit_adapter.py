"""Unit tests for the in-memory rate limiter adapter."""

import threading
from unittest.mock import Mock

import pytest

from virelle.adapters.rate_limit.in_memory import InMemoryRateLimiter
from virelle.core.errors import RateLimitExceededError


def test_allows_up_to_limit_in_same_window(limiter, clock) -> None:
    for _ in range(3):
        limiter.check(1, "upload", 3, 60_000)

    with pytest.raises(RateLimitExceededError):
        limiter.check(1, "upload", 3, 60_000)


def test_first_request_opens_window_with_count_one(limiter, clock) -> None:
    limiter.check(7, "ai-generation", 10, 60_000)

    entry = limiter.get_entry(7, "ai-generation")
    assert entry is not None
    assert entry.count == 1
    assert entry.reset_at == clock.current + 60_000


def test_rejected_requests_still_count(limiter) -> None:
    limiter.check(1, "heavy-ai", 1, 60_000)

    for _ in range(3):
        with pytest.raises(RateLimitExceededError):
            limiter.check(1, "heavy-ai", 1, 60_000)

    assert limiter.get_entry(1, "heavy-ai").count == 4


def test_window_scenario_with_retry_after(limiter, clock) -> None:
    start = clock.current

    limiter.check(5, "render", 3, 1000)
    clock.current = start + 100
    limiter.check(5, "render", 3, 1000)
    clock.current = start + 200
    limiter.check(5, "render", 3, 1000)

    clock.current = start + 300
    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.check(5, "render", 3, 1000)
    assert exc_info.value.retry_after_seconds == 1

    clock.current = start + 400
    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.check(5, "render", 3, 1000)
    assert exc_info.value.retry_after_seconds == 1
    assert exc_info.value.message == "Rate limit exceeded. Please try again in 1 seconds."

    clock.current = start + 1001
    limiter.check(5, "render", 3, 1000)
    assert limiter.get_entry(5, "render").count == 1


def test_retry_after_is_rounded_up_to_whole_seconds(limiter, clock) -> None:
    limiter.check(1, "upload", 1, 60_000)
    clock.advance(30_500)

    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.check(1, "upload", 1, 60_000)

    assert exc_info.value.retry_after_seconds == 30
    assert exc_info.value.code == "too_many_requests"
    assert exc_info.value.action == "upload"
    assert exc_info.value.details == {"action": "upload", "retry_after": 30, "limit": 1}


def test_window_still_open_at_exact_reset_time(limiter, clock) -> None:
    limiter.check(1, "upload", 1, 1000)
    clock.advance(1000)

    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.check(1, "upload", 1, 1000)
    assert exc_info.value.retry_after_seconds == 0

    clock.advance(1)
    limiter.check(1, "upload", 1, 1000)


def test_resets_after_expiry_regardless_of_prior_count(limiter, clock) -> None:
    limiter.check(1, "heavy-ai", 1, 10_000)
    for _ in range(5):
        with pytest.raises(RateLimitExceededError):
            limiter.check(1, "heavy-ai", 1, 10_000)

    clock.advance(10_001)
    limiter.check(1, "heavy-ai", 1, 10_000)

    entry = limiter.get_entry(1, "heavy-ai")
    assert entry.count == 1
    assert entry.reset_at == clock.current + 10_000


def test_isolated_by_action(limiter) -> None:
    limiter.check(1, "upload", 1, 60_000)
    with pytest.raises(RateLimitExceededError):
        limiter.check(1, "upload", 1, 60_000)

    limiter.check(1, "ai-generation", 1, 60_000)


def test_isolated_by_user(limiter) -> None:
    limiter.check(1, "upload", 1, 60_000)
    with pytest.raises(RateLimitExceededError):
        limiter.check(1, "upload", 1, 60_000)

    limiter.check(2, "upload", 1, 60_000)


def test_uses_default_clock_when_not_injected() -> None:
    limiter = InMemoryRateLimiter()

    limiter.check(1, "upload", 2, 60_000)
    limiter.check(1, "upload", 2, 60_000)
    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.check(1, "upload", 2, 60_000)

    assert 0 < exc_info.value.retry_after_seconds <= 60


def test_reads_clock_once_per_check() -> None:
    clock = Mock(return_value=5_000)
    limiter = InMemoryRateLimiter(clock=clock)

    limiter.check(1, "upload", 5, 1000)

    assert clock.call_count == 1


@pytest.mark.parametrize(
    "max_requests, window_ms",
    [
        (0, 60_000),
        (-1, 60_000),
        (1, 0),
        (1, -1000),
        (1.5, 60_000),
        (True, 60_000),
    ],
)
def test_invalid_limits_are_rejected(limiter, max_requests, window_ms) -> None:
    with pytest.raises(ValueError):
        limiter.check(1, "upload", max_requests, window_ms)

    assert len(limiter) == 0


def test_empty_action_is_rejected(limiter) -> None:
    with pytest.raises(ValueError):
        limiter.check(1, "", 1, 60_000)


def test_invalid_sweep_interval() -> None:
    with pytest.raises(ValueError):
        InMemoryRateLimiter(sweep_interval_seconds=0)


class TestStatus:
    def test_unknown_key_reports_full_budget(self, limiter) -> None:
        status = limiter.status(1, "upload", 20)

        assert status.count == 0
        assert status.remaining == 20
        assert status.reset_at is None
        assert status.retry_after_seconds is None
        assert len(limiter) == 0

    def test_reports_live_window_without_counting(self, limiter, clock) -> None:
        limiter.check(1, "upload", 3, 60_000)
        limiter.check(1, "upload", 3, 60_000)

        status = limiter.status(1, "upload", 3)
        again = limiter.status(1, "upload", 3)

        assert status == again
        assert status.count == 2
        assert status.remaining == 1
        assert status.reset_at == clock.current + 60_000

    def test_exhausted_budget_includes_retry_after(self, limiter, clock) -> None:
        limiter.check(1, "upload", 1, 60_000)
        clock.advance(15_000)

        status = limiter.status(1, "upload", 1)

        assert status.remaining == 0
        assert status.retry_after_seconds == 45

    def test_expired_window_reports_full_budget(self, limiter, clock) -> None:
        limiter.check(1, "upload", 1, 1000)
        clock.advance(1001)

        status = limiter.status(1, "upload", 1)

        assert status.count == 0
        assert status.remaining == 1


def test_concurrent_checks_count_every_call(clock) -> None:
    limiter = InMemoryRateLimiter(clock=clock)
    max_requests = 25
    attempts = 100
    admitted: list[int] = []
    rejected: list[int] = []
    lock = threading.Lock()

    def _worker(idx: int) -> None:
        try:
            limiter.check(1, "ai-generation", max_requests, 60_000)
        except RateLimitExceededError:
            with lock:
                rejected.append(idx)
        else:
            with lock:
                admitted.append(idx)

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(attempts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(admitted) == max_requests
    assert len(rejected) == attempts - max_requests
    assert limiter.get_entry(1, "ai-generation").count == attempts


def test_empty_limiter_is_truthy() -> None:
    limiter = InMemoryRateLimiter()

    assert len(limiter) == 0
    assert bool(limiter) is True
