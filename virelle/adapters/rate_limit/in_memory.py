"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit,
  and restarting the process resets every counter.
- Thread-safe: uses a lock around shared state.
- Windows start at a key's first request (not at wall-clock boundaries).
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

from virelle.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitEntry,
    RateLimitStatus,
    build_key,
)
from virelle.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _require_positive_int(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be an integer >= 1")


class InMemoryRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping one fixed window per ``(user_id, action)`` key.

    The request that opens a window is always admitted without a ceiling
    check and starts the count at 1; every later request in the same window
    increments the count and is rejected once it exceeds ``max_requests``.
    A window therefore admits ``max_requests`` requests.

    Expired entries are treated as absent on access, so correctness never
    depends on the background sweep. The sweep only bounds memory when many
    distinct keys are seen.

    Example:
        >>> with InMemoryRateLimiter() as limiter:
        ...     limiter.check(42, "upload", 20, 60_000)
    """

    def __init__(
        self,
        *,
        clock: Callable[[], int] = _now_ms,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the limiter.

        Args:
            clock: Time source returning epoch milliseconds.
            sweep_interval_seconds: Delay between background sweeps.

        Raises:
            ValueError: If sweep_interval_seconds is not positive.
        """
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")

        self._clock = clock
        self._sweep_interval_seconds = sweep_interval_seconds
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __bool__(self) -> bool:
        # An empty store is still a usable limiter.
        return True

    def __enter__(self) -> "InMemoryRateLimiter":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def sweep_interval_seconds(self) -> float:
        return self._sweep_interval_seconds

    @property
    def is_running(self) -> bool:
        """Whether the background sweeper thread is alive."""
        return self._sweeper is not None and self._sweeper.is_alive()

    def get_entry(self, user_id: int | str, action: str) -> RateLimitEntry | None:
        """Return a copy of the stored entry for a key, expired or not."""
        with self._lock:
            entry = self._entries.get(build_key(user_id, action))
            if entry is None:
                return None
            return RateLimitEntry(count=entry.count, reset_at=entry.reset_at)

    def check(self, user_id: int | str, action: str, max_requests: int, window_ms: int) -> None:
        """Count one request for ``user_id``/``action`` within the current window.

        Args:
            user_id: Stable caller identifier.
            action: Category discriminator (e.g., "ai-generation").
            max_requests: Request ceiling checked from the second request on.
            window_ms: Window length in milliseconds.

        Raises:
            RateLimitExceededError: When the incremented count exceeds
                ``max_requests``. Rejected requests still count.
            ValueError: If action is empty or the numeric limits are not
                positive integers.
        """
        if not isinstance(action, str) or not action:
            raise ValueError("action must be a non-empty string")
        _require_positive_int("max_requests", max_requests)
        _require_positive_int("window_ms", window_ms)

        key = build_key(user_id, action)

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or entry.is_expired(now):
                self._entries[key] = RateLimitEntry(count=1, reset_at=now + window_ms)
                logger.debug(
                    "rate_limit.window_opened",
                    extra={
                        "action": action,
                        "rate_limit_key": key,
                        "window_ms": window_ms,
                    },
                )
                return

            entry.count += 1
            if entry.count <= max_requests:
                return

            retry_after = math.ceil((entry.reset_at - now) / 1000)
            count = entry.count

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "action": action,
                "rate_limit_key": key,
                "count": count,
                "limit": max_requests,
                "retry_after_s": retry_after,
            },
        )
        raise RateLimitExceededError(
            action=action,
            retry_after_seconds=retry_after,
            limit=max_requests,
        )

    def status(self, user_id: int | str, action: str, max_requests: int) -> RateLimitStatus:
        """Return the live window usage for a key without counting a request."""
        _require_positive_int("max_requests", max_requests)

        with self._lock:
            now = self._clock()
            entry = self._entries.get(build_key(user_id, action))
            if entry is None or entry.is_expired(now):
                return RateLimitStatus(
                    action=action,
                    limit=max_requests,
                    count=0,
                    remaining=max_requests,
                    reset_at=None,
                    retry_after_seconds=None,
                )
            count, reset_at = entry.count, entry.reset_at

        remaining = max(0, max_requests - count)
        retry_after = math.ceil((reset_at - now) / 1000) if remaining == 0 else None
        return RateLimitStatus(
            action=action,
            limit=max_requests,
            count=count,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )

    def sweep(self) -> int:
        """Delete every entry whose window ended before now.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            remaining = len(self._entries)

        if expired:
            logger.debug(
                "rate_limit.sweep",
                extra={"removed": len(expired), "remaining": remaining},
            )
        return len(expired)

    def reset(self) -> None:
        """Forget every tracked window."""
        with self._lock:
            self._entries.clear()

    def start(self) -> None:
        """Start the background sweeper thread. Calling it twice is a no-op."""
        with self._lock:
            if self.is_running:
                return
            # Each sweeper owns its event, so a thread that outlived a timed-out
            # stop() keeps seeing its own stop signal.
            self._stop_event = threading.Event()
            self._sweeper = threading.Thread(
                target=self._run_sweeper,
                args=(self._stop_event,),
                name="rate-limit-sweeper",
                daemon=True,
            )
            self._sweeper.start()

        logger.info(
            "rate_limit.sweeper_started",
            extra={"interval_s": self._sweep_interval_seconds},
        )

    def stop(self, timeout: float | None = None) -> None:
        """Signal the sweeper thread to exit and wait for it."""
        with self._lock:
            sweeper = self._sweeper
            self._sweeper = None
            self._stop_event.set()

        if sweeper is None:
            return
        sweeper.join(timeout)
        logger.info("rate_limit.sweeper_stopped")

    def _run_sweeper(self, stop_event: threading.Event) -> None:
        # Event.wait returns True once stop() sets the event.
        while not stop_event.wait(self._sweep_interval_seconds):
            try:
                self.sweep()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
