"""Per-host rate limiter — admits or rejects, never queues.

A call is dispatched only when the host has a free concurrency slot, at least
``min_time`` has passed since the previous dispatch, and the token reservoir
is non-empty. Callers that want to wait must retry (the fetch client does, with
backoff).
"""

import logging
import time
from typing import Any, Awaitable, Callable

from travel_agent.services.resilience.config import RateLimiterConfig
from travel_agent.services.resilience.errors import RateLimitExceededError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Token bucket + spacing + concurrency gate for one host."""

    def __init__(
        self,
        config: RateLimiterConfig,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        on_throttle: Callable[[str, str], None] | None = None,
    ):
        self.config = config
        self.name = name
        self._clock = clock
        self._on_throttle = on_throttle
        self._tokens = config.reservoir
        self._last_refill = clock()
        self._in_flight = 0
        self._last_dispatch: float | None = None
        self._throttled = 0

    def try_acquire(self) -> bool:
        """Claim a dispatch slot. Returns False instead of waiting."""
        return self._admit() is None

    def _admit(self) -> str | None:
        """Admit the call, or return the reason it was refused."""
        if self._in_flight >= self.config.max_concurrent:
            return self._refuse("concurrency")

        now = self._clock()
        if self._last_dispatch is not None and now - self._last_dispatch < self.config.min_time:
            return self._refuse("min_time")

        self._refill(now)
        if self._tokens < 1:
            return self._refuse("reservoir")

        self._tokens -= 1
        self._in_flight += 1
        self._last_dispatch = now
        return None

    def release(self) -> None:
        self._in_flight = max(0, self._in_flight - 1)

    async def execute(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``fn`` under the limiter or raise RateLimitExceededError."""
        reason = self._admit()
        if reason is not None:
            raise RateLimitExceededError(self.name, reason)
        try:
            return await fn()
        finally:
            self.release()

    def _refuse(self, reason: str) -> str:
        self._throttled += 1
        logger.debug(f"Rate limiter {self.name} throttled ({reason})")
        if self._on_throttle:
            self._on_throttle(self.name, reason)
        return reason

    def _refill(self, now: float) -> None:
        intervals = int((now - self._last_refill) // self.config.reservoir_refresh_interval)
        if intervals > 0:
            self._tokens = min(
                self.config.reservoir,
                self._tokens + intervals * self.config.reservoir_refresh_amount,
            )
            self._last_refill += intervals * self.config.reservoir_refresh_interval

    def get_metrics(self) -> dict:
        return {
            "tokens": self._tokens,
            "in_flight": self._in_flight,
            "last_refill": self._last_refill,
            "last_dispatch": self._last_dispatch,
            "throttled": self._throttled,
        }

    def reset(self) -> None:
        self._tokens = self.config.reservoir
        self._last_refill = self._clock()
        self._in_flight = 0
        self._last_dispatch = None
        self._throttled = 0
