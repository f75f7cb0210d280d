"""Per-host circuit breaker — fails fast while a provider is down.

States:
    CLOSED     calls pass; failures within the monitoring window are counted
    OPEN       calls are rejected until reset_timeout has passed since the
               last failure
    HALF_OPEN  trial calls are admitted one at a time; success_threshold
               successes close the breaker, any failure reopens it
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable

from travel_agent.services.resilience.config import CircuitBreakerConfig
from travel_agent.services.resilience.errors import (
    CircuitBreakerError,
    CircuitBreakerTimeoutError,
)

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Failure-aware gate for one host/target key."""

    def __init__(
        self,
        config: CircuitBreakerConfig,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        is_failure: Callable[[BaseException], bool] | None = None,
        on_event: Callable[[str, str], None] | None = None,
    ):
        self.config = config
        self.name = name
        self._clock = clock
        self._is_failure = is_failure
        self._on_event = on_event

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._window_start: float | None = None
        self._last_failure_time: float | None = None
        self._next_attempt_time: float | None = None
        self._trials_in_flight = 0

        # lifetime totals
        self._opens = 0
        self._rejects = 0
        self._timeouts = 0
        self._failures = 0
        self._successes = 0

    async def execute(
        self,
        fn: Callable[[], Awaitable[Any]],
        is_failure: Callable[[BaseException], bool] | None = None,
    ) -> Any:
        """Run ``fn`` through the breaker.

        Raises CircuitBreakerError when OPEN (or when a HALF_OPEN trial is
        already in flight), CircuitBreakerTimeoutError when ``fn`` exceeds the
        timeout, and otherwise re-raises whatever ``fn`` raised.
        """
        self._admit()
        trial = self._state == CircuitState.HALF_OPEN
        if trial:
            self._trials_in_flight += 1

        try:
            result = await asyncio.wait_for(fn(), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            self._timeouts += 1
            self._emit("timeout")
            self._on_failure()
            raise CircuitBreakerTimeoutError(self.name, self.config.timeout) from None
        except Exception as e:
            predicate = is_failure or self._is_failure
            if predicate is None or predicate(e):
                self._on_failure()
            raise
        finally:
            if trial:
                self._trials_in_flight = max(0, self._trials_in_flight - 1)

        self._on_success()
        return result

    def _admit(self) -> None:
        if self._state == CircuitState.OPEN:
            if self._next_attempt_time is not None and self._clock() < self._next_attempt_time:
                self._reject()
            self._transition(CircuitState.HALF_OPEN)
            self._success_count = 0

        if self._state == CircuitState.HALF_OPEN and self._trials_in_flight >= self.config.half_open_max_calls:
            self._reject()

    def _reject(self) -> None:
        self._rejects += 1
        self._emit("reject")
        raise CircuitBreakerError(self.name, self._state.value, self._next_attempt_time)

    def _on_success(self) -> None:
        self._successes += 1
        self._emit("success")
        self._failure_count = 0
        self._window_start = None

        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.config.success_threshold:
                self._transition(CircuitState.CLOSED)
                self._success_count = 0

    def _on_failure(self) -> None:
        now = self._clock()
        self._failures += 1
        self._emit("failure")

        if self._window_start is None or now - self._window_start > self.config.monitoring_period:
            self._window_start = now
            self._failure_count = 0

        self._failure_count += 1
        self._last_failure_time = now

        if self._state == CircuitState.HALF_OPEN:
            self._open(now)
        elif self._state == CircuitState.CLOSED and self._failure_count >= self.config.failure_threshold:
            self._open(now)

    def _open(self, now: float) -> None:
        self._next_attempt_time = now + self.config.reset_timeout
        self._success_count = 0
        self._opens += 1
        self._transition(CircuitState.OPEN)

    def _transition(self, state: CircuitState) -> None:
        if state == self._state:
            return
        previous, self._state = self._state, state
        if state == CircuitState.OPEN:
            logger.warning(
                f"Circuit breaker {self.name} opened after {self._failure_count} failures "
                f"(was {previous.value}); retry in {self.config.reset_timeout:.1f}s"
            )
        else:
            logger.info(f"Circuit breaker {self.name}: {previous.value} → {state.value}")
        self._emit(state.value)

    def _emit(self, event: str) -> None:
        if self._on_event:
            self._on_event(self.name, event)

    def get_state(self) -> CircuitState:
        return self._state

    def get_metrics(self) -> dict:
        return {
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "last_failure_time": self._last_failure_time,
            "next_attempt_time": self._next_attempt_time,
            "opens": self._opens,
            "rejects": self._rejects,
            "timeouts": self._timeouts,
            "failures": self._failures,
            "successes": self._successes,
        }

    def reset(self) -> None:
        """Force CLOSED with zeroed counters (administrative override)."""
        if self._state != CircuitState.CLOSED:
            logger.info(f"Circuit breaker {self.name} manually reset from {self._state.value}")
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._window_start = None
        self._last_failure_time = None
        self._next_attempt_time = None
        self._trials_in_flight = 0
