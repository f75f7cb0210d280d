"""Resilience registry — owns the per-host circuit breakers and rate limiters.

Created and torn down by the composition root (``main.lifespan``) and passed
to the fetch client, so tests get a fresh registry instead of shared globals.
"""

import logging
import threading
import time
from typing import Callable

from travel_agent.config import Settings, settings as default_settings
from travel_agent.services.metrics import MetricsRegistry
from travel_agent.services.resilience.circuit_breaker import CircuitBreaker
from travel_agent.services.resilience.config import (
    CircuitBreakerConfig,
    RateLimiterConfig,
    apply_overrides,
    breaker_config_from_settings,
    limiter_config_from_settings,
)
from travel_agent.services.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class ResilienceRegistry:
    """Lookup-or-create store of breakers and limiters keyed by host/target."""

    def __init__(
        self,
        settings: Settings | None = None,
        metrics: MetricsRegistry | None = None,
        breaker_config: CircuitBreakerConfig | None = None,
        limiter_config: RateLimiterConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        s = settings or default_settings
        self._breaker_config = breaker_config or breaker_config_from_settings(s)
        self._limiter_config = limiter_config or limiter_config_from_settings(s)
        self._host_overrides: dict[str, dict[str, float]] = {
            host.lower(): dict(values) for host, values in s.resilience_host_overrides.items()
        }
        self._metrics = metrics
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: dict[str, CircuitBreaker] = {}
        self._limiters: dict[str, RateLimiter] = {}
        self._started = False

    def init(self) -> None:
        self._started = True
        logger.info(
            f"Resilience registry ready (breaker timeout {self._breaker_config.timeout:.1f}s, "
            f"limiter min_time {self._limiter_config.min_time:.2f}s, "
            f"{len(self._host_overrides)} host overrides)"
        )

    def shutdown(self) -> None:
        with self._lock:
            self._breakers.clear()
            self._limiters.clear()
        self._started = False
        logger.info("Resilience registry shut down")

    @property
    def started(self) -> bool:
        return self._started

    def configure_host(
        self,
        key: str,
        breaker: CircuitBreakerConfig | None = None,
        limiter: RateLimiterConfig | None = None,
    ) -> None:
        """Replace the gates for one host with explicit configs."""
        key = key.lower()
        with self._lock:
            if breaker is not None:
                self._breakers[key] = self._new_breaker(key, breaker)
            if limiter is not None:
                self._limiters[key] = self._new_limiter(key, limiter)

    def breaker_for(self, key: str) -> CircuitBreaker:
        key = key.lower()
        with self._lock:
            breaker = self._breakers.get(key)
            if breaker is None:
                config = apply_overrides(self._breaker_config, self._host_overrides.get(key, {}))
                breaker = self._breakers[key] = self._new_breaker(key, config)
            return breaker

    def limiter_for(self, key: str) -> RateLimiter:
        key = key.lower()
        with self._lock:
            limiter = self._limiters.get(key)
            if limiter is None:
                config = apply_overrides(self._limiter_config, self._host_overrides.get(key, {}))
                limiter = self._limiters[key] = self._new_limiter(key, config)
            return limiter

    def _new_breaker(self, key: str, config: CircuitBreakerConfig) -> CircuitBreaker:
        return CircuitBreaker(
            config,
            name=key,
            clock=self._clock,
            on_event=self._metrics.inc_breaker_event if self._metrics else None,
        )

    def _new_limiter(self, key: str, config: RateLimiterConfig) -> RateLimiter:
        return RateLimiter(
            config,
            name=key,
            clock=self._clock,
            on_throttle=self._metrics.inc_rate_limit_throttled if self._metrics else None,
        )

    def reset(self, key: str | None = None) -> list[str]:
        """Force breakers back to CLOSED. Returns the keys that were reset."""
        with self._lock:
            if key is None:
                targets = list(self._breakers.values())
            else:
                breaker = self._breakers.get(key.lower())
                targets = [breaker] if breaker else []
        for breaker in targets:
            breaker.reset()
        return [b.name for b in targets]

    def stats(self) -> dict:
        with self._lock:
            breakers = dict(self._breakers)
            limiters = dict(self._limiters)
        return {
            "breakers": {k: b.get_metrics() for k, b in breakers.items()},
            "limiters": {k: lim.get_metrics() for k, lim in limiters.items()},
        }
