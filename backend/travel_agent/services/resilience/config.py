"""Resilience configuration — breaker and limiter thresholds, in seconds."""

from dataclasses import dataclass, fields, replace

from travel_agent.config import Settings


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Per-host breaker thresholds."""
    failure_threshold: int = 5
    success_threshold: int = 3
    timeout: float = 10.0            # per-call deadline
    reset_timeout: float = 30.0      # OPEN → HALF_OPEN cooldown
    monitoring_period: float = 10.0  # failure counting window
    half_open_max_calls: int = 1     # trial calls in flight while HALF_OPEN

    def __post_init__(self):
        if self.failure_threshold < 1 or self.success_threshold < 1:
            raise ValueError("breaker thresholds must be >= 1")
        if self.timeout <= 0 or self.reset_timeout <= 0 or self.monitoring_period <= 0:
            raise ValueError("breaker durations must be positive")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be >= 1")


@dataclass(frozen=True)
class RateLimiterConfig:
    """Per-host dispatch budget."""
    max_concurrent: int = 2
    min_time: float = 0.2                     # seconds between dispatches
    reservoir: int = 100                      # token bucket capacity
    reservoir_refresh_amount: int = 10
    reservoir_refresh_interval: float = 60.0  # seconds

    def __post_init__(self):
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if self.min_time < 0:
            raise ValueError("min_time must be >= 0")
        if self.reservoir < 1 or self.reservoir_refresh_amount < 1:
            raise ValueError("reservoir settings must be >= 1")
        if self.reservoir_refresh_interval <= 0:
            raise ValueError("reservoir_refresh_interval must be positive")


def breaker_config_from_settings(s: Settings) -> CircuitBreakerConfig:
    return CircuitBreakerConfig(
        failure_threshold=s.breaker_failure_threshold,
        success_threshold=s.breaker_success_threshold,
        timeout=s.breaker_timeout_ms / 1000,
        reset_timeout=s.breaker_reset_timeout_ms / 1000,
        monitoring_period=s.breaker_monitoring_period_ms / 1000,
        half_open_max_calls=s.breaker_half_open_max_calls,
    )


def limiter_config_from_settings(s: Settings) -> RateLimiterConfig:
    return RateLimiterConfig(
        max_concurrent=s.rate_limit_max_concurrent,
        min_time=s.rate_limit_min_time_ms / 1000,
        reservoir=s.rate_limit_reservoir,
        reservoir_refresh_amount=s.rate_limit_refresh_amount,
        reservoir_refresh_interval=s.rate_limit_refresh_interval_ms / 1000,
    )


def apply_overrides(config, overrides: dict[str, float]):
    """Merge a partial override mapping over a frozen config.

    Keys ending in ``_ms`` are converted to seconds, so the same mapping shape
    works for env-provided overrides. Unknown keys are ignored; they usually
    belong to the other config type.
    """
    known = {f.name: f.type for f in fields(config)}
    changes = {}
    for key, value in overrides.items():
        name = key[:-3] if key.endswith("_ms") else key
        if name not in known:
            continue
        if key.endswith("_ms"):
            value = value / 1000
        changes[name] = int(value) if known[name] in (int, "int") else float(value)
    return replace(config, **changes) if changes else config
