"""In-process metrics registry — external request latency, breaker events, IRROPS runs."""

import threading
from collections import defaultdict
from dataclasses import dataclass, field


@dataclass
class LatencyAgg:
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    def observe(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.total_ms / self.count, 1) if self.count else 0,
            "min_ms": round(self.min_ms, 1) if self.count else 0,
            "max_ms": round(self.max_ms, 1),
        }


@dataclass
class ExternalAgg:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    latency: LatencyAgg = field(default_factory=LatencyAgg)


@dataclass
class IrropsAgg:
    runs: int = 0
    failures: int = 0
    options: int = 0
    latency: LatencyAgg = field(default_factory=LatencyAgg)


class MetricsRegistry:
    """Counters and latency aggregates keyed by target."""

    def __init__(self):
        self._lock = threading.Lock()
        self._external: dict[str, ExternalAgg] = defaultdict(ExternalAgg)
        self._irrops: dict[str, IrropsAgg] = defaultdict(IrropsAgg)
        self._breaker_events: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._throttled: dict[str, int] = defaultdict(int)

    def observe_external(self, target: str, status: str, duration_ms: float) -> None:
        """Record one outbound attempt. status: ok | 4xx | 5xx | timeout | network | rate_limited | breaker_open."""
        with self._lock:
            agg = self._external[target or "unknown"]
            agg.total += 1
            agg.by_status[status] += 1
            agg.latency.observe(duration_ms)

    def observe_irrops(
        self,
        disruption_type: str,
        option_count: int,
        duration_ms: float,
        success: bool = True,
    ) -> None:
        with self._lock:
            agg = self._irrops[disruption_type]
            agg.runs += 1
            agg.options += option_count
            if not success:
                agg.failures += 1
            agg.latency.observe(duration_ms)

    def inc_breaker_event(self, target: str, event: str) -> None:
        with self._lock:
            self._breaker_events[target][event] += 1

    def inc_rate_limit_throttled(self, target: str, reason: str | None = None) -> None:
        with self._lock:
            self._throttled[target] += 1

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "external_requests": {
                    target: {
                        "total": agg.total,
                        "by_status": dict(agg.by_status),
                        "latency": agg.latency.to_dict(),
                    }
                    for target, agg in self._external.items()
                },
                "irrops": {
                    dtype: {
                        "runs": agg.runs,
                        "failures": agg.failures,
                        "options": agg.options,
                        "latency": agg.latency.to_dict(),
                    }
                    for dtype, agg in self._irrops.items()
                },
                "breaker_events": {t: dict(ev) for t, ev in self._breaker_events.items()},
                "rate_limit_throttled": dict(self._throttled),
            }

    def reset(self) -> None:
        with self._lock:
            self._external.clear()
            self._irrops.clear()
            self._breaker_events.clear()
            self._throttled.clear()


metrics = MetricsRegistry()
