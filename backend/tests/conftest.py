from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from travel_agent.schemas.irrops import PNR, DisruptionEvent, Segment
from travel_agent.services.irrops.alternative_search import AlternativeSearch
from travel_agent.services.metrics import MetricsRegistry
from travel_agent.services.resilience.config import CircuitBreakerConfig, RateLimiterConfig
from travel_agent.services.resilience.fetch_client import ResilientFetchClient
from travel_agent.services.resilience.registry import ResilienceRegistry

DEPARTURE = datetime(2024, 12, 15, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSearch(AlternativeSearch):
    """Returns canned alternatives per route; an Exception value is raised instead."""

    def __init__(self, results: dict | None = None, default=None):
        self.results = results or {}
        self.default = default if default is not None else []
        self.calls = []

    async def search_alternatives(self, origin, destination, departure_date, cabin, passengers, signal=None):
        self.calls.append((origin, destination, departure_date, cabin, passengers))
        result = self.results.get((origin, destination), self.default)
        if isinstance(result, Exception):
            raise result
        return result


def alternative(flight_number: str, hours: float = 0, duration: float = 5.5, price: float = 100.0) -> dict:
    dep = DEPARTURE + timedelta(days=1, hours=hours)
    return {
        "departure": dep.isoformat(),
        "arrival": (dep + timedelta(hours=duration)).isoformat(),
        "carrier": flight_number[:2],
        "flightNumber": flight_number,
        "price": price,
    }


def segment(origin="JFK", destination="LAX", flight_number="AA123", dep=DEPARTURE, hours=5.5, cabin="Y") -> Segment:
    return Segment(
        origin=origin,
        destination=destination,
        departure=dep,
        arrival=dep + timedelta(hours=hours),
        carrier=flight_number[:2],
        flight_number=flight_number,
        cabin=cabin,
    )


def pnr(*segments: Segment, locator: str = "ABC123") -> PNR:
    return PNR(
        record_locator=locator,
        passengers=[{"name": "JOHN SMITH", "type": "ADT"}],
        segments=list(segments) or [segment()],
    )


def disruption(type_="cancellation", severity="high", affected=(0,)) -> DisruptionEvent:
    return DisruptionEvent(
        type=type_,
        severity=severity,
        affected_segments=list(affected),
        timestamp=DEPARTURE - timedelta(hours=2),
    )


class Builders:
    """Test data builders, exposed through the ``build`` fixture."""
    FakeSearch = FakeSearch
    FakeClock = FakeClock
    alternative = staticmethod(alternative)
    segment = staticmethod(segment)
    pnr = staticmethod(pnr)
    disruption = staticmethod(disruption)
    today = staticmethod(lambda: date(2024, 12, 15))


@pytest.fixture
def build():
    return Builders


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def metrics_registry():
    return MetricsRegistry()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_fetch_client(metrics_registry, sleeps):
    """Factory wiring a fetch client to an httpx.MockTransport handler."""
    clients = []

    def factory(
        handler,
        *,
        breaker: CircuitBreakerConfig | None = None,
        limiter: RateLimiterConfig | None = None,
        allowlist=("api.test.com", "test.api.amadeus.com"),
        default_timeout: float = 1.0,
        default_retries: int = 3,
    ) -> ResilientFetchClient:
        registry = ResilienceRegistry(
            metrics=metrics_registry,
            breaker_config=breaker or CircuitBreakerConfig(
                failure_threshold=5, success_threshold=1, timeout=5.0, reset_timeout=30.0
            ),
            limiter_config=limiter or RateLimiterConfig(max_concurrent=5, min_time=0, reservoir=100),
        )
        registry.init()

        async def fake_sleep(delay: float) -> None:
            sleeps.append(delay)

        client = ResilientFetchClient(
            registry,
            allowlist=set(allowlist),
            metrics=metrics_registry,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            default_timeout=default_timeout,
            default_retries=default_retries,
            sleep=fake_sleep,
            rand=lambda: 0.5,
        )
        clients.append(client)
        return client

    return factory
