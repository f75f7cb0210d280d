import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from travel_agent.schemas.irrops import AlternativeFlight, UserPreferences
from travel_agent.services.irrops.engine import (
    IrropsCancelledError,
    IrropsEngine,
    calculate_confidence,
    process_irrops,
)
from travel_agent.services.resilience.errors import CircuitOpenError


def make_engine(build, search, metrics_registry=None, **kwargs):
    return IrropsEngine(search, metrics=metrics_registry, today=build.today, **kwargs)


async def test_cancelled_segment_rebooked_on_same_carrier_and_partner(build, metrics_registry):
    search = build.FakeSearch(default=[
        build.alternative("AA125", price=100),
        build.alternative("DL789", price=50),
        build.alternative("BA178", price=100),
    ])
    engine = make_engine(build, search, metrics_registry)

    options = await engine.process(build.pnr(), build.disruption())

    assert search.calls == [("JFK", "LAX", date(2024, 12, 16), "Y", 1)]
    # DL is SkyTeam; the AA ticket may only move within oneworld
    assert [o.id for o in options] == ["ABC123-0-AA125", "ABC123-0-BA178"]

    best = options[0]
    assert best.type == "keep_partial"
    assert best.confidence == pytest.approx(0.7)
    assert best.price_change.amount == 250
    assert best.price_change.currency == "USD"
    assert best.rules_applied == [
        "MCT validated for JFK",
        "Same day changes only",
        "No refund for downgrades",
    ]
    assert best.citations == ["Alternative flight AA125", "Fare rule: Same day changes only"]
    assert best.segments[0].status == "HK"
    assert best.segments[0].flight_number == "AA125"

    partner = options[1]
    assert partner.confidence == pytest.approx(0.6)
    assert "Alliance partner rules apply" in partner.rules_applied

    snapshot = metrics_registry.snapshot()["irrops"]["cancellation"]
    assert snapshot["runs"] == 1
    assert snapshot["options"] == 2
    assert snapshot["failures"] == 0


async def test_short_connection_rejected(build):
    dep = datetime(2024, 12, 16, 10, 0, tzinfo=timezone.utc)
    itinerary = build.pnr(
        build.segment("JFK", "LAX", "AA123", dep=dep, hours=5),
        build.segment("LAX", "SFO", "AA456", dep=dep + timedelta(hours=8), hours=1.5),
    )
    # Onward flight leaves LAX at 18:00 and LAX domestic MCT is 45 minutes
    search = build.FakeSearch(default=[
        build.alternative("AA201", hours=1, duration=6.5),   # lands 17:30 → 30 min
        build.alternative("AA202", hours=0, duration=7.0),   # lands 17:00 → 60 min
    ])

    options = await make_engine(build, search).process(itinerary, build.disruption())
    assert [o.id for o in options] == ["ABC123-0-AA202"]

    options = await make_engine(build, search).process(
        itinerary, build.disruption(), UserPreferences(min_connection_time=90)
    )
    assert options == []


async def test_later_segment_is_full_reroute(build):
    dep = datetime(2024, 12, 16, 8, 0, tzinfo=timezone.utc)
    itinerary = build.pnr(
        build.segment("JFK", "LAX", "AA123", dep=dep, hours=5),
        build.segment("LAX", "SFO", "AA456", dep=dep + timedelta(hours=8), hours=1.5),
    )
    search = build.FakeSearch(default=[build.alternative("AA457", hours=10, duration=1.5, price=80)])

    options = await make_engine(build, search).process(
        itinerary, build.disruption(severity="low", affected=[1])
    )

    assert len(options) == 1
    assert options[0].type == "full_reroute"
    assert options[0].price_change.amount == 380
    assert options[0].confidence == pytest.approx(1.0)
    assert options[0].segments[0].flight_number == "AA123"


async def test_premium_cabin_adds_fee(build):
    itinerary = build.pnr(build.segment(cabin="J"))
    search = build.FakeSearch(default=[build.alternative("AA125", price=0)])

    options = await make_engine(build, search).process(itinerary, build.disruption())
    assert options[0].price_change.amount == 350


async def test_malformed_alternatives_are_skipped(build):
    search = build.FakeSearch(default=[
        {"carrier": "AA"},
        {**build.alternative("AA125"), "departure": "not-a-date"},
        build.alternative("AA126"),
    ])

    options = await make_engine(build, search).process(build.pnr(), build.disruption())
    assert [o.id for o in options] == ["ABC123-0-AA126"]


async def test_failed_segment_does_not_abort_others(build, metrics_registry):
    dep = datetime(2024, 12, 16, 8, 0, tzinfo=timezone.utc)
    itinerary = build.pnr(
        build.segment("JFK", "LAX", "AA123", dep=dep, hours=5),
        build.segment("LAX", "SFO", "AA456", dep=dep + timedelta(hours=8), hours=1.5),
    )
    search = build.FakeSearch(results={
        ("JFK", "LAX"): CircuitOpenError("amadeus"),
        ("LAX", "SFO"): [build.alternative("AA457", hours=10, duration=1.5)],
    })

    options = await make_engine(build, search, metrics_registry).process(
        itinerary, build.disruption(affected=[0, 1])
    )

    assert [o.id for o in options] == ["ABC123-1-AA457"]
    assert metrics_registry.snapshot()["irrops"]["cancellation"]["failures"] == 0


async def test_missing_segment_index_is_skipped(build):
    search = build.FakeSearch(default=[build.alternative("AA125")])

    options = await make_engine(build, search).process(build.pnr(), build.disruption(affected=[3, 0]))
    assert [o.id for o in options] == ["ABC123-0-AA125"]
    assert len(search.calls) == 1


async def test_repeated_segment_indices_are_processed_once(build):
    search = build.FakeSearch(default=[build.alternative("AA125")])
    disruption = build.disruption(affected=[0, 0, 0])

    options = await make_engine(build, search).process(build.pnr(), disruption)

    assert disruption.affected_segments == [0]
    assert [o.id for o in options] == ["ABC123-0-AA125"]
    assert len(search.calls) == 1


async def test_alternatives_and_options_are_capped(build):
    raw = [build.alternative(f"AA{300 + i}", price=10 * i) for i in range(8)]
    search = build.FakeSearch(default=raw)

    options = await make_engine(build, search).process(build.pnr(), build.disruption())
    assert len(options) == 5

    options = await make_engine(build, search, max_options=3).process(build.pnr(), build.disruption())
    assert [o.id for o in options] == ["ABC123-0-AA300", "ABC123-0-AA301", "ABC123-0-AA302"]


async def test_cancelled_signal_raises_and_records_failure(build, metrics_registry):
    search = build.FakeSearch(default=[build.alternative("AA125")])
    signal = asyncio.Event()
    signal.set()

    with pytest.raises(IrropsCancelledError):
        await make_engine(build, search, metrics_registry).process(
            build.pnr(), build.disruption(), signal=signal
        )

    assert search.calls == []
    snapshot = metrics_registry.snapshot()["irrops"]["cancellation"]
    assert snapshot["failures"] == 1
    assert snapshot["options"] == 0


@pytest.mark.parametrize("carrier, severity, expected", [
    ("AA", "high", 0.7),
    ("AA", "medium", 0.9),
    ("AA", "low", 1.0),
    ("BA", "high", 0.6),
    ("BA", "low", 0.9),
])
def test_confidence(build, carrier, severity, expected):
    alt = AlternativeFlight.model_validate(build.alternative(f"{carrier}100"))
    assert calculate_confidence(alt, build.segment(), build.disruption(severity=severity)) == expected


async def test_process_irrops_helper(build):
    search = build.FakeSearch(default=[build.alternative(f"AA{400 + i}") for i in range(5)])

    options = await process_irrops(build.pnr(), build.disruption(), search)
    assert len(options) == 3
