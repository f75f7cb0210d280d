from datetime import datetime, timezone

from travel_agent.services.irrops.disruption_classifier import classify_disruption
from travel_agent.services.irrops.pnr_parser import parse_pnr_from_slots, parse_pnr_from_text

PNR_TEXT = """ABC123
MR JOHN SMITH
MRS JANE SMITH
AA123 JFKLAX 15DEC
AA456 LAXSFO 16DEC
"""


def test_parse_pnr_from_text():
    pnr = parse_pnr_from_text(PNR_TEXT, year=2024)

    assert pnr.record_locator == "ABC123"
    assert [p.name for p in pnr.passengers] == ["JOHN SMITH", "JANE SMITH"]
    assert len(pnr.segments) == 2

    first = pnr.segments[0]
    assert (first.origin, first.destination) == ("JFK", "LAX")
    assert first.carrier == "AA"
    assert first.flight_number == "AA123"
    assert first.departure == datetime(2024, 12, 15, tzinfo=timezone.utc)
    assert first.arrival == datetime(2024, 12, 15, 2, tzinfo=timezone.utc)
    assert first.cabin == "Y"
    assert first.status == "OK"
    assert pnr.connections() == [(0, 1)]


def test_default_passenger_when_none_named():
    pnr = parse_pnr_from_text("XYZ789 UA100 SFOORD 01JAN", year=2025)

    assert pnr.record_locator == "XYZ789"
    assert [(p.name, p.type) for p in pnr.passengers] == [("PASSENGER", "ADT")]


def test_unparseable_text_returns_none():
    assert parse_pnr_from_text("my flight got cancelled, help") is None
    assert parse_pnr_from_text("ABC123 but no flights here") is None


def test_impossible_dates_are_skipped():
    pnr = parse_pnr_from_text("ABC123\nAA1 JFKLAX 31FEB\nAA2 JFKLAX 01MAR", year=2024)

    assert [s.flight_number for s in pnr.segments] == ["AA2"]


def test_parse_pnr_from_slots():
    pnr = parse_pnr_from_slots({
        "recordLocator": "QWE456",
        "segments": [{
            "origin": "lhr",
            "destination": "jfk",
            "departure": "2024-12-15T10:00:00Z",
            "arrival": "2024-12-15T18:00:00Z",
            "carrier": "ba",
            "flightNumber": "BA117",
        }],
    })

    assert pnr.record_locator == "QWE456"
    assert pnr.segments[0].origin == "LHR"
    assert pnr.segments[0].carrier == "BA"
    assert pnr.passengers[0].name == "PASSENGER"


def test_parse_pnr_from_slots_rejects_incomplete():
    assert parse_pnr_from_slots({"recordLocator": "QWE456"}) is None
    assert parse_pnr_from_slots({"recordLocator": "QWE456", "segments": [{"origin": "LHR"}]}) is None


def test_classify_cancellation():
    now = datetime(2024, 12, 14, 9, 0, tzinfo=timezone.utc)
    event, confidence = classify_disruption("My flight AA123 was Cancelled!", now=now)

    assert event.type == "cancellation"
    assert event.severity == "high"
    assert event.affected_segments == [0]
    assert event.timestamp == now
    assert event.reason == "My flight AA123 was Cancelled!"
    assert confidence == 0.9


def test_classify_other_keywords():
    assert classify_disruption("delayed by 3 hours")[0].type == "delay"
    assert classify_disruption("delayed by 3 hours")[1] == 0.85

    event, confidence = classify_disruption("there was an equipment swap", affected_segments=[1])
    assert (event.type, event.severity, confidence) == ("equipment_change", "low", 0.8)
    assert event.affected_segments == [1]

    event, confidence = classify_disruption("I'd like to fly earlier")
    assert (event.type, event.severity, confidence) == ("user_request", "medium", 0.7)
