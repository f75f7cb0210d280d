"""Keyword classifier mapping a traveler's message to a disruption event."""

from datetime import datetime, timezone

from travel_agent.schemas.irrops import DisruptionEvent

# (keyword, type, severity, confidence), first match wins
RULES = [
    ("cancel", "cancellation", "high", 0.9),
    ("delay", "delay", "medium", 0.85),
    ("equipment", "equipment_change", "low", 0.8),
]

FALLBACK = ("user_request", "medium", 0.7)


def classify_disruption(
    message: str,
    affected_segments: list[int] | None = None,
    now: datetime | None = None,
) -> tuple[DisruptionEvent, float]:
    text = message.lower()
    disruption_type, severity, confidence = FALLBACK
    for keyword, kind, sev, conf in RULES:
        if keyword in text:
            disruption_type, severity, confidence = kind, sev, conf
            break

    event = DisruptionEvent(
        type=disruption_type,
        affected_segments=affected_segments if affected_segments is not None else [0],
        timestamp=now or datetime.now(timezone.utc),
        reason=message,
        severity=severity,
    )
    return event, confidence
