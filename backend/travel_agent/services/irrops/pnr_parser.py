"""PNR parser — builds a PNR from pasted GDS-style text or from structured slots.

Recognised text:
    ABC123
    MR JOHN SMITH
    AA123 JFKLAX 15DEC
"""

import logging
import re
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from travel_agent.schemas.irrops import PNR

logger = logging.getLogger(__name__)

RECORD_LOCATOR_RE = re.compile(r"\b[A-Z0-9]{6}\b")
PASSENGER_RE = re.compile(r"\b(?:MRS|MR|MS)[ \t]+([A-Z]+(?:[ \t/]+[A-Z]+)*)")
SEGMENT_RE = re.compile(r"([A-Z]{2})(\d+)\s+([A-Z]{3})([A-Z]{3})\s+(\d{2}[A-Z]{3})")

MONTHS = ["JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"]

# No arrival time in the text; assume a 2h block
ESTIMATED_BLOCK_TIME = timedelta(hours=2)

DEFAULT_PASSENGER = {"name": "PASSENGER", "type": "ADT"}


def _parse_day_month(value: str, year: int) -> datetime | None:
    """Parse ``15DEC`` into midnight UTC of that day."""
    day, month = value[:2], value[2:]
    if month not in MONTHS:
        return None
    try:
        return datetime(year, MONTHS.index(month) + 1, int(day), tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_pnr_from_text(text: str, year: int | None = None) -> PNR | None:
    """Returns None when no record locator or no parseable segment is found."""
    locator = RECORD_LOCATOR_RE.search(text)
    if not locator:
        return None

    year = year or datetime.now(timezone.utc).year
    passengers = [
        {"name": m.group(1).strip(), "type": "ADT"}
        for m in PASSENGER_RE.finditer(text)
    ]

    segments = []
    for carrier, number, origin, destination, day_month in SEGMENT_RE.findall(text):
        departure = _parse_day_month(day_month, year)
        if departure is None:
            logger.debug(f"Unparseable segment date {day_month}")
            continue
        segments.append({
            "origin": origin,
            "destination": destination,
            "departure": departure,
            "arrival": departure + ESTIMATED_BLOCK_TIME,
            "carrier": carrier,
            "flight_number": f"{carrier}{number}",
            "cabin": "Y",
            "status": "OK",
        })

    if not segments:
        return None

    try:
        return PNR.model_validate({
            "record_locator": locator.group(0),
            "passengers": passengers or [DEFAULT_PASSENGER],
            "segments": segments,
        })
    except ValidationError as e:
        logger.debug(f"Parsed PNR failed validation: {e}")
        return None


def parse_pnr_from_slots(slots: dict) -> PNR | None:
    locator = slots.get("recordLocator") or slots.get("record_locator")
    segments = slots.get("segments")
    if not locator or not segments:
        return None
    try:
        return PNR.model_validate({
            "record_locator": locator,
            "passengers": slots.get("passengers") or [DEFAULT_PASSENGER],
            "segments": segments,
        })
    except ValidationError as e:
        logger.debug(f"PNR slots failed validation: {e}")
        return None
