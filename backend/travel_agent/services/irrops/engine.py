"""IRROPS engine — turns a disrupted PNR into validated, ranked rebooking options.

For each affected segment: search replacement flights, swap each candidate
into a copy of the itinerary, validate MCT / fare / carrier constraints, and
build an option for every candidate that passes. Options are then ranked.
"""

import asyncio
import logging
import time
from datetime import date, timedelta
from typing import Callable

from pydantic import ValidationError

from travel_agent.config import settings
from travel_agent.services.irrops.alternative_search import AlternativeSearch
from travel_agent.services.irrops.constraint_validator import ConstraintValidator
from travel_agent.services.irrops.option_ranker import OptionRanker
from travel_agent.services.metrics import MetricsRegistry, metrics as default_metrics
from travel_agent.schemas.irrops import (
    PNR,
    AlternativeFlight,
    DisruptionEvent,
    IrropsOption,
    PriceChange,
    Segment,
    UserPreferences,
    connected_pairs,
)

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.8


class IrropsCancelledError(Exception):
    """Processing was aborted through the caller's signal."""

    def __init__(self, record_locator: str):
        self.record_locator = record_locator
        super().__init__(f"IRROPS processing cancelled for {record_locator}")


def calculate_confidence(alt: AlternativeFlight, original: Segment, disruption: DisruptionEvent) -> float:
    confidence = BASE_CONFIDENCE
    if alt.carrier == original.carrier:
        confidence += 0.1
    if disruption.severity == "high":
        confidence -= 0.2
    elif disruption.severity == "low":
        confidence += 0.1
    return round(min(1.0, max(0.0, confidence)), 2)


class IrropsEngine:
    def __init__(
        self,
        search: AlternativeSearch,
        validator: ConstraintValidator | None = None,
        ranker: OptionRanker | None = None,
        metrics: MetricsRegistry | None = None,
        *,
        max_alternatives: int | None = None,
        max_options: int | None = None,
        currency: str | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.search = search
        self.validator = validator or ConstraintValidator()
        self.ranker = ranker or OptionRanker()
        self.metrics = metrics
        self.max_alternatives = max_alternatives if max_alternatives is not None else settings.irrops_max_alternatives
        self.max_options = max_options
        self.currency = currency or settings.irrops_currency
        self._today = today

    async def process(
        self,
        pnr: PNR,
        disruption: DisruptionEvent,
        preferences: UserPreferences | None = None,
        signal: asyncio.Event | None = None,
    ) -> list[IrropsOption]:
        start = time.monotonic()
        prefs = preferences or UserPreferences()

        try:
            self._check_signal(pnr, signal)
            logger.info(
                f"IRROPS {pnr.record_locator}: {disruption.type} ({disruption.severity}) "
                f"affecting segments {disruption.affected_segments}"
            )

            options: list[IrropsOption] = []
            for index in disruption.affected_segments:
                if index >= len(pnr.segments):
                    logger.debug(f"IRROPS {pnr.record_locator}: no segment at index {index}")
                    continue
                self._check_signal(pnr, signal)
                try:
                    options.extend(
                        await self._options_for_segment(pnr, index, disruption, prefs, signal)
                    )
                except Exception as e:
                    logger.warning(
                        f"IRROPS {pnr.record_locator}: segment {index} failed, skipping: "
                        f"{type(e).__name__}: {e}"
                    )

            ranked = self.ranker.rank(options, prefs, limit=self.max_options)
            logger.info(
                f"IRROPS {pnr.record_locator}: {len(options)} valid options, returning {len(ranked)}"
            )
            self._observe(disruption, len(ranked), start, success=True)
            return ranked
        except IrropsCancelledError:
            logger.info(f"IRROPS {pnr.record_locator}: cancelled")
            self._observe(disruption, 0, start, success=False)
            raise
        except Exception:
            logger.exception(f"IRROPS {pnr.record_locator}: processing failed")
            self._observe(disruption, 0, start, success=False)
            raise

    async def _options_for_segment(
        self,
        pnr: PNR,
        index: int,
        disruption: DisruptionEvent,
        prefs: UserPreferences,
        signal: asyncio.Event | None,
    ) -> list[IrropsOption]:
        segment = pnr.segments[index]
        search_date = self._today() + timedelta(days=1)

        raw = await self.search.search_alternatives(
            segment.origin,
            segment.destination,
            search_date,
            segment.cabin,
            passengers=len(pnr.passengers),
            signal=signal,
        )
        logger.debug(
            f"IRROPS {pnr.record_locator}: {len(raw)} alternatives for "
            f"{segment.origin}-{segment.destination} on {search_date}"
        )

        options = []
        for entry in raw[: self.max_alternatives]:
            try:
                option = self._build_option(pnr, index, entry, disruption, prefs)
            except ValidationError as e:
                logger.debug(f"Skipping malformed alternative {entry!r}: {e.error_count()} errors")
                continue
            except Exception as e:
                logger.warning(f"Skipping alternative {entry!r}: {type(e).__name__}: {e}")
                continue
            if option is not None:
                options.append(option)
        return options

    def _build_option(
        self,
        pnr: PNR,
        index: int,
        entry: dict,
        disruption: DisruptionEvent,
        prefs: UserPreferences,
    ) -> IrropsOption | None:
        """Validate one candidate; returns None when a constraint rejects it."""
        alt = AlternativeFlight.model_validate(entry)
        original = pnr.segments[index]
        replacement = Segment(
            origin=original.origin,
            destination=original.destination,
            departure=alt.departure,
            arrival=alt.arrival,
            carrier=alt.carrier,
            flight_number=alt.flight_number,
            cabin=original.cabin,
            status="HK",
        )
        new_segments = list(pnr.segments)
        new_segments[index] = replacement

        if not self._connections_valid(new_segments, prefs.min_connection_time):
            logger.debug(f"{alt.flight_number}: connection too short")
            return None

        # Index 0 keeps the rest of the itinerary; anything later is a reroute
        change_type = "partial" if index == 0 else "full"
        fare = self.validator.validate_fare_rules(original.flight_number, new_segments, change_type)
        carrier = self.validator.validate_carrier_change(original.carrier, alt.carrier)
        if not (fare.valid and carrier.allowed):
            logger.debug(f"{alt.flight_number}: fare valid={fare.valid}, carrier allowed={carrier.allowed}")
            return None

        return IrropsOption(
            id=f"{pnr.record_locator}-{index}-{alt.flight_number}",
            type="keep_partial" if index == 0 else "full_reroute",
            segments=new_segments,
            price_change=PriceChange(amount=fare.fee + alt.price, currency=self.currency),
            rules_applied=[
                f"MCT validated for {original.origin}",
                *fare.restrictions,
                *carrier.conditions,
            ],
            citations=[
                f"Alternative flight {alt.flight_number}",
                f"Fare rule: {fare.restrictions[0] if fare.restrictions else 'Standard change fee'}",
            ],
            confidence=calculate_confidence(alt, original, disruption),
        )

    def _connections_valid(self, segments: list[Segment], min_connection: int | None) -> bool:
        for i, j in connected_pairs(segments):
            inbound, outbound = segments[i], segments[j]
            result = self.validator.validate_mct(
                inbound.origin, inbound.destination, inbound.arrival, outbound.departure
            )
            if not result.valid:
                return False
            if min_connection is not None and result.mct_minutes + result.buffer_minutes < min_connection:
                return False
        return True

    @staticmethod
    def _check_signal(pnr: PNR, signal: asyncio.Event | None) -> None:
        if signal is not None and signal.is_set():
            raise IrropsCancelledError(pnr.record_locator)

    def _observe(self, disruption: DisruptionEvent, count: int, start: float, success: bool) -> None:
        if self.metrics:
            self.metrics.observe_irrops(
                disruption.type, count, (time.monotonic() - start) * 1000, success=success
            )


async def process_irrops(
    pnr: PNR,
    disruption: DisruptionEvent,
    search: AlternativeSearch,
    preferences: UserPreferences | None = None,
    signal: asyncio.Event | None = None,
) -> list[IrropsOption]:
    """One-shot helper with the default validator, ranker and metrics sink."""
    engine = IrropsEngine(
        search,
        metrics=default_metrics,
        max_options=settings.irrops_max_options,
    )
    return await engine.process(pnr, disruption, preferences, signal)
