"""Constraint validator — MCT, fare-change and carrier-change checks for rebooking."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Literal, Sequence

from travel_agent.data.airlines import same_alliance
from travel_agent.data.airports import get_mct, is_international_connection
from travel_agent.schemas.irrops import Segment

logger = logging.getLogger(__name__)

ChangeType = Literal["partial", "full"]

PREMIUM_CABINS = frozenset({"J", "F"})
CARRIER_CHANGE_RECEIPT = "carrier_change_allowed"


@dataclass(frozen=True)
class MctResult:
    valid: bool
    mct_minutes: int
    buffer_minutes: int
    international: bool


@dataclass(frozen=True)
class FareResult:
    valid: bool
    fee: float
    restrictions: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CarrierResult:
    allowed: bool
    conditions: list[str] = field(default_factory=list)


class FareRulesEngine(ABC):
    @abstractmethod
    def evaluate(
        self,
        original_fare_key: str,
        new_segments: Sequence[Segment],
        change_type: ChangeType,
    ) -> FareResult:
        ...


class StaticFareRules(FareRulesEngine):
    """Flat change fees: 150 partial / 300 full, plus 200 for premium cabins."""

    PARTIAL_FEE = 150.0
    FULL_FEE = 300.0
    PREMIUM_CABIN_FEE = 200.0
    RESTRICTIONS = ("Same day changes only", "No refund for downgrades")

    def evaluate(self, original_fare_key, new_segments, change_type) -> FareResult:
        fee = self.PARTIAL_FEE if change_type == "partial" else self.FULL_FEE
        if any(s.cabin in PREMIUM_CABINS for s in new_segments):
            fee += self.PREMIUM_CABIN_FEE
        return FareResult(valid=True, fee=fee, restrictions=list(self.RESTRICTIONS))


class ConstraintValidator:
    def __init__(self, fare_rules: FareRulesEngine | None = None):
        self.fare_rules = fare_rules or StaticFareRules()

    def validate_mct(
        self,
        origin: str,
        connection_airport: str,
        arrival: datetime,
        departure: datetime,
    ) -> MctResult:
        """Check the connection at ``connection_airport`` against its minimum connection time.

        ``arrival`` is the inbound arrival there, ``departure`` the outbound departure.
        """
        international = is_international_connection(origin, connection_airport)
        required = get_mct(connection_airport, international)
        connection_minutes = (departure - arrival).total_seconds() / 60
        return MctResult(
            valid=connection_minutes >= required,
            mct_minutes=required,
            buffer_minutes=round(connection_minutes - required),
            international=international,
        )

    def validate_fare_rules(
        self,
        original_fare_key: str,
        new_segments: Sequence[Segment],
        change_type: ChangeType,
    ) -> FareResult:
        return self.fare_rules.evaluate(original_fare_key, new_segments, change_type)

    def validate_carrier_change(
        self,
        original_carrier: str,
        new_carrier: str,
        policy_receipts: Iterable[str] = (),
    ) -> CarrierResult:
        if original_carrier.upper() == new_carrier.upper():
            return CarrierResult(allowed=True)

        alliance = same_alliance(original_carrier, new_carrier)
        has_policy = any(CARRIER_CHANGE_RECEIPT in r for r in policy_receipts)
        if not (alliance or has_policy):
            logger.debug(f"Carrier change {original_carrier} -> {new_carrier} not permitted")
        return CarrierResult(
            allowed=alliance or has_policy,
            conditions=["Alliance partner rules apply"] if alliance else [],
        )
