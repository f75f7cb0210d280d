from datetime import datetime, timezone
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

PassengerType = Literal["ADT", "CHD", "INF"]
CabinCode = Literal["Y", "W", "J", "F"]
SegmentStatus = Literal["OK", "HK", "XX", "UN"]
DisruptionType = Literal["cancellation", "delay", "equipment_change", "user_request"]
Severity = Literal["low", "medium", "high"]
OptionType = Literal["keep_partial", "full_reroute"]


class _Camel(BaseModel):
    """Accepts snake_case or the camelCase wire names; dumps camelCase by alias."""
    model_config = ConfigDict(populate_by_name=True, serialize_by_alias=True)


def _as_utc(v: datetime) -> datetime:
    return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v


class Passenger(_Camel):
    name: str
    type: PassengerType = "ADT"


class Segment(_Camel):
    model_config = ConfigDict(populate_by_name=True, serialize_by_alias=True, frozen=True)

    origin: str = Field(..., min_length=3, max_length=3)
    destination: str = Field(..., min_length=3, max_length=3)
    departure: datetime
    arrival: datetime
    carrier: str = Field(..., min_length=2, max_length=2)
    flight_number: str = Field(..., alias="flightNumber")
    cabin: CabinCode = "Y"
    status: SegmentStatus = "OK"

    @field_validator("origin", "destination", "carrier")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    @field_validator("departure", "arrival")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class PNR(_Camel):
    record_locator: str = Field(..., min_length=6, alias="recordLocator")
    passengers: list[Passenger] = Field(default_factory=list)
    segments: list[Segment]

    def connections(self) -> list[tuple[int, int]]:
        """Adjacent segment index pairs that form a connection."""
        return connected_pairs(self.segments)


def connected_pairs(segments: list[Segment]) -> list[tuple[int, int]]:
    return [
        (i, i + 1)
        for i in range(len(segments) - 1)
        if segments[i].destination == segments[i + 1].origin
    ]


class DisruptionEvent(_Camel):
    type: DisruptionType
    affected_segments: list[int] = Field(..., alias="affectedSegments")
    timestamp: datetime
    reason: str | None = None
    severity: Severity = "medium"

    @field_validator("affected_segments")
    @classmethod
    def _unique_non_negative(cls, v: list[int]) -> list[int]:
        if any(i < 0 for i in v):
            raise ValueError("segment indices must be >= 0")
        return list(dict.fromkeys(v))


class AlternativeFlight(_Camel):
    """One candidate returned by the alternative-flight search."""
    departure: datetime
    arrival: datetime
    carrier: str = Field(..., min_length=2, max_length=3)
    flight_number: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("flightNumber", "flight_number"),
    )
    price: float = 0.0

    @field_validator("carrier")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    @field_validator("departure", "arrival")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class PriceChange(_Camel):
    model_config = ConfigDict(populate_by_name=True, serialize_by_alias=True, frozen=True)

    amount: float
    currency: str = Field("USD", min_length=3, max_length=3)


class IrropsOption(_Camel):
    model_config = ConfigDict(populate_by_name=True, serialize_by_alias=True, frozen=True)

    id: str
    type: OptionType
    segments: list[Segment]
    price_change: PriceChange = Field(..., alias="priceChange")
    rules_applied: list[str] = Field(default_factory=list, alias="rulesApplied")
    citations: list[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0, le=1)


class UserPreferences(_Camel):
    max_price_increase: float | None = Field(None, alias="maxPriceIncrease")
    preferred_carriers: list[str] | None = Field(None, alias="preferredCarriers")
    min_connection_time: int | None = Field(None, ge=30, alias="minConnectionTime")


class IrropsRequest(_Camel):
    """Either a structured PNR + disruption, or free text to parse."""
    pnr: PNR | None = None
    pnr_text: str | None = Field(None, alias="pnrText")
    disruption: DisruptionEvent | None = None
    message: str | None = None
    preferences: UserPreferences | None = None


class IrropsResponse(_Camel):
    record_locator: str = Field(..., alias="recordLocator")
    disruption: DisruptionEvent
    classification_confidence: float | None = Field(None, alias="classificationConfidence")
    options: list[IrropsOption]
