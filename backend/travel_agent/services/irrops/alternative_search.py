"""Alternative flight search — the IRROPS engine's source of replacement flights.

``AmadeusAlternativeSearch`` queries Amadeus flight offers through the resilient
fetch client. Without credentials it runs in demo mode and generates
deterministic mock flights per route/date/cabin.
"""

import asyncio
import hashlib
import logging
import random
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

from travel_agent.config import Settings, settings as default_settings
from travel_agent.services.cache_service import CacheService
from travel_agent.services.resilience.errors import CircuitOpenError
from travel_agent.services.resilience.fetch_client import ResilientFetchClient

logger = logging.getLogger(__name__)

TARGET = "amadeus"

# Our cabin codes to Amadeus travel classes
CABIN_MAP = {
    "Y": "ECONOMY",
    "W": "PREMIUM_ECONOMY",
    "J": "BUSINESS",
    "F": "FIRST",
}

TOKEN_EXPIRY_MARGIN = 60  # seconds


class AlternativeSearch(ABC):
    @abstractmethod
    async def search_alternatives(
        self,
        origin: str,
        destination: str,
        departure_date: date,
        cabin: str,
        passengers: int,
        signal: asyncio.Event | None = None,
    ) -> list[dict]:
        """Return ``{departure, arrival, carrier, flightNumber, price}`` dicts."""


class AmadeusAlternativeSearch(AlternativeSearch):
    """Nonstop replacement flights from the Amadeus Self-Service API."""

    def __init__(
        self,
        fetch_client: ResilientFetchClient,
        settings: Settings | None = None,
        cache: CacheService | None = None,
        max_results: int = 20,
    ):
        s = settings or default_settings
        self._fetch = fetch_client
        self._cache = cache
        self._client_id = s.amadeus_client_id
        self._client_secret = s.amadeus_client_secret
        self._base_url = s.amadeus_base_url.rstrip("/")
        self._max_results = max_results
        self._token: str | None = None
        self._token_expires: datetime | None = None
        self._use_mock = not self._client_id

    @property
    def demo_mode(self) -> bool:
        return self._use_mock

    async def _ensure_token(self, signal: asyncio.Event | None = None) -> str:
        """Get or refresh the OAuth2 client-credentials token."""
        if self._token and self._token_expires and datetime.now(timezone.utc) < self._token_expires:
            return self._token

        data = await self._fetch.fetch_json(
            f"{self._base_url}/v1/security/oauth2/token",
            method="POST",
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            target=TARGET,
            signal=signal,
        )
        self._token = data["access_token"]
        self._token_expires = datetime.now(timezone.utc) + timedelta(
            seconds=data.get("expires_in", 1799) - TOKEN_EXPIRY_MARGIN
        )
        logger.info("Amadeus token refreshed")
        return self._token

    async def search_alternatives(
        self,
        origin: str,
        destination: str,
        departure_date: date,
        cabin: str,
        passengers: int,
        signal: asyncio.Event | None = None,
    ) -> list[dict]:
        if self._use_mock:
            return self._generate_mock_alternatives(origin, destination, departure_date, cabin)

        date_str = departure_date.isoformat()
        try:
            token = await self._ensure_token(signal)
            data = await self._fetch.fetch_json(
                f"{self._base_url}/v2/shopping/flight-offers",
                params={
                    "originLocationCode": origin,
                    "destinationLocationCode": destination,
                    "departureDate": date_str,
                    "adults": max(1, passengers),
                    "travelClass": CABIN_MAP.get(cabin, "ECONOMY"),
                    "nonStop": "true",
                    "max": self._max_results,
                    "currencyCode": "USD",
                },
                headers={"Authorization": f"Bearer {token}"},
                target=TARGET,
                signal=signal,
            )
        except CircuitOpenError:
            cached = await self._cached(origin, destination, date_str, cabin)
            if cached is None:
                raise
            logger.warning(
                f"Amadeus circuit open, serving {len(cached)} cached alternatives "
                f"for {origin}-{destination} {date_str}"
            )
            return cached

        offers = data.get("data") if isinstance(data, dict) else None
        alternatives = [
            alt for alt in (self._parse_offer(offer) for offer in offers or [])
            if alt is not None
        ]
        if self._cache is not None:
            await self._cache.set_alternatives(origin, destination, date_str, cabin, alternatives)
        return alternatives

    async def _cached(self, origin: str, destination: str, date_str: str, cabin: str) -> list[dict] | None:
        if self._cache is None:
            return None
        return await self._cache.get_alternatives(origin, destination, date_str, cabin)

    @staticmethod
    def _parse_offer(offer: dict) -> dict | None:
        """Map a nonstop Amadeus offer to an alternative; connecting or malformed offers are skipped."""
        try:
            segments = offer["itineraries"][0]["segments"]
            if len(segments) != 1:
                return None

            seg = segments[0]
            carrier = seg.get("carrierCode", "")
            return {
                "departure": seg["departure"]["at"],
                "arrival": seg["arrival"]["at"],
                "carrier": carrier,
                "flightNumber": f"{carrier}{seg.get('number', '')}",
                "price": float(offer.get("price", {}).get("grandTotal", 0)),
            }
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            logger.debug(f"Skipping malformed Amadeus offer: {type(e).__name__}: {e}")
            return None

    # --- Mock data generation for demo mode ---

    def _generate_mock_alternatives(
        self,
        origin: str,
        destination: str,
        departure_date: date,
        cabin: str,
    ) -> list[dict]:
        # Deterministic seed based on route+date+cabin for consistency
        seed_str = f"{origin}{destination}{departure_date.isoformat()}{cabin}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        base_price = self._estimate_base_price(origin, destination, cabin)
        duration = self._estimate_duration(origin, destination)
        airlines = self._get_route_airlines(origin, destination)

        flights = []
        for _ in range(rng.randint(3, 6)):
            airline = rng.choice(airlines)
            dep_time = datetime(
                departure_date.year, departure_date.month, departure_date.day,
                rng.randint(6, 21), rng.choice([0, 15, 30, 45]), tzinfo=timezone.utc,
            )
            arr_time = dep_time + timedelta(minutes=duration + rng.randint(-15, 30))
            flights.append({
                "departure": dep_time.isoformat(),
                "arrival": arr_time.isoformat(),
                "carrier": airline,
                "flightNumber": f"{airline}{rng.randint(100, 9999)}",
                "price": round(base_price * rng.uniform(0.8, 1.8), 2),
            })

        return sorted(flights, key=lambda f: f["price"])

    @staticmethod
    def _estimate_base_price(origin: str, destination: str, cabin: str) -> float:
        """Rough base fare difference by route and cabin."""
        route = {origin, destination}
        transatlantic = {"LHR", "CDG", "AMS", "FRA"}
        asia = {"SIN", "NRT", "HND", "HKG", "DXB"}

        if route & asia:
            base = 400.0
        elif route & transatlantic:
            base = 250.0
        else:
            base = 90.0

        multiplier = {"Y": 1.0, "W": 1.8, "J": 3.5, "F": 6.0}.get(cabin, 1.0)
        return base * multiplier

    @staticmethod
    def _estimate_duration(origin: str, destination: str) -> int:
        """Rough block time in minutes."""
        route = {origin, destination}
        if route & {"SIN", "NRT", "HND", "HKG"}:
            return 780
        if route & {"LHR", "CDG", "AMS", "FRA", "DXB"}:
            return 420
        if route == {"JFK", "LAX"}:
            return 330
        return 180

    @staticmethod
    def _get_route_airlines(origin: str, destination: str) -> list[str]:
        european = {"LHR", "CDG", "AMS", "FRA", "FCO"}
        asia_pacific = {"SIN", "NRT", "HND", "HKG"}
        route = {origin, destination}

        if route & european:
            return ["BA", "LH", "AF", "KL", "VS", "AA", "DL", "UA"]
        if route & asia_pacific:
            return ["SG", "JL", "CX", "UA", "AA"]
        return ["AA", "DL", "UA", "AS", "B6"]
