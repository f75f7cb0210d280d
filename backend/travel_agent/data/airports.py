"""Static airport data — minimum connection times and domestic classification."""

# Minimum connection time in minutes, per connecting airport
MCT_TABLE: dict[str, dict[str, int]] = {
    "JFK": {"domestic": 60, "international": 90},
    "LAX": {"domestic": 45, "international": 75},
    "LHR": {"domestic": 60, "international": 90},
    "CDG": {"domestic": 60, "international": 90},
    "DXB": {"domestic": 60, "international": 90},
    "SIN": {"domestic": 45, "international": 75},
}

DEFAULT_MCT: dict[str, int] = {"domestic": 60, "international": 90}

# US airports; a connection touching anything else is international
DOMESTIC_AIRPORTS: frozenset[str] = frozenset({
    "JFK", "LAX", "ORD", "DFW", "ATL",
})


def get_mct(airport: str, international: bool) -> int:
    """Required connection minutes at an airport. Unlisted airports use the default."""
    entry = MCT_TABLE.get(airport.upper(), DEFAULT_MCT)
    return entry["international"] if international else entry["domestic"]


def is_international_connection(origin: str, connection: str) -> bool:
    """Unknown airports are treated as international."""
    return origin.upper() not in DOMESTIC_AIRPORTS or connection.upper() not in DOMESTIC_AIRPORTS
