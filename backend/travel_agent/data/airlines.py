"""Static airline data — alliance groupings used for carrier-change validation."""

AIRLINE_ALLIANCES: dict[str, frozenset[str]] = {
    "star_alliance": frozenset({"UA", "LH", "SG", "AC", "TK"}),
    "oneworld": frozenset({"AA", "BA", "QF", "JL", "CX"}),
    "skyteam": frozenset({"DL", "AF", "KL", "AZ", "VS"}),
}


def get_alliance(airline_code: str) -> str | None:
    """Get airline alliance by IATA code. Returns None for non-alliance airlines."""
    code = airline_code.upper()
    for alliance, members in AIRLINE_ALLIANCES.items():
        if code in members:
            return alliance
    return None


def same_alliance(carrier_a: str, carrier_b: str) -> bool:
    alliance = get_alliance(carrier_a)
    return alliance is not None and alliance == get_alliance(carrier_b)
