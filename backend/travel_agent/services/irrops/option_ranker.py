"""Option ranker — orders rebooking options by weighted price/schedule/carrier/confidence."""

from dataclasses import dataclass

from travel_agent.schemas.irrops import IrropsOption, UserPreferences

DEFAULT_PRICE_CEILING = 1000.0


@dataclass(frozen=True)
class RankingWeights:
    price: float = 0.3
    schedule: float = 0.4
    carrier: float = 0.2
    confidence: float = 0.1


class OptionRanker:
    def __init__(self, weights: RankingWeights | None = None):
        self.weights = weights or RankingWeights()

    def rank(
        self,
        options: list[IrropsOption],
        preferences: UserPreferences | None = None,
        limit: int | None = None,
    ) -> list[IrropsOption]:
        """
        Return a new list sorted by score, best first.

        Ties fall back to confidence, then to input order. Options priced
        over the ceiling score 0 on price but are kept.
        """
        if not options:
            return []

        prefs = preferences or UserPreferences()
        max_amount = max(o.price_change.amount for o in options)

        scored = [(self.score(o, prefs, max_amount), o) for o in options]
        scored.sort(key=lambda pair: (-pair[0], -pair[1].confidence))
        ranked = [o for _, o in scored]
        return ranked[:limit] if limit is not None else ranked

    def score(self, option: IrropsOption, prefs: UserPreferences, max_amount: float) -> float:
        w = self.weights
        return (
            w.price * _price_score(option, prefs, max_amount)
            + w.schedule * _schedule_score(option)
            + w.carrier * _carrier_score(option, prefs)
            + w.confidence * option.confidence
        )


def _price_score(option: IrropsOption, prefs: UserPreferences, max_amount: float) -> float:
    ceiling = DEFAULT_PRICE_CEILING if prefs.max_price_increase is None else prefs.max_price_increase
    amount = option.price_change.amount
    if amount > ceiling:
        return 0.0
    if amount <= 0:
        return 1.0
    return 1.0 - amount / max_amount


def _schedule_score(option: IrropsOption) -> float:
    # Fewer segments = simpler itinerary
    return max(0.0, 1.0 - 0.1 * max(0, len(option.segments) - 2))


def _carrier_score(option: IrropsOption, prefs: UserPreferences) -> float:
    if not prefs.preferred_carriers:
        return 0.5
    preferred = {c.upper() for c in prefs.preferred_carriers}
    return 1.0 if any(s.carrier in preferred for s in option.segments) else 0.2


def rank_options(
    options: list[IrropsOption],
    preferences: UserPreferences | None = None,
    weights: RankingWeights | None = None,
    limit: int | None = None,
) -> list[IrropsOption]:
    return OptionRanker(weights).rank(options, preferences, limit)
