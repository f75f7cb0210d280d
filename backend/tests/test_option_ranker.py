from travel_agent.schemas.irrops import IrropsOption, PriceChange, UserPreferences
from travel_agent.services.irrops.option_ranker import OptionRanker, RankingWeights, rank_options


def option(build, id_, amount=100.0, confidence=0.8, carrier="AA", legs=1):
    segments = [build.segment(flight_number=f"{carrier}{100 + i}") for i in range(legs)]
    return IrropsOption(
        id=id_,
        type="keep_partial",
        segments=segments,
        price_change=PriceChange(amount=amount),
        confidence=confidence,
    )


def ids(options):
    return [o.id for o in options]


def test_cheaper_option_ranks_first(build):
    ranked = rank_options([option(build, "pricey", amount=400), option(build, "cheap", amount=100)])
    assert ids(ranked) == ["cheap", "pricey"]


def test_over_ceiling_is_deprioritized_not_removed(build):
    options = [option(build, "huge", amount=1500), option(build, "fine", amount=900)]

    ranked = rank_options(options)
    assert ids(ranked) == ["fine", "huge"]

    # A tighter traveler ceiling pushes "fine" over the limit too
    ranked = rank_options(options, UserPreferences(max_price_increase=500))
    assert set(ids(ranked)) == {"huge", "fine"}


def test_preferred_carrier_wins(build):
    options = [option(build, "aa", carrier="AA"), option(build, "ba", carrier="BA")]

    ranked = rank_options(options, UserPreferences(preferred_carriers=["ba"]))
    assert ids(ranked) == ["ba", "aa"]


def test_fewer_segments_preferred(build):
    options = [option(build, "long", legs=4), option(build, "short", legs=2)]
    assert ids(rank_options(options)) == ["short", "long"]


def test_confidence_breaks_ties(build):
    weights = RankingWeights(price=0.3, schedule=0.4, carrier=0.2, confidence=0.0)
    options = [option(build, "low", confidence=0.6), option(build, "high", confidence=0.9)]

    assert ids(rank_options(options, weights=weights)) == ["high", "low"]


def test_equal_options_keep_input_order(build):
    options = [option(build, f"opt-{i}") for i in range(4)]
    assert ids(rank_options(options)) == ["opt-0", "opt-1", "opt-2", "opt-3"]


def test_input_is_not_mutated(build):
    options = [option(build, "b", amount=400), option(build, "a", amount=100)]
    snapshot = list(options)

    rank_options(options)
    assert options == snapshot


def test_limit_truncates(build):
    options = [option(build, f"opt-{i}", amount=100 * (i + 1)) for i in range(5)]

    ranked = OptionRanker().rank(options, limit=3)
    assert ids(ranked) == ["opt-0", "opt-1", "opt-2"]


def test_free_change_scores_full_price_points(build):
    ranker = OptionRanker()
    prefs = UserPreferences()
    free = option(build, "free", amount=0)

    assert ranker.score(free, prefs, max_amount=0) == 0.3 * 1.0 + 0.4 * 1.0 + 0.2 * 0.5 + 0.1 * 0.8


def test_empty_input():
    assert rank_options([]) == []


def test_zero_ceiling_rejects_any_increase(build):
    options = [option(build, "big", amount=100), option(build, "small", amount=20), option(build, "free", amount=0)]

    assert ids(rank_options(options)) == ["free", "small", "big"]
    # Both increases score zero on price, so input order is kept
    assert ids(rank_options(options, UserPreferences(max_price_increase=0))) == ["free", "big", "small"]
