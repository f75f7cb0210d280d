"""IRROPS rebooking — alternatives for disrupted itineraries.

Modules:
    pnr_parser             PNR from pasted text or structured slots
    disruption_classifier  Keyword classification of the traveler's message
    alternative_search     Replacement-flight search (Amadeus, demo mock)
    constraint_validator   MCT, fare-change and carrier-change checks
    option_ranker          Weighted price/schedule/carrier/confidence ranking
    engine                 Orchestrates search → validate → build → rank

Pipeline:
    classify_disruption → IrropsEngine.process
        → AlternativeSearch.search_alternatives → ConstraintValidator
        → OptionRanker.rank
"""
