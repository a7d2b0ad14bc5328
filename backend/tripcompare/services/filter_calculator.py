"""Facet bounds for downstream filtering UIs."""

from tripcompare.schemas.comparison import SearchFilters
from tripcompare.schemas.quote import Quote
from tripcompare.services.policy import FilterLimits, RankingWeights


def compute_filters(
    quotes: list[Quote],
    limits: FilterLimits | None = None,
    default_rating: float = RankingWeights.default_rating,
) -> SearchFilters:
    """Price/duration/rating ranges and the capped union of feature tags."""
    limits = limits or FilterLimits()
    if not quotes:
        return SearchFilters()

    prices = [q.price.amount for q in quotes]
    durations = [q.duration_minutes for q in quotes if q.duration_minutes is not None]
    ratings = [q.supplier.rating if q.supplier.rating is not None else default_rating for q in quotes]

    features: list[str] = []
    seen = set()
    for q in quotes:
        for tag in q.features:
            if tag not in seen:
                seen.add(tag)
                features.append(tag)

    return SearchFilters(
        price_range=(min(prices), max(prices)),
        duration_range=(min(durations), max(durations)) if durations else (0.0, 0.0),
        rating_range=(min(ratings), max(ratings)),
        features=features[:limits.max_features],
    )
