"""Scoring engine — ranks merged quotes with the weighted comparison score."""

from dataclasses import dataclass

from tripcompare.schemas.comparison import Recommendations
from tripcompare.schemas.quote import Quote
from tripcompare.schemas.search import SearchRequest
from tripcompare.services.policy import RankingWeights


@dataclass(frozen=True)
class ScoredQuote:
    quote: Quote
    price: float          # 0-1
    rating: float         # 0-1
    availability: float   # 0-1
    cancellation: float   # 0-1
    total: float          # 0-100

    @property
    def sort_key(self) -> tuple:
        return (-self.total, self.quote.provider_id, self.quote.id)


@dataclass(frozen=True)
class RankedQuotes:
    quotes: list[Quote]
    scores: dict[str, float]
    recommendations: Recommendations


class Ranker:
    """Deterministic multi-criteria ranking of a candidate set."""

    def __init__(self, weights: RankingWeights | None = None):
        self.weights = weights or RankingWeights()

    def score(self, quotes: list[Quote]) -> list[ScoredQuote]:
        """
        Score every quote against the candidate set.

        Price is normalized linearly between the cheapest (1.0) and priciest
        (0.0) quote in the set; a set with a single price scores 1.0 for all.
        """
        if not quotes:
            return []

        w = self.weights
        prices = [q.price.amount for q in quotes]
        min_price = min(prices)
        spread = max(prices) - min_price

        scored = []
        for quote in quotes:
            price_score = 1.0 - (quote.price.amount - min_price) / spread if spread > 0 else 1.0
            rating_score = self._rating(quote) / 5.0
            if quote.availability.available:
                availability_score = min(quote.availability.remaining, w.availability_cap) / w.availability_cap
            else:
                availability_score = 0.0
            cancellation_score = 1.0 if quote.cancellation.refundable else 0.0

            total = (
                w.price * price_score
                + w.rating * rating_score
                + w.availability * availability_score
                + w.cancellation * cancellation_score
            )
            scored.append(ScoredQuote(
                quote=quote,
                price=price_score,
                rating=rating_score,
                availability=availability_score,
                cancellation=cancellation_score,
                total=total,
            ))
        return scored

    def rank(self, quotes: list[Quote], request: SearchRequest | None = None) -> RankedQuotes:
        """Total order by score desc, then provider id, then quote id."""
        scored = sorted(self.score(quotes), key=lambda s: s.sort_key)
        ranked = [s.quote for s in scored]
        return RankedQuotes(
            quotes=ranked,
            scores={s.quote.id: round(s.total, 4) for s in scored},
            recommendations=self.recommend(ranked),
        )

    def recommend(self, quotes: list[Quote]) -> Recommendations:
        if not quotes:
            return Recommendations()

        n = self.weights.bucket_size

        def tiebreak(q: Quote) -> tuple:
            return (q.provider_id, q.id)

        # Best value: rating per unit price; free items sort first
        best_value = sorted(
            quotes,
            key=lambda q: (-self._value(q), *tiebreak(q)),
        )[:n]

        # Quickest: shortest duration; quotes without a duration are excluded
        with_duration = [q for q in quotes if q.duration_minutes is not None]
        quickest = sorted(with_duration, key=lambda q: (q.duration_minutes, *tiebreak(q)))[:n]

        # Most popular: review volume weighted by rating
        most_popular = sorted(
            quotes,
            key=lambda q: (-(q.supplier.review_count * self._rating(q)), *tiebreak(q)),
        )[:n]

        return Recommendations(
            best_value=[q.id for q in best_value],
            quickest=[q.id for q in quickest],
            most_popular=[q.id for q in most_popular],
        )

    def _rating(self, quote: Quote) -> float:
        if quote.supplier.rating is None:
            return self.weights.default_rating
        return quote.supplier.rating

    def _value(self, quote: Quote) -> float:
        if quote.price.amount <= 0:
            return float("inf")
        return self._rating(quote) / quote.price.amount
