"""Price insights — where the current offers sit against the tracked history."""

import statistics

from tripcompare.schemas.comparison import PriceInsights
from tripcompare.schemas.price import PricePrediction, PriceStatistics
from tripcompare.schemas.quote import Quote
from tripcompare.services.policy import InsightThresholds


def build_price_insights(
    quotes: list[Quote],
    stats: PriceStatistics,
    prediction: PricePrediction | None = None,
    thresholds: InsightThresholds | None = None,
) -> PriceInsights | None:
    """Market average, savings and low/average/high position of the cheapest quote."""
    if not quotes:
        return None
    t = thresholds or InsightThresholds()

    prices = [q.price.amount for q in quotes]
    market_average = statistics.fmean(prices)
    lowest = min(prices)
    savings = (market_average - lowest) / market_average * 100 if market_average > 0 else 0.0

    reference = stats.mean_price if stats.sample_size else market_average
    position = "average"
    if reference > 0:
        if lowest < reference * t.low_ratio:
            position = "low"
        elif lowest > reference * t.high_ratio:
            position = "high"

    return PriceInsights(
        market_average=round(market_average, 2),
        lowest_price=round(lowest, 2),
        savings_percent=round(savings, 1),
        price_position=position,
        is_good_deal=reference > 0 and lowest < reference * t.good_deal_ratio,
        recommendation=_recommendation(lowest, stats, prediction, t),
    )


def _recommendation(
    price: float,
    stats: PriceStatistics,
    prediction: PricePrediction | None,
    t: InsightThresholds,
) -> str:
    if stats.sample_size and stats.min_price > 0 and price <= stats.min_price * t.excellent_ratio:
        return "Excellent deal! This is one of the lowest prices we've seen."
    if stats.sample_size and price <= stats.mean_price * t.good_deal_ratio:
        return "Good price! Below average for this item."
    if prediction and prediction.next_week.avg < price:
        return "Consider waiting - prices may drop next week."
    if stats.trend_direction == "up":
        return "Prices are trending up - book soon to avoid increases."
    return "Fair price. Monitor for better deals."
