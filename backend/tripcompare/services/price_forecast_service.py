"""Price forecast service — near-term price bands, booking timing and market alerts.

Uses a layered approach:
1. Recent slope — OLS fit over the trailing week of observations (price per day)
2. Dispersion bands — mean ± k·volatility, widening with the horizon
3. Confidence — inversely proportional to volatility/mean, floored
4. Booking timing — deterministic on trend direction
5. Alerts — drop below average, thin availability, confirmed upward trend

All multipliers come from PredictionParams / AlertThresholds.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from tripcompare.clock import utcnow
from tripcompare.schemas.price import (
    MarketAlert,
    PriceBand,
    PricePoint,
    PricePrediction,
    PriceStatistics,
    TargetPrice,
)
from tripcompare.services.policy import AlertThresholds, PredictionParams
from tripcompare.services.price_statistics import linear_slope

logger = logging.getLogger(__name__)


class PriceForecastService:
    """Trend-extrapolation forecast over a price history window."""

    def __init__(
        self,
        params: PredictionParams | None = None,
        thresholds: AlertThresholds | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.params = params or PredictionParams()
        self.thresholds = thresholds or AlertThresholds()
        self._clock = clock

    def predict(
        self,
        points: list[PricePoint],
        stats: PriceStatistics,
        current_points: list[PricePoint] | None = None,
    ) -> PricePrediction | None:
        """Project week/month price bands and generate market alerts.

        Args:
            points: In-window history for one item
            stats: Statistics computed from the same points
            current_points: Observations of the latest search; defaults to the
                points sharing the most recent timestamp

        Returns None for an empty history.
        """
        if not points:
            return None

        p = self.params
        now = self._clock()
        slope = self.recent_slope(points, now)
        base = stats.mean_price
        ratio = stats.volatility / base if base > 0 else 0.0

        next_week = self._band(
            center=base + slope * p.week_days,
            spread=stats.volatility * p.week_band,
            confidence=max(p.week_confidence_floor, min(1.0, p.week_confidence_ceiling - ratio)),
        )
        next_month = self._band(
            center=base + slope * p.month_days,
            spread=stats.volatility * p.month_band,
            confidence=max(p.month_confidence_floor, min(1.0, p.month_confidence_ceiling - ratio)),
        )

        if current_points is None:
            current_points = self.latest_points(points)

        return PricePrediction(
            next_week=next_week,
            next_month=next_month,
            best_time_to_book=self.best_time_to_book(stats, now),
            price_alerts=self.market_alerts(current_points, stats),
            target_prices=[
                TargetPrice(
                    target_price=round(stats.min_price * p.target_price_markup, 2),
                    likelihood=p.target_price_likelihood,
                    estimated_date=now + timedelta(days=p.target_price_horizon_days),
                ),
            ],
        )

    def recent_slope(self, points: list[PricePoint], now: datetime) -> float:
        """Price change per day over the trailing window."""
        cutoff = now - timedelta(days=self.params.recent_window_days)
        recent = sorted((pt for pt in points if pt.timestamp >= cutoff), key=lambda pt: pt.timestamp)
        if len(recent) < 2:
            return 0.0
        origin = recent[0].timestamp
        xs = [(pt.timestamp - origin).total_seconds() / 86400 for pt in recent]
        ys = [pt.price for pt in recent]
        return linear_slope(xs, ys)

    def best_time_to_book(self, stats: PriceStatistics, now: datetime) -> datetime:
        """Wait when prices are falling, book sooner when they are rising."""
        days = self.params.book_in_days.get(stats.trend_direction, self.params.book_in_days["stable"])
        return now + timedelta(days=days)

    def market_alerts(self, current_points: list[PricePoint], stats: PriceStatistics) -> list[MarketAlert]:
        t = self.thresholds
        alerts: list[MarketAlert] = []
        if not current_points:
            return alerts

        available = [pt for pt in current_points if pt.available]
        current_min = min(pt.price for pt in (available or current_points))

        # Price drop alert
        if stats.mean_price > 0 and current_min < stats.mean_price * (1 - t.drop_ratio):
            pct = round((stats.mean_price - current_min) / stats.mean_price * 100)
            alerts.append(MarketAlert(
                type="price_drop",
                message=f"Price dropped {pct}% below average!",
                urgency="high",
            ))

        # Availability alert
        providers_available = len({pt.provider_id for pt in available})
        if providers_available < t.min_available_providers:
            alerts.append(MarketAlert(
                type="availability_low",
                message=f"Only {providers_available} provider{'s' if providers_available != 1 else ''} "
                        f"reporting availability at these prices.",
                urgency="medium",
            ))

        # Trending up alert
        if stats.trend_direction == "up" and stats.trend_strength > t.spike_trend_strength:
            alerts.append(MarketAlert(
                type="price_spike",
                message="Prices are trending upward. Consider booking soon.",
                urgency="medium",
            ))

        return alerts

    @staticmethod
    def latest_points(points: list[PricePoint]) -> list[PricePoint]:
        latest = max(pt.timestamp for pt in points)
        return [pt for pt in points if pt.timestamp == latest]

    @staticmethod
    def _band(center: float, spread: float, confidence: float) -> PriceBand:
        return PriceBand(
            min=round(max(center - spread, 0.0), 2),
            max=round(max(center + spread, 0.0), 2),
            avg=round(max(center, 0.0), 2),
            confidence=round(confidence, 3),
        )
