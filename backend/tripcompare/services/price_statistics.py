"""Statistics engine — rolling price statistics over a history window."""

import statistics

from tripcompare.schemas.price import PricePoint, PriceStatistics, TrendDirection
from tripcompare.services.policy import TrendThresholds


def compute_statistics(points: list[PricePoint], trend: TrendThresholds | None = None) -> PriceStatistics:
    """Min/max/mean/median, population std-dev volatility, trend direction and R² strength.

    Points are ordered chronologically before the trend is measured.
    """
    if not points:
        return PriceStatistics()

    ordered = sorted(points, key=lambda p: p.timestamp)
    prices = [p.price for p in ordered]

    return PriceStatistics(
        min_price=min(prices),
        max_price=max(prices),
        mean_price=statistics.fmean(prices),
        median_price=statistics.median(prices),
        volatility=statistics.pstdev(prices) if len(prices) > 1 else 0.0,
        trend_direction=trend_direction(prices, trend),
        trend_strength=trend_strength(prices),
        sample_size=len(prices),
    )


def trend_direction(prices: list[float], trend: TrendThresholds | None = None) -> TrendDirection:
    """Compare the mean of the first half of the window to the second half."""
    threshold = (trend or TrendThresholds()).change_ratio
    if len(prices) < 2:
        return "stable"

    midpoint = len(prices) // 2
    older_avg = statistics.fmean(prices[:midpoint])
    recent_avg = statistics.fmean(prices[midpoint:])
    if older_avg == 0:
        return "stable"

    change = (recent_avg - older_avg) / older_avg
    if change > threshold:
        return "up"
    if change < -threshold:
        return "down"
    return "stable"


def trend_strength(prices: list[float]) -> float:
    """R² of an OLS fit of price against index; 0 for degenerate series."""
    n = len(prices)
    if n < 2:
        return 0.0

    x_mean = (n - 1) / 2
    y_mean = statistics.fmean(prices)

    sxy = sum((i - x_mean) * (y - y_mean) for i, y in enumerate(prices))
    sxx = sum((i - x_mean) ** 2 for i in range(n))
    if sxx == 0:
        return 0.0

    slope = sxy / sxx
    intercept = y_mean - slope * x_mean

    ss_res = sum((y - (slope * i + intercept)) ** 2 for i, y in enumerate(prices))
    ss_tot = sum((y - y_mean) ** 2 for y in prices)
    if ss_tot == 0:
        return 0.0
    return max(0.0, min(1.0, 1 - ss_res / ss_tot))


def linear_slope(xs: list[float], ys: list[float]) -> float:
    """OLS slope of ys against xs; 0 when xs has no variance."""
    if len(xs) < 2:
        return 0.0
    x_mean = statistics.fmean(xs)
    y_mean = statistics.fmean(ys)
    sxx = sum((x - x_mean) ** 2 for x in xs)
    if sxx == 0:
        return 0.0
    return sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys)) / sxx
