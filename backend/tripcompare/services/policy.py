"""Pricing policy — single source for ranking weights and price-analysis thresholds."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RankingWeights:
    """Weights of the comparison score. Scale 0-100, must sum to 100."""
    price: float = 40.0
    rating: float = 30.0
    availability: float = 20.0
    cancellation: float = 10.0

    availability_cap: int = 10       # remaining count that earns full availability credit
    default_rating: float = 3.0      # used when a supplier has no rating
    bucket_size: int = 3             # ids per recommendation bucket

    def __post_init__(self):
        total = self.price + self.rating + self.availability + self.cancellation
        if abs(total - 100.0) > 1e-9:
            raise ValueError(f"ranking weights must sum to 100, got {total}")
        if self.availability_cap <= 0:
            raise ValueError("availability_cap must be positive")


@dataclass(frozen=True)
class FilterLimits:
    max_features: int = 20


@dataclass(frozen=True)
class TrendThresholds:
    """Half-window mean comparison."""
    change_ratio: float = 0.05       # ±5% between first and second half


@dataclass(frozen=True)
class PredictionParams:
    recent_window_days: int = 7      # slope is fitted over this many trailing days
    week_days: int = 7
    month_days: int = 30
    week_band: float = 0.5           # × volatility
    month_band: float = 1.5          # × volatility
    week_confidence_ceiling: float = 1.0
    week_confidence_floor: float = 0.3
    month_confidence_ceiling: float = 0.8
    month_confidence_floor: float = 0.2
    # Days from now to book, keyed by trend direction
    book_in_days: dict = field(default_factory=lambda: {"down": 7, "stable": 3, "up": 1})
    target_price_markup: float = 1.05    # × historical minimum
    target_price_likelihood: float = 0.3
    target_price_horizon_days: int = 14


@dataclass(frozen=True)
class AlertThresholds:
    drop_ratio: float = 0.15             # current min more than 15% below mean
    min_available_providers: int = 3     # fewer than this → availability_low
    spike_trend_strength: float = 0.6    # R² above this with an upward trend → price_spike


@dataclass(frozen=True)
class InsightThresholds:
    low_ratio: float = 0.90              # below mean × this → "low"
    high_ratio: float = 1.10             # above mean × this → "high"
    good_deal_ratio: float = 0.90
    excellent_ratio: float = 1.10        # within this of the historical minimum


@dataclass(frozen=True)
class PricingPolicy:
    """Top-level policy aggregating all sub-policies."""
    ranking: RankingWeights = field(default_factory=RankingWeights)
    filters: FilterLimits = field(default_factory=FilterLimits)
    trend: TrendThresholds = field(default_factory=TrendThresholds)
    prediction: PredictionParams = field(default_factory=PredictionParams)
    alerts: AlertThresholds = field(default_factory=AlertThresholds)
    insights: InsightThresholds = field(default_factory=InsightThresholds)


default_policy = PricingPolicy()
