from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from tripcompare.schemas.provider import ItemType

TrendDirection = Literal["up", "down", "stable"]
AlertCondition = Literal["below", "above", "drops_by", "rises_by"]
NotificationMethod = Literal["email", "push", "sms"]
MarketAlertType = Literal["price_drop", "price_spike", "availability_low", "deal_ending"]
Urgency = Literal["low", "medium", "high"]


class PricePointMetadata(BaseModel):
    source: str = "api"
    confidence: float = Field(default=1.0, ge=0, le=1)
    fees: float = 0.0
    taxes: float = 0.0

    model_config = {"frozen": True}


class PricePoint(BaseModel):
    timestamp: datetime
    price: float = Field(ge=0)
    currency: str
    provider_id: str
    available: bool = True
    metadata: PricePointMetadata = Field(default_factory=PricePointMetadata)

    model_config = {"frozen": True}


class PriceStatistics(BaseModel):
    min_price: float = 0.0
    max_price: float = 0.0
    mean_price: float = 0.0
    median_price: float = 0.0
    volatility: float = 0.0
    trend_direction: TrendDirection = "stable"
    trend_strength: float = 0.0
    sample_size: int = 0


class PriceBand(BaseModel):
    min: float
    max: float
    avg: float
    confidence: float


class TargetPrice(BaseModel):
    target_price: float
    likelihood: float
    estimated_date: datetime | None = None


class MarketAlert(BaseModel):
    type: MarketAlertType
    message: str
    urgency: Urgency
    expires_at: datetime | None = None


class PricePrediction(BaseModel):
    next_week: PriceBand
    next_month: PriceBand
    best_time_to_book: datetime
    price_alerts: list[MarketAlert] = Field(default_factory=list)
    target_prices: list[TargetPrice] = Field(default_factory=list)


class PriceHistory(BaseModel):
    item_id: str
    item_type: ItemType
    search_criteria: dict[str, Any] = Field(default_factory=dict)
    points: list[PricePoint] = Field(default_factory=list)
    statistics: PriceStatistics = Field(default_factory=PriceStatistics)
    predictions: PricePrediction | None = None


class PriceAlert(BaseModel):
    """A user's subscription to price movements of one tracked item."""

    id: str
    user_id: str
    item_id: str
    target_price: float = Field(ge=0)
    currency: str
    condition: AlertCondition
    value: float | None = Field(default=None, gt=0)
    reference_price: float | None = None
    is_active: bool = True
    created_at: datetime
    triggered_at: datetime | None = None
    notification_methods: list[NotificationMethod] = Field(default_factory=lambda: ["email"])


class AlertNotification(BaseModel):
    id: str
    user_id: str
    alert_id: str
    item_id: str
    type: Literal["price_drop", "price_spike"]
    title: str
    body: str
    price: float
    currency: str
    methods: list[NotificationMethod]
    created_at: datetime
