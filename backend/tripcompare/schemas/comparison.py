from typing import Literal

from pydantic import BaseModel, Field

from tripcompare.schemas.price import MarketAlert
from tripcompare.schemas.quote import Quote

SearchStatus = Literal["completed", "partial", "failed", "cancelled"]


class SearchFilters(BaseModel):
    price_range: tuple[float, float] = (0.0, 0.0)
    duration_range: tuple[float, float] = (0.0, 0.0)
    rating_range: tuple[float, float] = (0.0, 0.0)
    features: list[str] = Field(default_factory=list)


class Recommendations(BaseModel):
    best_value: list[str] = Field(default_factory=list)
    quickest: list[str] = Field(default_factory=list)
    most_popular: list[str] = Field(default_factory=list)


class PriceInsights(BaseModel):
    market_average: float
    lowest_price: float
    savings_percent: float
    price_position: Literal["low", "average", "high"]
    is_good_deal: bool
    recommendation: str


class ProviderFailure(BaseModel):
    provider_id: str
    code: str
    message: str


class SearchErrorInfo(BaseModel):
    code: str
    message: str


class ComparisonResult(BaseModel):
    request_id: str
    status: SearchStatus
    item_id: str | None = None
    results: list[Quote] = Field(default_factory=list)
    total_results: int = 0
    search_time_ms: int = 0
    providers: list[str] = Field(default_factory=list)
    failures: list[ProviderFailure] = Field(default_factory=list)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    recommendations: Recommendations = Field(default_factory=Recommendations)
    price_insights: PriceInsights | None = None
    alerts: list[MarketAlert] = Field(default_factory=list)
    error: SearchErrorInfo | None = None
    cached: bool = False
