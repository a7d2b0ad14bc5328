from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from tripcompare.schemas.provider import ItemType


class PriceBreakdown(BaseModel):
    base: float = 0.0
    taxes: float = 0.0
    fees: float = 0.0
    commission: float = 0.0

    model_config = {"frozen": True}


class Price(BaseModel):
    amount: float = Field(ge=0)
    currency: str
    breakdown: PriceBreakdown = Field(default_factory=PriceBreakdown)

    model_config = {"frozen": True}


class Availability(BaseModel):
    available: bool = True
    remaining: int = Field(default=0, ge=0)
    expires_at: datetime

    model_config = {"frozen": True}


class CancellationTerms(BaseModel):
    refundable: bool = False
    deadline: datetime | None = None
    penalty: float | None = None

    model_config = {"frozen": True}


class SupplierInfo(BaseModel):
    name: str
    logo: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    review_count: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


class Quote(BaseModel):
    """A normalized, priced, time-bounded offer from one provider."""

    id: str
    provider_id: str
    item_type: ItemType
    title: str
    description: str = ""
    price: Price
    availability: Availability
    cancellation: CancellationTerms = Field(default_factory=CancellationTerms)
    supplier: SupplierInfo
    deeplink: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def is_expired(self, now: datetime) -> bool:
        return self.availability.expires_at <= now

    @property
    def duration_minutes(self) -> float | None:
        value = self.metadata.get("duration_minutes")
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            return None
        return float(value)

    @property
    def features(self) -> list[str]:
        tags = self.metadata.get("amenities") or self.metadata.get("features") or []
        return [str(t) for t in tags]
