import hashlib
import json
from datetime import date
from typing import Any

from pydantic import BaseModel, Field, model_validator

from tripcompare.schemas.provider import ItemType


class TravelerCounts(BaseModel):
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.adults + self.children + self.infants


class Budget(BaseModel):
    amount: float = Field(ge=0)
    currency: str = "USD"


class BookingWindow(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_order(self):
        if self.end_date < self.start_date:
            raise ValueError("booking window ends before it starts")
        return self


class SearchCriteria(BaseModel):
    """Generic criteria; each adapter reads the fields that apply to its item type."""

    origin: str | None = None
    destination: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    rooms: int = Field(default=1, ge=1)
    cabin_class: str | None = None
    extras: dict[str, Any] = Field(default_factory=dict)

    def nights(self) -> int:
        if self.start_date and self.end_date:
            return max((self.end_date - self.start_date).days, 1)
        return 1


class SearchRequest(BaseModel):
    item_type: ItemType
    criteria: SearchCriteria
    travelers: TravelerCounts = Field(default_factory=TravelerCounts)
    budget: Budget | None = None
    booking_window: BookingWindow | None = None
    currency: str | None = None
    region: str | None = None
    user_id: str | None = None
    item_id: str | None = None
    request_id: str | None = Field(default=None, min_length=1, max_length=64)

    def criteria_hash(self) -> str:
        """Hash of everything a provider response depends on."""
        return _digest({
            "type": self.item_type,
            "criteria": self.criteria.model_dump(mode="json"),
            "travelers": self.travelers.model_dump(mode="json"),
            "currency": self.currency,
        })

    def cache_key(self) -> str:
        """Hash of the whole request, for aggregate result caching."""
        return _digest({
            "criteria": self.criteria_hash(),
            "budget": self.budget.model_dump(mode="json") if self.budget else None,
            "window": self.booking_window.model_dump(mode="json") if self.booking_window else None,
            "region": self.region,
        })

    def tracking_id(self) -> str:
        """Item id under which this search's prices are tracked."""
        if self.item_id:
            return self.item_id
        return f"{self.item_type}:{self.criteria_hash()[:16]}"


def _digest(payload: dict) -> str:
    raw = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()
