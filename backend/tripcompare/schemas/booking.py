from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from tripcompare.schemas.quote import Quote


class BookingConfirmRequest(BaseModel):
    quote_ids: list[str] = Field(min_length=1)
    traveler_details: dict[str, Any] = Field(default_factory=dict)
    payment_token: str


class TotalPrice(BaseModel):
    amount: float
    currency: str
    paid: float = 0.0
    remaining: float = 0.0


class CancellationInfo(BaseModel):
    refundable: bool
    deadline: datetime | None = None
    penalty: float = 0.0
    refund_amount: float = 0.0


class PaymentResult(BaseModel):
    status: Literal["paid", "pending", "failed"]
    reference: str | None = None
    amount_captured: float = 0.0


class BookingConfirmation(BaseModel):
    booking_id: str
    reference_number: str
    status: Literal["confirmed", "pending", "failed"]
    items: list[Quote]
    total_price: TotalPrice
    payment_status: Literal["paid", "pending", "failed"]
    traveler_details: dict[str, Any] = Field(default_factory=dict)
    cancellation_info: CancellationInfo
    created_at: datetime
