"""Durable records for price history, alert subscriptions and search logs."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from tripcompare.database import Base


class PricePointRecord(Base):
    __tablename__ = "price_points"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    item_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    available: Mapped[bool] = mapped_column(Boolean, default=True)
    source: Mapped[str] = mapped_column(String(50), default="api")
    confidence: Mapped[float] = mapped_column(Float, default=1.0)
    fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    taxes: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class PriceAlertRecord(Base):
    __tablename__ = "price_alerts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    item_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    target_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    condition: Mapped[str] = mapped_column(String(20), nullable=False)
    value: Mapped[float | None] = mapped_column(Float)
    reference_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notification_methods: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    triggered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class SearchLogRecord(Base):
    __tablename__ = "search_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    item_id: Mapped[str | None] = mapped_column(String(200))
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    results_count: Mapped[int] = mapped_column(Integer, default=0)
    cheapest_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    most_expensive_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    providers: Mapped[list] = mapped_column(JSON, default=list)
    failures: Mapped[list] = mapped_column(JSON, default=list)
    response_time_ms: Mapped[int | None] = mapped_column(Integer)
    searched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
