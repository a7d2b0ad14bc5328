"""Persistent store seam — the core defines what is persisted, the store decides how."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from tripcompare.database import Base, create_engine, create_session_factory
from tripcompare.models.price import PriceAlertRecord, PricePointRecord, SearchLogRecord
from tripcompare.schemas.comparison import ComparisonResult
from tripcompare.schemas.price import PriceAlert, PricePoint, PricePointMetadata

logger = logging.getLogger(__name__)


class PersistentStore(ABC):
    async def start(self):
        """Prepare the backing storage."""

    @abstractmethod
    async def append_price_points(self, item_id: str, item_type: str, points: list[PricePoint]) -> None: ...

    @abstractmethod
    async def load_price_points(self, item_id: str, since: datetime) -> tuple[str | None, list[PricePoint]]:
        """Return (item_type, points observed at or after ``since``)."""

    @abstractmethod
    async def save_price_alert(self, alert: PriceAlert) -> None: ...

    @abstractmethod
    async def load_active_alerts(self) -> list[PriceAlert]: ...

    @abstractmethod
    async def record_search(self, result: ComparisonResult, item_type: str) -> None: ...

    async def close(self):
        """Release connections."""


class NullStore(PersistentStore):
    """No durability; everything lives in the in-process stores."""

    async def append_price_points(self, item_id, item_type, points):
        return None

    async def load_price_points(self, item_id, since):
        return None, []

    async def save_price_alert(self, alert):
        return None

    async def load_active_alerts(self):
        return []

    async def record_search(self, result, item_type):
        return None


class SqlAlchemyStore(PersistentStore):
    """Async SQLAlchemy store. Write failures are logged and rolled back, never raised."""

    def __init__(self, database_url: str | None = None, engine: AsyncEngine | None = None):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_engine(database_url)
        self._engine = engine
        self._session_factory = create_session_factory(engine)

    async def start(self):
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def append_price_points(self, item_id, item_type, points):
        if not points:
            return
        async with self._session_factory() as db:
            try:
                for p in points:
                    db.add(PricePointRecord(
                        item_id=item_id,
                        item_type=item_type,
                        provider_id=p.provider_id,
                        price=Decimal(str(p.price)),
                        currency=p.currency,
                        available=p.available,
                        source=p.metadata.source,
                        confidence=p.metadata.confidence,
                        fees=Decimal(str(p.metadata.fees)),
                        taxes=Decimal(str(p.metadata.taxes)),
                        observed_at=p.timestamp,
                    ))
                await db.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to persist {len(points)} price points for {item_id}: {e}", exc_info=True)
                await db.rollback()

    async def load_price_points(self, item_id, since):
        async with self._session_factory() as db:
            result = await db.execute(
                select(PricePointRecord)
                .where(PricePointRecord.item_id == item_id, PricePointRecord.observed_at >= since)
                .order_by(PricePointRecord.observed_at)
            )
            rows = result.scalars().all()

        if not rows:
            return None, []
        points = [
            PricePoint(
                timestamp=_aware(r.observed_at),
                price=float(r.price),
                currency=r.currency,
                provider_id=r.provider_id,
                available=r.available,
                metadata=PricePointMetadata(
                    source=r.source,
                    confidence=r.confidence,
                    fees=float(r.fees or 0),
                    taxes=float(r.taxes or 0),
                ),
            )
            for r in rows
        ]
        return rows[0].item_type, points

    async def save_price_alert(self, alert):
        async with self._session_factory() as db:
            try:
                record = await db.get(PriceAlertRecord, alert.id)
                if record is None:
                    record = PriceAlertRecord(id=alert.id)
                    db.add(record)
                record.user_id = alert.user_id
                record.item_id = alert.item_id
                record.target_price = Decimal(str(alert.target_price))
                record.currency = alert.currency
                record.condition = alert.condition
                record.value = alert.value
                record.reference_price = (
                    Decimal(str(alert.reference_price)) if alert.reference_price is not None else None
                )
                record.is_active = alert.is_active
                record.notification_methods = list(alert.notification_methods)
                record.created_at = alert.created_at
                record.triggered_at = alert.triggered_at
                await db.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to persist price alert {alert.id}: {e}", exc_info=True)
                await db.rollback()

    async def load_active_alerts(self):
        async with self._session_factory() as db:
            result = await db.execute(
                select(PriceAlertRecord).where(PriceAlertRecord.is_active.is_(True))
            )
            rows = result.scalars().all()

        return [
            PriceAlert(
                id=r.id,
                user_id=r.user_id,
                item_id=r.item_id,
                target_price=float(r.target_price),
                currency=r.currency,
                condition=r.condition,
                value=r.value,
                reference_price=float(r.reference_price) if r.reference_price is not None else None,
                is_active=r.is_active,
                created_at=_aware(r.created_at),
                triggered_at=_aware(r.triggered_at) if r.triggered_at else None,
                notification_methods=r.notification_methods or [],
            )
            for r in rows
        ]

    async def record_search(self, result, item_type):
        prices = [q.price.amount for q in result.results]
        async with self._session_factory() as db:
            try:
                db.add(SearchLogRecord(
                    request_id=result.request_id,
                    item_id=result.item_id,
                    item_type=item_type,
                    status=result.status,
                    results_count=result.total_results,
                    cheapest_price=Decimal(str(min(prices))) if prices else None,
                    most_expensive_price=Decimal(str(max(prices))) if prices else None,
                    providers=list(result.providers),
                    failures=[f.model_dump() for f in result.failures],
                    response_time_ms=result.search_time_ms,
                ))
                await db.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to save search log {result.request_id}: {e}", exc_info=True)
                await db.rollback()

    async def close(self):
        await self._engine.dispose()


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
