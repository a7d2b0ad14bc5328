"""Price watch service — manages price alert subscriptions and triggers notifications."""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from tripcompare.clock import utcnow
from tripcompare.schemas.price import AlertCondition, AlertNotification, NotificationMethod, PriceAlert
from tripcompare.services.notification_service import NotificationSink
from tripcompare.store import NullStore, PersistentStore

logger = logging.getLogger(__name__)

_DROP_CONDITIONS = {"below", "drops_by"}


class PriceWatchService:
    """Holds active subscriptions; an alert fires once and is then deactivated."""

    def __init__(
        self,
        sink: NotificationSink,
        store: PersistentStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._sink = sink
        self._store = store or NullStore()
        self._clock = clock
        self._alerts: dict[str, PriceAlert] = {}
        self._lock = asyncio.Lock()

    async def load(self) -> int:
        """Restore active subscriptions from the persistent store."""
        alerts = await self._store.load_active_alerts()
        async with self._lock:
            for alert in alerts:
                self._alerts[alert.id] = alert
        return len(alerts)

    async def subscribe(
        self,
        user_id: str,
        item_id: str,
        target_price: float,
        currency: str,
        condition: AlertCondition,
        notification_methods: list[NotificationMethod] | None = None,
        value: float | None = None,
        current_price: float | None = None,
    ) -> PriceAlert:
        """Create a subscription.

        ``value`` is the percentage for drops_by / rises_by, measured against
        ``current_price`` (or the target price when no current price is known).
        """
        if condition in ("drops_by", "rises_by") and not value:
            raise ValueError(f"condition '{condition}' requires a percentage value")

        alert = PriceAlert(
            id=f"alert_{uuid.uuid4().hex[:16]}",
            user_id=user_id,
            item_id=item_id,
            target_price=target_price,
            currency=currency.upper(),
            condition=condition,
            value=value,
            reference_price=current_price if current_price is not None else target_price,
            created_at=self._clock(),
            notification_methods=notification_methods or ["email"],
        )
        async with self._lock:
            self._alerts[alert.id] = alert
        await self._store.save_price_alert(alert)

        logger.info(f"Price alert created: {alert.id} ({condition} {target_price} {alert.currency} on {item_id})")
        return alert

    async def cancel(self, alert_id: str, user_id: str) -> bool:
        async with self._lock:
            alert = self._alerts.get(alert_id)
            if not alert or alert.user_id != user_id or not alert.is_active:
                return False
            alert = alert.model_copy(update={"is_active": False})
            self._alerts[alert_id] = alert
        await self._store.save_price_alert(alert)
        return True

    async def list_for_user(self, user_id: str) -> list[PriceAlert]:
        async with self._lock:
            alerts = [a for a in self._alerts.values() if a.user_id == user_id and a.is_active]
        return sorted(alerts, key=lambda a: a.created_at, reverse=True)

    async def watched_items(self) -> set[str]:
        """Item ids with at least one active subscription."""
        async with self._lock:
            return {a.item_id for a in self._alerts.values() if a.is_active}

    async def evaluate(self, item_id: str, price: float, currency: str) -> list[AlertNotification]:
        """Check every active subscription on ``item_id`` against an observed price."""
        now = self._clock()
        triggered: list[PriceAlert] = []

        async with self._lock:
            for alert in list(self._alerts.values()):
                if not alert.is_active or alert.item_id != item_id:
                    continue
                if alert.currency != currency.upper():
                    continue
                if not self._crossed(alert, price):
                    continue
                fired = alert.model_copy(update={"is_active": False, "triggered_at": now})
                self._alerts[alert.id] = fired
                triggered.append(fired)

        notifications = []
        for alert in triggered:
            await self._store.save_price_alert(alert)
            notification = self._notification(alert, price, now)
            try:
                await self._sink.send(notification)
            except Exception as e:
                logger.error(f"Notification delivery failed for alert {alert.id}: {e}")
            notifications.append(notification)

        return notifications

    @property
    def active_count(self) -> int:
        return sum(1 for a in self._alerts.values() if a.is_active)

    @staticmethod
    def _crossed(alert: PriceAlert, price: float) -> bool:
        if alert.condition == "below":
            return price <= alert.target_price
        if alert.condition == "above":
            return price >= alert.target_price

        reference = alert.reference_price or alert.target_price
        pct = (alert.value or 0) / 100
        if alert.condition == "drops_by":
            return price <= reference * (1 - pct)
        return price >= reference * (1 + pct)

    @staticmethod
    def _notification(alert: PriceAlert, price: float, now: datetime) -> AlertNotification:
        is_drop = alert.condition in _DROP_CONDITIONS
        if is_drop:
            title = "Price Drop Alert"
            body = (
                f"Price dropped to {price:.2f} {alert.currency} for {alert.item_id}! "
                f"(Target: {alert.target_price:.2f} {alert.currency})"
            )
        else:
            title = "Price Rise Alert"
            body = (
                f"Price rose to {price:.2f} {alert.currency} for {alert.item_id} "
                f"(Threshold: {alert.target_price:.2f} {alert.currency})"
            )
        return AlertNotification(
            id=uuid.uuid4().hex,
            user_id=alert.user_id,
            alert_id=alert.id,
            item_id=alert.item_id,
            type="price_drop" if is_drop else "price_spike",
            title=title,
            body=body,
            price=price,
            currency=alert.currency,
            methods=list(alert.notification_methods),
            created_at=now,
        )
