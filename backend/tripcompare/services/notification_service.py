"""Notification sink — where triggered price alerts are handed off for delivery."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict, deque

from tripcompare.schemas.price import AlertNotification

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Delivery transport (email/push/SMS) lives behind this interface."""

    @abstractmethod
    async def send(self, notification: AlertNotification) -> None: ...


class InAppNotificationSink(NotificationSink):
    """Keeps the most recent notifications per user for the in-app alerts feed."""

    def __init__(self, max_per_user: int = 50):
        self._by_user: dict[str, deque[AlertNotification]] = defaultdict(lambda: deque(maxlen=max_per_user))
        self._lock = asyncio.Lock()

    async def send(self, notification: AlertNotification) -> None:
        async with self._lock:
            self._by_user[notification.user_id].appendleft(notification)
        logger.info(
            f"Alert {notification.alert_id} → {notification.user_id} "
            f"via {', '.join(notification.methods)}: {notification.title}"
        )

    async def list_for_user(self, user_id: str) -> list[AlertNotification]:
        async with self._lock:
            return list(self._by_user.get(user_id, ()))
