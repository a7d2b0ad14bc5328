"""Tests for price alert subscriptions."""

import pytest

from conftest import NOW
from tripcompare.services.notification_service import InAppNotificationSink, NotificationSink
from tripcompare.services.price_watch_service import PriceWatchService


@pytest.fixture
def sink():
    return InAppNotificationSink()


@pytest.fixture
def watches(sink):
    return PriceWatchService(sink, clock=lambda: NOW)


async def test_below_threshold_fires_exactly_once(watches, sink):
    await watches.subscribe("u1", "item-1", target_price=100, currency="USD", condition="below")

    first = await watches.evaluate("item-1", 95, "USD")
    assert len(first) == 1
    assert first[0].type == "price_drop"

    second = await watches.evaluate("item-1", 120, "USD")
    assert second == []

    third = await watches.evaluate("item-1", 80, "USD")
    assert third == []
    assert len(await sink.list_for_user("u1")) == 1


async def test_not_crossed(watches):
    await watches.subscribe("u1", "item-1", target_price=100, currency="USD", condition="below")
    assert await watches.evaluate("item-1", 100.01, "USD") == []
    assert watches.active_count == 1


async def test_above_is_a_spike(watches):
    await watches.subscribe("u1", "item-1", target_price=200, currency="USD", condition="above")
    fired = await watches.evaluate("item-1", 210, "USD")
    assert [n.type for n in fired] == ["price_spike"]


async def test_drops_by_percentage_of_reference(watches):
    await watches.subscribe(
        "u1", "item-1", target_price=0, currency="USD", condition="drops_by", value=20, current_price=150
    )
    assert await watches.evaluate("item-1", 125, "USD") == []
    fired = await watches.evaluate("item-1", 119, "USD")
    assert [n.type for n in fired] == ["price_drop"]


async def test_rises_by_percentage_of_reference(watches):
    await watches.subscribe(
        "u1", "item-1", target_price=100, currency="USD", condition="rises_by", value=10
    )
    fired = await watches.evaluate("item-1", 111, "USD")
    assert [n.type for n in fired] == ["price_spike"]


async def test_percentage_conditions_need_a_value(watches):
    with pytest.raises(ValueError):
        await watches.subscribe("u1", "item-1", target_price=100, currency="USD", condition="drops_by")


async def test_other_items_and_currencies_ignored(watches):
    await watches.subscribe("u1", "item-1", target_price=100, currency="USD", condition="below")
    assert await watches.evaluate("item-2", 50, "USD") == []
    assert await watches.evaluate("item-1", 50, "EUR") == []
    assert watches.active_count == 1


async def test_cancel(watches):
    alert = await watches.subscribe("u1", "item-1", target_price=100, currency="usd", condition="below")
    assert alert.currency == "USD"
    assert await watches.cancel(alert.id, "someone-else") is False
    assert await watches.cancel(alert.id, "u1") is True
    assert await watches.cancel(alert.id, "u1") is False
    assert await watches.evaluate("item-1", 10, "USD") == []


async def test_list_for_user(watches):
    await watches.subscribe("u1", "item-1", target_price=100, currency="USD", condition="below")
    await watches.subscribe("u2", "item-1", target_price=100, currency="USD", condition="below")
    alerts = await watches.list_for_user("u1")
    assert [a.user_id for a in alerts] == ["u1"]
    assert alerts[0].notification_methods == ["email"]


async def test_sink_failure_does_not_reactivate_alert():
    class BrokenSink(NotificationSink):
        async def send(self, notification):
            raise ConnectionError("smtp down")

    watches = PriceWatchService(BrokenSink(), clock=lambda: NOW)
    await watches.subscribe("u1", "item-1", target_price=100, currency="USD", condition="below")
    fired = await watches.evaluate("item-1", 90, "USD")
    assert len(fired) == 1
    assert watches.active_count == 0
