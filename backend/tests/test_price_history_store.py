"""Tests for the per-item price history store."""

import asyncio
from datetime import timedelta

import pytest

from conftest import NOW, FakeClock
from tripcompare.schemas.price import PricePoint
from tripcompare.services.price_forecast_service import PriceForecastService
from tripcompare.services.price_history_store import PriceHistoryStore


def _point(price, at, provider="p1"):
    return PricePoint(timestamp=at, price=price, currency="USD", provider_id=provider)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def store(clock):
    return PriceHistoryStore(forecast=PriceForecastService(clock=clock), retention_days=90, clock=clock)


async def test_append_computes_statistics_and_predictions(store, clock):
    history = await store.append("hotel:paris", "hotel", {"destination": "PAR"}, [
        _point(100, NOW), _point(150, NOW, "p2"), _point(200, NOW, "p3"),
    ])
    assert history.statistics.median_price == 150
    assert history.statistics.sample_size == 3
    assert history.predictions is not None
    assert history.search_criteria == {"destination": "PAR"}


async def test_points_kept_in_chronological_order(store):
    await store.append("item", "hotel", {}, [_point(120, NOW)])
    await store.append("item", "hotel", {}, [_point(100, NOW - timedelta(days=2))])
    history = await store.get("item")
    assert [p.price for p in history.points] == [100, 120]


async def test_unknown_item(store):
    assert await store.get("missing") is None


async def test_retention_drops_old_points_and_recomputes(store, clock):
    await store.append("item", "hotel", {}, [_point(500, NOW - timedelta(days=89))])
    await store.append("item", "hotel", {}, [_point(100, NOW), _point(110, NOW, "p2")])
    assert (await store.get("item")).statistics.max_price == 500

    clock.advance(timedelta(days=2))
    history = await store.get("item")
    assert [p.price for p in history.points] == [100, 110]
    assert history.statistics.max_price == 110
    assert history.statistics.sample_size == 2


async def test_sweep(store, clock):
    await store.append("old", "hotel", {}, [_point(90, NOW - timedelta(days=80))])
    await store.append("fresh", "hotel", {}, [_point(95, NOW)])

    clock.advance(timedelta(days=15))
    assert await store.sweep() == 1
    assert store.item_count == 1
    assert await store.get("old") is None
    assert (await store.get("fresh")).statistics.sample_size == 1


async def test_appending_only_expired_points_leaves_empty_series(store):
    history = await store.append("item", "hotel", {}, [_point(80, NOW - timedelta(days=120))])
    assert history.points == []
    assert history.predictions is None


async def test_concurrent_appends_lose_nothing(store):
    async def writer(provider, n):
        for i in range(n):
            await store.append("item", "hotel", {}, [_point(100 + i, NOW - timedelta(minutes=i), provider)])
            await asyncio.sleep(0)

    await asyncio.gather(*(writer(f"p{k}", 25) for k in range(8)))

    history = await store.get("item")
    assert len(history.points) == 200
    assert store.point_count == 200
    timestamps = [p.timestamp for p in history.points]
    assert timestamps == sorted(timestamps)
