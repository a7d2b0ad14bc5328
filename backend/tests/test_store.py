"""Tests for the SQLAlchemy-backed persistent store (SQLite via aiosqlite)."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from conftest import NOW, FixtureAdapter, make_registry, make_request
from tripcompare.database import create_engine, create_session_factory
from tripcompare.models.price import SearchLogRecord
from tripcompare.schemas.price import PriceAlert, PricePoint, PricePointMetadata
from tripcompare.services.comparison_service import build_engine
from tripcompare.store import SqlAlchemyStore


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'tripcompare.db'}"


@pytest.fixture
async def store(database_url):
    store = SqlAlchemyStore(database_url)
    await store.start()
    yield store
    await store.close()


async def test_price_points_round_trip(store):
    points = [
        PricePoint(
            timestamp=NOW + timedelta(hours=i),
            price=100 + i,
            currency="EUR",
            provider_id="booking_com",
            metadata=PricePointMetadata(fees=2.5, taxes=10),
        )
        for i in range(3)
    ]
    await store.append_price_points("hotel-paris", "hotel", points)

    item_type, loaded = await store.load_price_points("hotel-paris", NOW + timedelta(minutes=30))
    assert item_type == "hotel"
    assert [p.price for p in loaded] == [101, 102]
    assert loaded[0].timestamp == NOW + timedelta(hours=1)
    assert loaded[0].metadata.taxes == 10

    assert await store.load_price_points("unknown", NOW) == (None, [])


async def test_only_active_alerts_are_loaded(store):
    alert = PriceAlert(
        id="alert_1",
        user_id="u1",
        item_id="hotel-paris",
        target_price=95,
        currency="USD",
        condition="drops_by",
        value=10,
        reference_price=120,
        created_at=NOW,
        notification_methods=["email", "push"],
    )
    await store.save_price_alert(alert)
    await store.save_price_alert(alert.model_copy(update={"id": "alert_2"}))
    await store.save_price_alert(alert.model_copy(update={"id": "alert_2", "is_active": False}))

    (loaded,) = await store.load_active_alerts()
    assert loaded.id == "alert_1"
    assert loaded.reference_price == 120
    assert loaded.value == 10
    assert loaded.notification_methods == ["email", "push"]
    assert loaded.created_at == NOW


async def test_engine_state_survives_restart(test_settings, database_url):
    settings = test_settings.model_copy(update={"database_url": database_url})

    first = build_engine(settings, registry=make_registry(FixtureAdapter("A", [{"id": "a1", "price": 100}])))
    await first.start()
    await first.search(make_request("hotel", item_id="hotel-paris"))
    await first.subscribe_price_alert("u1", "hotel-paris", target_price=80, currency="USD")
    await first.close()

    second = build_engine(settings, registry=make_registry(FixtureAdapter("A")))
    await second.start()
    try:
        history = await second.get_price_history("hotel-paris")
        assert history is not None
        assert [p.price for p in history.points] == [100]
        assert history.item_type == "hotel"

        alerts = await second.list_price_alerts("u1")
        assert [a.target_price for a in alerts] == [80]
        assert alerts[0].reference_price == 100
    finally:
        await second.close()


async def test_searches_are_logged(test_settings, database_url):
    settings = test_settings.model_copy(update={"database_url": database_url})
    engine = build_engine(settings, registry=make_registry(FixtureAdapter("A", [{"id": "a1", "price": 100}])))
    await engine.start()
    result = await engine.search(make_request("hotel"))
    await engine.close()

    db_engine = create_engine(database_url)
    async with create_session_factory(db_engine)() as db:
        row = (await db.execute(select(SearchLogRecord))).scalar_one()
        count = (await db.execute(select(func.count()).select_from(SearchLogRecord))).scalar_one()
    await db_engine.dispose()

    assert count == 1
    assert row.request_id == result.request_id
    assert row.status == "completed"
    assert float(row.cheapest_price) == 100
    assert row.providers == ["A"]
