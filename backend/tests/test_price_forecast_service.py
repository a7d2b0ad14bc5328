"""Tests for price bands, booking timing and market alerts."""

from datetime import timedelta

import pytest

from conftest import NOW
from tripcompare.schemas.price import PricePoint, PriceStatistics
from tripcompare.services.policy import AlertThresholds, PredictionParams
from tripcompare.services.price_forecast_service import PriceForecastService
from tripcompare.services.price_statistics import compute_statistics


def _point(price, days_ago=0.0, provider="p1", available=True):
    return PricePoint(
        timestamp=NOW - timedelta(days=days_ago),
        price=price,
        currency="USD",
        provider_id=provider,
        available=available,
    )


@pytest.fixture
def forecast():
    return PriceForecastService(clock=lambda: NOW)


def test_empty_history_has_no_prediction(forecast):
    assert forecast.predict([], PriceStatistics()) is None


def test_flat_history_bands(forecast):
    # Old observations only, so the recent slope is zero
    points = [_point(100, 20), _point(120, 15), _point(80, 10)]
    stats = compute_statistics(points)
    prediction = forecast.predict(points, stats)

    vol = stats.volatility
    assert prediction.next_week.avg == pytest.approx(100.0)
    assert prediction.next_week.min == pytest.approx(round(100 - 0.5 * vol, 2))
    assert prediction.next_week.max == pytest.approx(round(100 + 0.5 * vol, 2))
    assert prediction.next_month.min == pytest.approx(round(100 - 1.5 * vol, 2))
    assert prediction.next_month.max == pytest.approx(round(100 + 1.5 * vol, 2))


def test_confidence_floors(forecast):
    points = [_point(10, 12), _point(500, 11), _point(20, 10)]
    stats = compute_statistics(points)
    assert stats.volatility / stats.mean_price > 1.0

    prediction = forecast.predict(points, stats)
    assert prediction.next_week.confidence == pytest.approx(0.3)
    assert prediction.next_month.confidence == pytest.approx(0.2)


def test_confidence_for_steady_prices(forecast):
    points = [_point(100, 3), _point(100, 2), _point(100, 1)]
    prediction = forecast.predict(points, compute_statistics(points))
    assert prediction.next_week.confidence == pytest.approx(1.0)
    assert prediction.next_month.confidence == pytest.approx(0.8)


def test_bands_follow_recent_slope(forecast):
    # Rising 10/day over the last week
    points = [_point(100 + 10 * i, 6 - i) for i in range(7)]
    stats = compute_statistics(points)
    prediction = forecast.predict(points, stats)
    assert forecast.recent_slope(points, NOW) == pytest.approx(10.0)
    assert prediction.next_week.avg == pytest.approx(round(stats.mean_price + 70, 2))
    assert prediction.next_month.avg == pytest.approx(round(stats.mean_price + 300, 2))


def test_band_never_negative(forecast):
    points = [_point(5, 20), _point(400, 19), _point(3, 18)]
    prediction = forecast.predict(points, compute_statistics(points))
    assert prediction.next_month.min >= 0.0


@pytest.mark.parametrize("direction,days", [("down", 7), ("stable", 3), ("up", 1)])
def test_best_time_to_book(forecast, direction, days):
    stats = PriceStatistics(mean_price=100, trend_direction=direction, sample_size=5)
    assert forecast.best_time_to_book(stats, NOW) == NOW + timedelta(days=days)


def test_target_price(forecast):
    points = [_point(120, 3), _point(100, 2)]
    prediction = forecast.predict(points, compute_statistics(points))
    assert prediction.target_prices[0].target_price == pytest.approx(105.0)
    assert prediction.target_prices[0].likelihood == pytest.approx(0.3)


class TestMarketAlerts:
    def test_price_drop(self, forecast):
        stats = PriceStatistics(mean_price=200, sample_size=10)
        current = [_point(160, provider="a"), _point(170, provider="b"), _point(180, provider="c")]
        alerts = forecast.market_alerts(current, stats)
        assert [a.type for a in alerts] == ["price_drop"]
        assert alerts[0].urgency == "high"

    def test_no_drop_within_fifteen_percent(self, forecast):
        stats = PriceStatistics(mean_price=200, sample_size=10)
        current = [_point(172, provider="a"), _point(175, provider="b"), _point(180, provider="c")]
        assert forecast.market_alerts(current, stats) == []

    def test_availability_low(self, forecast):
        stats = PriceStatistics(mean_price=100, sample_size=4)
        current = [
            _point(100, provider="a"),
            _point(101, provider="a"),
            _point(99, provider="b", available=False),
        ]
        alerts = forecast.market_alerts(current, stats)
        assert [a.type for a in alerts] == ["availability_low"]
        assert alerts[0].urgency == "medium"

    def test_price_spike_requires_strong_upward_trend(self, forecast):
        current = [_point(100, provider=p) for p in "abc"]
        strong = PriceStatistics(mean_price=100, trend_direction="up", trend_strength=0.9, sample_size=8)
        weak = PriceStatistics(mean_price=100, trend_direction="up", trend_strength=0.5, sample_size=8)
        assert [a.type for a in forecast.market_alerts(current, strong)] == ["price_spike"]
        assert forecast.market_alerts(current, weak) == []

    def test_thresholds_are_configurable(self):
        service = PriceForecastService(
            params=PredictionParams(),
            thresholds=AlertThresholds(drop_ratio=0.05, min_available_providers=1),
            clock=lambda: NOW,
        )
        stats = PriceStatistics(mean_price=100, sample_size=3)
        alerts = service.market_alerts([_point(90, provider="a")], stats)
        assert [a.type for a in alerts] == ["price_drop"]
