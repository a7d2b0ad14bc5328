"""Price history store — append-only per-item price series with a retention window."""

import asyncio
import bisect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from tripcompare.clock import utcnow
from tripcompare.schemas.price import PriceHistory, PricePoint, PricePrediction, PriceStatistics
from tripcompare.services.policy import TrendThresholds
from tripcompare.services.price_forecast_service import PriceForecastService
from tripcompare.services.price_statistics import compute_statistics
from tripcompare.store import NullStore, PersistentStore

logger = logging.getLogger(__name__)


def _by_time(point: PricePoint) -> datetime:
    return point.timestamp


@dataclass
class _Series:
    item_id: str
    item_type: str
    criteria: dict[str, Any]
    points: list[PricePoint] = field(default_factory=list)
    statistics: PriceStatistics = field(default_factory=PriceStatistics)
    predictions: PricePrediction | None = None

    def snapshot(self) -> PriceHistory:
        return PriceHistory(
            item_id=self.item_id,
            item_type=self.item_type,
            search_criteria=dict(self.criteria),
            points=list(self.points),
            statistics=self.statistics,
            predictions=self.predictions,
        )


class PriceHistoryStore:
    """Shared across concurrent searches; every mutation happens under one lock.

    Statistics and predictions are recomputed from the in-window points after
    every append and every retention sweep that drops points.
    """

    def __init__(
        self,
        forecast: PriceForecastService | None = None,
        trend: TrendThresholds | None = None,
        retention_days: int = 90,
        store: PersistentStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._forecast = forecast or PriceForecastService(clock=clock)
        self._trend = trend or TrendThresholds()
        self._retention = timedelta(days=retention_days)
        self._store = store or NullStore()
        self._clock = clock
        self._series: dict[str, _Series] = {}
        self._lock = asyncio.Lock()

    async def append(
        self,
        item_id: str,
        item_type: str,
        criteria: dict[str, Any],
        points: list[PricePoint],
    ) -> PriceHistory:
        async with self._lock:
            series = self._series.get(item_id)
            if series is None:
                series = await self._load(item_id, item_type, criteria)
                self._series[item_id] = series
            elif criteria and not series.criteria:
                series.criteria = criteria

            for point in points:
                bisect.insort(series.points, point, key=_by_time)

            self._drop_expired(series)
            cutoff = self._cutoff()
            self._recompute(series, current_points=[p for p in points if p.timestamp >= cutoff])
            snapshot = series.snapshot()

        await self._store.append_price_points(item_id, item_type, points)
        logger.debug(f"History {item_id}: +{len(points)} points, {len(snapshot.points)} in window")
        return snapshot

    async def get(self, item_id: str) -> PriceHistory | None:
        async with self._lock:
            series = self._series.get(item_id)
            if series is None:
                item_type, points = await self._store.load_price_points(item_id, self._cutoff())
                if not points:
                    return None
                series = _Series(item_id=item_id, item_type=item_type or "flight", criteria={}, points=points)
                self._recompute(series)
                self._series[item_id] = series
            elif self._drop_expired(series):
                self._recompute(series)

            if not series.points:
                del self._series[item_id]
                return None
            return series.snapshot()

    async def sweep(self) -> int:
        """Apply the retention window to every series; returns the number of points dropped."""
        dropped = 0
        async with self._lock:
            for item_id in list(self._series):
                series = self._series[item_id]
                removed = self._drop_expired(series)
                if not removed:
                    continue
                dropped += removed
                if series.points:
                    self._recompute(series)
                else:
                    del self._series[item_id]
        if dropped:
            logger.info(f"Retention sweep dropped {dropped} price points")
        return dropped

    @property
    def item_count(self) -> int:
        return len(self._series)

    @property
    def point_count(self) -> int:
        return sum(len(s.points) for s in self._series.values())

    # --- Private helpers ---

    def _cutoff(self) -> datetime:
        return self._clock() - self._retention

    def _drop_expired(self, series: _Series) -> int:
        """Points are time-ordered, so everything before the first in-window index goes."""
        cutoff = self._cutoff()
        idx = bisect.bisect_left(series.points, cutoff, key=_by_time)
        if idx:
            del series.points[:idx]
        return idx

    def _recompute(self, series: _Series, current_points: list[PricePoint] | None = None):
        series.statistics = compute_statistics(series.points, self._trend)
        series.predictions = self._forecast.predict(series.points, series.statistics, current_points or None)

    async def _load(self, item_id: str, item_type: str, criteria: dict[str, Any]) -> _Series:
        _, points = await self._store.load_price_points(item_id, self._cutoff())
        return _Series(item_id=item_id, item_type=item_type, criteria=criteria, points=points)
