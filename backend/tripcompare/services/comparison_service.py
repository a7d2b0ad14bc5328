"""Comparison engine — the public operations, wired over the injected services."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from tripcompare.clock import utcnow
from tripcompare.config import Settings
from tripcompare.schemas.booking import BookingConfirmation
from tripcompare.schemas.comparison import ComparisonResult
from tripcompare.schemas.health import SystemHealth
from tripcompare.schemas.price import (
    AlertCondition,
    AlertNotification,
    NotificationMethod,
    PriceAlert,
    PriceHistory,
    PricePoint,
    PricePointMetadata,
)
from tripcompare.schemas.quote import Quote
from tripcompare.schemas.search import SearchCriteria, SearchRequest
from tripcompare.services.booking_service import BookingService, PaymentGateway
from tripcompare.services.cache_service import RedisResultCache, ResultCache
from tripcompare.services.notification_service import InAppNotificationSink, NotificationSink
from tripcompare.services.policy import PricingPolicy, default_policy
from tripcompare.services.price_forecast_service import PriceForecastService
from tripcompare.services.price_history_store import PriceHistoryStore
from tripcompare.services.price_insights import build_price_insights
from tripcompare.services.price_watch_service import PriceWatchService
from tripcompare.services.provider_registry import ProviderRegistry, build_registry
from tripcompare.services.quota import SearchQuota
from tripcompare.services.scoring_engine import Ranker
from tripcompare.services.search_orchestrator import SearchOrchestrator
from tripcompare.store import NullStore, PersistentStore, SqlAlchemyStore

logger = logging.getLogger(__name__)


class ComparisonEngine:
    """Owns every service for the lifetime of the process; call ``start`` before use."""

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: ResultCache,
        orchestrator: SearchOrchestrator,
        history: PriceHistoryStore,
        watches: PriceWatchService,
        bookings: BookingService,
        sink: NotificationSink,
        store: PersistentStore | None = None,
        policy: PricingPolicy = default_policy,
        refresh_batch_size: int = 5,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.cache = cache
        self.orchestrator = orchestrator
        self.history = history
        self.watches = watches
        self.bookings = bookings
        self.sink = sink
        self.store = store or NullStore()
        self.policy = policy
        self.refresh_batch_size = max(refresh_batch_size, 1)
        self._tracked_requests: dict[str, SearchRequest] = {}
        self._clock = clock

    async def start(self):
        await self.store.start()
        restored = await self.watches.load()
        logger.info(
            f"Comparison engine started: {len(self.registry.descriptors())} providers, "
            f"{restored} active price alerts restored"
        )

    async def close(self):
        await self.registry.close()
        await self.cache.close()
        await self.store.close()
        logger.info("Comparison engine stopped")

    # --- Search ---

    async def search(self, request: SearchRequest) -> ComparisonResult:
        """
        Compare offers for one request.

        Completed results are served from the aggregate cache while every quote
        in them is still valid. Fresh results feed the price history, which in
        turn supplies insights, market alerts and subscription checks.
        A caller-supplied ``request.request_id`` names the search, so it can be
        cancelled while in flight.
        """
        key = request.cache_key()
        cached = await self.cache.get_comparison(key)
        if cached is not None:
            now = self._clock()
            if not any(q.is_expired(now) for q in cached.results):
                logger.info(f"Cache hit for {request.item_type} search ({cached.request_id})")
                update = {"cached": True}
                if request.request_id:
                    update["request_id"] = request.request_id
                return cached.model_copy(update=update)
            await self.cache.invalidate(self.cache.aggregate_key(key))

        return await self._run_search(request, key)

    async def _run_search(self, request: SearchRequest, key: str, enforce_quota: bool = True) -> ComparisonResult:
        result = await self.orchestrator.search(request, request.request_id, enforce_quota=enforce_quota)

        if result.results:
            result = await self._track(request, result)

        if result.status == "completed":
            await self.cache.set_comparison(key, result)
        await self.store.record_search(result, request.item_type)
        return result

    def cancel_search(self, request_id: str) -> bool:
        return self.orchestrator.cancel_search(request_id)

    async def refresh_watched_items(self) -> int:
        """
        Re-price every item that has an active price alert.

        Each item is searched again with the request that last tracked it, or
        with the criteria stored on its price history. Items are refreshed in
        batches of ``refresh_batch_size``; the aggregate cache and the quota are
        bypassed. Returns the number of items searched.
        """
        requests = []
        for item_id in sorted(await self.watches.watched_items()):
            request = await self._refresh_request(item_id)
            if request is None:
                logger.debug(f"Watch refresh: no stored criteria for {item_id}")
                continue
            requests.append(request)

        refreshed = 0
        for start in range(0, len(requests), self.refresh_batch_size):
            batch = requests[start:start + self.refresh_batch_size]
            outcomes = await asyncio.gather(
                *(self._run_search(r, r.cache_key(), enforce_quota=False) for r in batch),
                return_exceptions=True,
            )
            for request, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    logger.error(f"Error refreshing watched item {request.item_id}: {outcome}")
                else:
                    refreshed += 1

        logger.info(f"Watch refresh: {refreshed}/{len(requests)} watched items re-priced")
        return refreshed

    async def _refresh_request(self, item_id: str) -> SearchRequest | None:
        request = self._tracked_requests.get(item_id)
        if request is not None:
            return request

        history = await self.history.get(item_id)
        if history is None or not history.search_criteria:
            return None
        return SearchRequest(
            item_type=history.item_type,
            criteria=SearchCriteria.model_validate(history.search_criteria),
            item_id=item_id,
        )

    async def _track(self, request: SearchRequest, result: ComparisonResult) -> ComparisonResult:
        now = self._clock()
        item_id = result.item_id or request.tracking_id()
        self._tracked_requests[item_id] = request.model_copy(
            update={"item_id": item_id, "user_id": None, "request_id": None}
        )
        points = [_price_point(q, now) for q in result.results]
        history = await self.history.append(
            item_id, request.item_type, request.criteria.model_dump(mode="json"), points
        )

        insights = build_price_insights(
            result.results, history.statistics, history.predictions, self.policy.insights
        )
        alerts = history.predictions.price_alerts if history.predictions else []

        # Subscriptions are checked against the cheapest offer in each currency
        cheapest: dict[str, Quote] = {}
        for q in result.results:
            best = cheapest.get(q.price.currency)
            if best is None or q.price.amount < best.price.amount:
                cheapest[q.price.currency] = q
        for currency, q in cheapest.items():
            await self.watches.evaluate(item_id, q.price.amount, currency)

        for q in result.results:
            await self.cache.set_quote(q, (q.availability.expires_at - now).total_seconds())

        return result.model_copy(update={"price_insights": insights, "alerts": alerts})

    # --- Price alerts ---

    async def subscribe_price_alert(
        self,
        user_id: str,
        item_id: str,
        target_price: float,
        currency: str,
        condition: AlertCondition = "below",
        notification_methods: list[NotificationMethod] | None = None,
        value: float | None = None,
    ) -> PriceAlert:
        current_price = None
        history = await self.history.get(item_id)
        if history is not None:
            latest = [
                pt for pt in PriceForecastService.latest_points(history.points)
                if pt.currency == currency.upper()
            ]
            if latest:
                current_price = min(pt.price for pt in latest)

        return await self.watches.subscribe(
            user_id=user_id,
            item_id=item_id,
            target_price=target_price,
            currency=currency,
            condition=condition,
            notification_methods=notification_methods,
            value=value,
            current_price=current_price,
        )

    async def cancel_price_alert(self, alert_id: str, user_id: str) -> bool:
        return await self.watches.cancel(alert_id, user_id)

    async def list_price_alerts(self, user_id: str) -> list[PriceAlert]:
        return await self.watches.list_for_user(user_id)

    async def list_notifications(self, user_id: str) -> list[AlertNotification]:
        if isinstance(self.sink, InAppNotificationSink):
            return await self.sink.list_for_user(user_id)
        return []

    # --- History / booking / health ---

    async def get_price_history(self, item_id: str) -> PriceHistory | None:
        return await self.history.get(item_id)

    async def confirm_booking(
        self,
        quote_ids: list[str],
        traveler_details: dict,
        payment_token: str,
    ) -> BookingConfirmation:
        return await self.bookings.confirm_booking(quote_ids, traveler_details, payment_token)

    async def get_system_health(self) -> SystemHealth:
        providers = self.orchestrator.provider_health()
        if not providers or all(p.status == "down" for p in providers):
            status = "down"
        elif any(p.status in ("degraded", "down") for p in providers):
            status = "degraded"
        else:
            status = "healthy"

        return SystemHealth(
            status=status,
            providers=providers,
            cache_size=await self.cache.size(),
            active_searches=self.orchestrator.active_search_count,
            tracked_items=self.history.item_count,
            active_alerts=self.watches.active_count,
        )

    async def run_maintenance(self) -> dict:
        """Retention sweep of the price history, purge of expired cache entries and ended quota windows."""
        dropped = await self.history.sweep()
        purged = await self.cache.purge_expired()
        windows = await self.orchestrator.prune_quota()
        logger.info(
            f"Maintenance: {dropped} price points dropped, {purged} cache entries purged, "
            f"{windows} quota windows dropped"
        )
        return {"price_points_dropped": dropped, "cache_entries_purged": purged, "quota_windows_dropped": windows}


def _price_point(quote: Quote, now: datetime) -> PricePoint:
    return PricePoint(
        timestamp=now,
        price=quote.price.amount,
        currency=quote.price.currency,
        provider_id=quote.provider_id,
        available=quote.availability.available,
        metadata=PricePointMetadata(
            source="api",
            fees=quote.price.breakdown.fees,
            taxes=quote.price.breakdown.taxes,
        ),
    )


def build_engine(
    settings: Settings,
    registry: ProviderRegistry | None = None,
    store: PersistentStore | None = None,
    sink: NotificationSink | None = None,
    payments: PaymentGateway | None = None,
    cache: ResultCache | None = None,
    policy: PricingPolicy = default_policy,
    clock: Callable[[], datetime] = utcnow,
) -> ComparisonEngine:
    """Wire a ComparisonEngine from settings; any service can be supplied instead."""
    registry = registry or build_registry(settings)

    if cache is None:
        if settings.redis_url:
            cache = RedisResultCache(
                settings.redis_url,
                provider_ttl=settings.provider_cache_ttl_seconds,
                aggregate_ttl=settings.aggregate_cache_ttl_seconds,
            )
        else:
            cache = ResultCache(
                provider_ttl=settings.provider_cache_ttl_seconds,
                aggregate_ttl=settings.aggregate_cache_ttl_seconds,
            )

    if store is None:
        store = SqlAlchemyStore(settings.database_url) if settings.database_url else NullStore()
    sink = sink or InAppNotificationSink()

    orchestrator = SearchOrchestrator(
        registry,
        cache,
        ranker=Ranker(policy.ranking),
        quota=SearchQuota(settings.search_quota_per_minute),
        adapter_timeout=settings.adapter_timeout_seconds,
        search_deadline=settings.search_deadline_seconds,
        max_concurrency=settings.max_concurrent_adapters,
        policy=policy,
        clock=clock,
    )
    history = PriceHistoryStore(
        forecast=PriceForecastService(policy.prediction, policy.alerts, clock=clock),
        trend=policy.trend,
        retention_days=settings.history_retention_days,
        store=store,
        clock=clock,
    )

    return ComparisonEngine(
        registry=registry,
        cache=cache,
        orchestrator=orchestrator,
        history=history,
        watches=PriceWatchService(sink, store=store, clock=clock),
        bookings=BookingService(cache, registry=registry, payments=payments, clock=clock),
        sink=sink,
        store=store,
        policy=policy,
        clock=clock,
        refresh_batch_size=settings.watch_refresh_batch_size,
    )
