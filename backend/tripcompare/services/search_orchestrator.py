"""Search orchestrator — fans a search out to every eligible provider and merges the results."""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from tripcompare.clock import utcnow
from tripcompare.errors import (
    AdapterError,
    AdapterTimeout,
    AllProvidersFailed,
    SearchAlreadyRunning,
    SearchCancelled,
)
from tripcompare.schemas.comparison import ComparisonResult, ProviderFailure, SearchErrorInfo
from tripcompare.schemas.health import ProviderStatus
from tripcompare.schemas.quote import Quote
from tripcompare.schemas.search import SearchCriteria, SearchRequest
from tripcompare.services.adapters.base import CancellationToken, ProviderAdapter
from tripcompare.services.cache_service import ResultCache
from tripcompare.services.filter_calculator import compute_filters
from tripcompare.services.policy import PricingPolicy, default_policy
from tripcompare.services.provider_registry import ProviderRegistry
from tripcompare.services.quota import SearchQuota
from tripcompare.services.scoring_engine import Ranker

logger = logging.getLogger(__name__)

DOWN_AFTER_FAILURES = 3


@dataclass
class ProviderHealth:
    consecutive_failures: int = 0
    last_error: str | None = None
    last_latency_ms: int | None = None
    last_checked_at: datetime | None = None


@dataclass
class _FanIn:
    quotes: list[Quote]
    responded: list[str]
    failures: list[ProviderFailure]
    cancelled: bool


class SearchOrchestrator:
    """Coordinates one search across all providers serving the item type.

    Every adapter call is bounded by the per-adapter timeout and the whole
    fan-in by the search deadline. Provider failures never fail the search;
    they are recorded on the result.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: ResultCache,
        ranker: Ranker | None = None,
        quota: SearchQuota | None = None,
        adapter_timeout: float = 15.0,
        search_deadline: float = 20.0,
        max_concurrency: int = 8,
        policy: PricingPolicy = default_policy,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._registry = registry
        self._cache = cache
        self._policy = policy
        self._ranker = ranker or Ranker(policy.ranking)
        self._quota = quota
        self._adapter_timeout = adapter_timeout
        self._search_deadline = search_deadline
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._clock = clock
        self._active: dict[str, CancellationToken] = {}
        self._health: dict[str, ProviderHealth] = {}

    async def search(
        self,
        request: SearchRequest,
        request_id: str | None = None,
        enforce_quota: bool = True,
    ) -> ComparisonResult:
        """Execute the search.

        Raises only QuotaExceeded and SearchAlreadyRunning (a caller-supplied id
        that is still in flight); everything else lands on the result.
        """
        start_time = time.monotonic()

        if enforce_quota and self._quota is not None:
            await self._quota.check(request.user_id)

        request_id = request_id or request.request_id or f"search_{uuid.uuid4().hex[:12]}"
        if request_id in self._active:
            raise SearchAlreadyRunning(request_id)

        adapters = self._registry.adapters_for(request.item_type, request.currency, request.region)
        if not adapters:
            err = AllProvidersFailed(message=f"no provider serves {request.item_type} searches for this request")
            logger.warning(f"[{request_id}] {err.message}")
            return ComparisonResult(
                request_id=request_id,
                status="failed",
                item_id=request.tracking_id(),
                search_time_ms=_elapsed_ms(start_time),
                error=SearchErrorInfo(code=err.code, message=err.message),
            )

        token = CancellationToken()
        self._active[request_id] = token
        try:
            fan_in = await self._fan_out(request_id, request, adapters, token)
        finally:
            self._active.pop(request_id, None)

        result = self._merge(request_id, request, fan_in, start_time)
        logger.info(
            f"[{request_id}] {request.item_type} search {result.status}: {result.total_results} results "
            f"from {len(fan_in.responded)}/{len(adapters)} providers in {result.search_time_ms}ms"
        )
        return result

    def cancel_search(self, request_id: str) -> bool:
        token = self._active.get(request_id)
        if token is None:
            return False
        token.cancel()
        logger.info(f"[{request_id}] search cancelled")
        return True

    async def prune_quota(self) -> int:
        if self._quota is None:
            return 0
        return await self._quota.prune()

    @property
    def active_search_count(self) -> int:
        return len(self._active)

    def provider_health(self) -> list[ProviderStatus]:
        statuses = []
        for d in self._registry.descriptors():
            h = self._health.get(d.id)
            if h is None:
                status = "unknown"
            elif h.consecutive_failures == 0:
                status = "operational"
            elif h.consecutive_failures >= DOWN_AFTER_FAILURES:
                status = "down"
            else:
                status = "degraded"
            statuses.append(ProviderStatus(
                id=d.id,
                item_type=d.item_type,
                status=status,
                consecutive_failures=h.consecutive_failures if h else 0,
                last_error=h.last_error if h else None,
                last_latency_ms=h.last_latency_ms if h else None,
                last_checked_at=h.last_checked_at if h else None,
            ))
        return statuses

    # --- Fan-out / fan-in ---

    async def _fan_out(
        self,
        request_id: str,
        request: SearchRequest,
        adapters: list[ProviderAdapter],
        token: CancellationToken,
    ) -> _FanIn:
        criteria = self._criteria_for(request)
        criteria_hash = request.criteria_hash()
        order = {a.provider_id: i for i, a in enumerate(adapters)}

        tasks = {
            asyncio.create_task(
                self._call(request_id, adapter, criteria, criteria_hash, token),
                name=f"{request_id}:{adapter.provider_id}",
            ): adapter.provider_id
            for adapter in adapters
        }
        pending = set(tasks)
        cancel_waiter = asyncio.create_task(token.wait())

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._search_deadline
        quotes: list[Quote] = []
        responded: list[str] = []
        failures: list[ProviderFailure] = []

        try:
            while pending and not token.cancelled:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, _ = await asyncio.wait(
                    pending | {cancel_waiter},
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                # Tasks settling in the same wake-up are taken in registration order
                for task in sorted(done - {cancel_waiter}, key=lambda t: order[tasks[t]]):
                    pending.discard(task)
                    pid = tasks[task]
                    exc = task.exception()
                    if exc is None:
                        responded.append(pid)
                        quotes.extend(task.result())
                    else:
                        failures.append(_failure(pid, exc))
        finally:
            cancel_waiter.cancel()
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, cancel_waiter, return_exceptions=True)

        for task in sorted(pending, key=lambda t: order[tasks[t]]):
            pid = tasks[task]
            if token.cancelled:
                err = SearchCancelled(pid)
            else:
                err = AdapterTimeout(pid, self._search_deadline)
                self._record_failure(pid, err, None)
                logger.warning(f"[{request_id}] {pid} still pending at the search deadline")
            failures.append(_failure(pid, err))

        return _FanIn(quotes=quotes, responded=responded, failures=failures, cancelled=token.cancelled)

    async def _call(
        self,
        request_id: str,
        adapter: ProviderAdapter,
        criteria: SearchCriteria,
        criteria_hash: str,
        token: CancellationToken,
    ) -> list[Quote]:
        pid = adapter.provider_id
        cached = await self._cache.get_quotes(pid, criteria_hash)
        if cached is not None:
            logger.debug(f"[{request_id}] {pid} served from cache")
            return cached

        async with self._semaphore:
            started = time.monotonic()
            try:
                quotes = await asyncio.wait_for(adapter.search(criteria, token), timeout=self._adapter_timeout)
            except asyncio.TimeoutError:
                err = AdapterTimeout(pid, self._adapter_timeout)
                self._record_failure(pid, err, started)
                logger.warning(f"[{request_id}] {err}")
                raise err from None
            except SearchCancelled:
                raise
            except AdapterError as e:
                self._record_failure(pid, e, started)
                logger.warning(f"[{request_id}] {e}")
                raise
            except Exception as e:
                err = AdapterError(pid, f"unexpected error: {e}", kind="internal")
                self._record_failure(pid, err, started)
                logger.error(f"[{request_id}] {pid} raised unexpectedly", exc_info=True)
                raise err from e

        self._record_success(pid, started)
        await self._cache.set_quotes(pid, criteria_hash, quotes)
        return quotes

    def _merge(self, request_id: str, request: SearchRequest, fan_in: _FanIn, start_time: float) -> ComparisonResult:
        now = self._clock()
        live = [q for q in fan_in.quotes if not q.is_expired(now)]
        if len(live) < len(fan_in.quotes):
            logger.debug(f"[{request_id}] dropped {len(fan_in.quotes) - len(live)} expired quotes")

        if request.budget is not None:
            budget = request.budget
            live = [
                q for q in live
                if q.price.currency != budget.currency.upper() or q.price.amount <= budget.amount
            ]

        ranked = self._ranker.rank(live, request)

        error = None
        if fan_in.cancelled:
            status = "cancelled"
        elif not fan_in.responded:
            err = AllProvidersFailed(fan_in.failures)
            status = "failed"
            error = SearchErrorInfo(code=err.code, message=err.message)
            logger.error(f"[{request_id}] all {len(fan_in.failures)} providers failed")
        elif fan_in.failures:
            status = "partial"
        else:
            status = "completed"

        return ComparisonResult(
            request_id=request_id,
            status=status,
            item_id=request.tracking_id(),
            results=ranked.quotes,
            total_results=len(ranked.quotes),
            search_time_ms=_elapsed_ms(start_time),
            providers=fan_in.responded,
            failures=fan_in.failures,
            filters=compute_filters(ranked.quotes, self._policy.filters, self._policy.ranking.default_rating),
            recommendations=ranked.recommendations,
            error=error,
        )

    @staticmethod
    def _criteria_for(request: SearchRequest) -> SearchCriteria:
        """Adapters see traveler counts and currency through the criteria extras."""
        extras = {
            "adults": request.travelers.adults,
            "children": request.travelers.children,
            "infants": request.travelers.infants,
            **request.criteria.extras,
        }
        if request.currency:
            extras["currency"] = request.currency.upper()
        return request.criteria.model_copy(update={"extras": extras})

    # --- Health bookkeeping ---

    def _record_success(self, provider_id: str, started: float):
        h = self._health.setdefault(provider_id, ProviderHealth())
        h.consecutive_failures = 0
        h.last_error = None
        h.last_latency_ms = _elapsed_ms(started)
        h.last_checked_at = self._clock()

    def _record_failure(self, provider_id: str, error: AdapterError, started: float | None):
        h = self._health.setdefault(provider_id, ProviderHealth())
        h.consecutive_failures += 1
        h.last_error = str(error)
        if started is not None:
            h.last_latency_ms = _elapsed_ms(started)
        h.last_checked_at = self._clock()


def _failure(provider_id: str, exc: BaseException) -> ProviderFailure:
    if isinstance(exc, AdapterError):
        return ProviderFailure(provider_id=provider_id, code=exc.code, message=str(exc))
    return ProviderFailure(provider_id=provider_id, code="ADAPTER_ERROR", message=str(exc))


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
