import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from tripcompare.config import Settings
from tripcompare.schemas.provider import ProviderCapabilities, ProviderDescriptor
from tripcompare.schemas.quote import (
    Availability,
    CancellationTerms,
    Price,
    PriceBreakdown,
    Quote,
    SupplierInfo,
)
from tripcompare.schemas.search import SearchCriteria, SearchRequest
from tripcompare.services.adapters.base import CancellationToken, ProviderAdapter
from tripcompare.services.provider_registry import ProviderRegistry

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FixtureAdapter(ProviderAdapter):
    """Serves fixed records; can be made slow, hanging or failing."""

    def __init__(
        self,
        provider_id: str,
        records: list[dict] | None = None,
        item_type: str = "hotel",
        delay: float = 0.0,
        hang: bool = False,
        fail: Exception | None = None,
        commission: float = 0.0,
        currencies: tuple[str, ...] = ("USD",),
    ):
        super().__init__(make_descriptor(provider_id, item_type, commission=commission, currencies=currencies))
        self.records = records or []
        self.delay = delay
        self.hang = hang
        self.fail = fail
        self.calls = 0
        self.cancelled = False

    async def fetch(self, criteria: SearchCriteria, token: CancellationToken) -> list[dict]:
        self.calls += 1
        try:
            if self.hang:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.fail is not None:
            raise self.fail
        return self.records

    def normalize(self, raw: dict, criteria: SearchCriteria) -> Quote:
        return self.build_quote(
            quote_id=raw["id"],
            title=raw.get("title", raw["id"]),
            amount=raw["price"],
            currency=raw.get("currency"),
            taxes=raw.get("taxes", 0.0),
            fees=raw.get("fees", 0.0),
            expires_at=raw.get("expires_at") or self.expiry(),
            available=raw.get("available", True),
            remaining=raw.get("remaining", 5),
            refundable=raw.get("refundable", False),
            rating=raw.get("rating", 4.0),
            review_count=raw.get("reviews", 100),
            metadata=raw.get("metadata", {}),
        )


def make_descriptor(
    provider_id: str,
    item_type: str = "hotel",
    commission: float = 0.0,
    currencies: tuple[str, ...] = ("USD",),
    **kwargs,
) -> ProviderDescriptor:
    kwargs.setdefault("capabilities", ProviderCapabilities(book=True, cancel=True))
    return ProviderDescriptor(
        id=provider_id,
        name=provider_id.upper(),
        item_type=item_type,
        commission=commission,
        supported_currencies=currencies,
        **kwargs,
    )


def make_quote(
    quote_id: str,
    price: float,
    provider_id: str = "p1",
    rating: float | None = 4.0,
    remaining: int = 5,
    available: bool = True,
    refundable: bool = False,
    reviews: int = 100,
    currency: str = "USD",
    expires_at: datetime | None = None,
    metadata: dict | None = None,
) -> Quote:
    return Quote(
        id=quote_id,
        provider_id=provider_id,
        item_type="hotel",
        title=quote_id,
        price=Price(amount=price, currency=currency, breakdown=PriceBreakdown(base=price)),
        availability=Availability(
            available=available,
            remaining=remaining,
            expires_at=expires_at or datetime.now(timezone.utc) + timedelta(hours=1),
        ),
        cancellation=CancellationTerms(refundable=refundable),
        supplier=SupplierInfo(name=provider_id, rating=rating, review_count=reviews),
        metadata=metadata or {},
    )


def make_request(item_type: str = "hotel", **kwargs) -> SearchRequest:
    criteria = kwargs.pop("criteria", None) or SearchCriteria(
        destination="PAR",
        start_date=NOW.date() + timedelta(days=30),
        end_date=NOW.date() + timedelta(days=33),
    )
    return SearchRequest(item_type=item_type, criteria=criteria, **kwargs)


def make_registry(*adapters: ProviderAdapter) -> ProviderRegistry:
    registry = ProviderRegistry()
    for adapter in adapters:
        registry.register(adapter)
    registry.freeze()
    return registry


class FakeClock:
    """Manually advanced clock, usable as a monotonic or datetime clock."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        redis_url="",
        database_url="",
        demo_mode=True,
        adapter_timeout_seconds=0.5,
        search_deadline_seconds=2.0,
        search_quota_per_minute=0,
        scheduler_enabled=False,
    )
