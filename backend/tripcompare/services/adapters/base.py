"""Provider adapter contract and the normalization every adapter shares."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

from pydantic import ValidationError

from tripcompare.clock import utcnow
from tripcompare.errors import AdapterError, SearchCancelled
from tripcompare.schemas.provider import ProviderDescriptor
from tripcompare.schemas.quote import (
    Availability,
    CancellationTerms,
    Price,
    PriceBreakdown,
    Quote,
    SupplierInfo,
)
from tripcompare.schemas.search import SearchCriteria

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag shared by every adapter call of one search."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        await self._event.wait()

    def raise_if_cancelled(self, provider_id: str = "*"):
        if self._event.is_set():
            raise SearchCancelled(provider_id)


class ProviderAdapter(ABC):
    """Wraps one provider: fetch raw records, normalize them into Quotes.

    ``search`` only ever raises ``AdapterError`` (or a subclass). Zero results
    is a success; records that fail to normalize are skipped.
    """

    quote_ttl = timedelta(minutes=30)

    def __init__(self, descriptor: ProviderDescriptor, clock=utcnow):
        self.descriptor = descriptor
        self._clock = clock

    @property
    def provider_id(self) -> str:
        return self.descriptor.id

    @abstractmethod
    async def fetch(self, criteria: SearchCriteria, token: CancellationToken) -> list[dict]:
        """Transport call returning raw provider records."""

    @abstractmethod
    def normalize(self, raw: dict, criteria: SearchCriteria) -> Quote:
        """Turn one raw record into a Quote (usually via ``build_quote``)."""

    async def search(self, criteria: SearchCriteria, token: CancellationToken) -> list[Quote]:
        token.raise_if_cancelled(self.provider_id)
        try:
            records = await self.fetch(criteria, token)
        except AdapterError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise AdapterError(self.provider_id, f"unreadable response: {e}", kind="parse") from e
        token.raise_if_cancelled(self.provider_id)

        quotes = []
        for raw in records:
            try:
                quotes.append(self.normalize(raw, criteria))
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning(f"[{self.provider_id}] skipping malformed record: {e}")
        return quotes

    async def close(self):
        """Release transport resources."""

    def expiry(self) -> datetime:
        return self._clock() + self.quote_ttl

    def build_quote(
        self,
        *,
        quote_id: str,
        title: str,
        amount: float,
        expires_at: datetime,
        currency: str | None = None,
        taxes: float = 0.0,
        fees: float = 0.0,
        description: str = "",
        available: bool = True,
        remaining: int = 0,
        refundable: bool = False,
        cancellation_deadline: datetime | None = None,
        penalty: float | None = None,
        supplier_name: str | None = None,
        supplier_logo: str | None = None,
        rating: float | None = None,
        review_count: int = 0,
        deeplink_params: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Quote:
        """Normalize provider values into a Quote.

        The breakdown is rebuilt from the total: base is what remains after
        taxes and fees, commission is the descriptor's percentage of the total.
        """
        if expires_at <= self._clock():
            raise ValueError(f"quote {quote_id} already expired at {expires_at.isoformat()}")
        if amount < 0:
            raise ValueError(f"quote {quote_id} has negative price {amount}")

        d = self.descriptor
        breakdown = PriceBreakdown(
            base=round(amount - taxes - fees, 2),
            taxes=round(taxes, 2),
            fees=round(fees, 2),
            commission=round(amount * d.commission / 100, 2),
        )

        deeplink = ""
        if d.deeplink_base:
            params = {"ref": "tripcompare", "offer": quote_id, **(deeplink_params or {})}
            deeplink = f"{d.deeplink_base}?{urlencode(params)}"

        return Quote(
            id=f"{d.id}_{quote_id}",
            provider_id=d.id,
            item_type=d.item_type,
            title=title,
            description=description,
            price=Price(amount=round(amount, 2), currency=(currency or d.default_currency).upper(), breakdown=breakdown),
            availability=Availability(available=available, remaining=remaining, expires_at=expires_at),
            cancellation=CancellationTerms(refundable=refundable, deadline=cancellation_deadline, penalty=penalty),
            supplier=SupplierInfo(
                name=supplier_name or d.name,
                logo=supplier_logo,
                rating=rating,
                review_count=review_count,
            ),
            deeplink=deeplink,
            metadata=metadata or {},
        )
