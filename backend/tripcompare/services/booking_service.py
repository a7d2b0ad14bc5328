"""Booking service — confirms a set of previously quoted items."""

import logging
import secrets
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any

from tripcompare.clock import utcnow
from tripcompare.errors import BookingError, QuoteExpired
from tripcompare.schemas.booking import BookingConfirmation, CancellationInfo, PaymentResult, TotalPrice
from tripcompare.schemas.quote import Quote
from tripcompare.services.cache_service import ResultCache
from tripcompare.services.provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)


class PaymentGateway(ABC):
    @abstractmethod
    async def charge(self, booking_id: str, amount: float, currency: str, payment_token: str) -> PaymentResult: ...


class DeferredPaymentGateway(PaymentGateway):
    """Accepts the token and leaves capture to the provider's own checkout."""

    async def charge(self, booking_id, amount, currency, payment_token):
        return PaymentResult(status="pending", reference=None, amount_captured=0.0)


class BookingService:
    def __init__(
        self,
        cache: ResultCache,
        registry: ProviderRegistry | None = None,
        payments: PaymentGateway | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._cache = cache
        self._registry = registry
        self._payments = payments or DeferredPaymentGateway()
        self._clock = clock

    async def confirm_booking(
        self,
        quote_ids: list[str],
        traveler_details: dict[str, Any],
        payment_token: str,
    ) -> BookingConfirmation:
        """
        Confirm every quote in ``quote_ids`` as one booking.

        Raises QuoteExpired if any quote is unknown or past its expiry; the
        caller has to search again. Raises BookingError for quotes that cannot
        be booked together (mixed currencies, redirect-only providers) or a
        declined payment.
        """
        if not quote_ids:
            raise BookingError("no quotes to book")

        now = self._clock()
        quotes: list[Quote] = []
        stale: list[str] = []
        for quote_id in quote_ids:
            quote = await self._cache.get_quote(quote_id)
            if quote is None or quote.is_expired(now):
                stale.append(quote_id)
            else:
                quotes.append(quote)
        if stale:
            logger.info(f"Booking rejected, stale quotes: {stale}")
            raise QuoteExpired(stale)

        currencies = {q.price.currency for q in quotes}
        if len(currencies) > 1:
            raise BookingError(f"quotes priced in multiple currencies: {', '.join(sorted(currencies))}")
        currency = currencies.pop()

        if self._registry is not None:
            for q in quotes:
                adapter = self._registry.get(q.provider_id)
                if adapter is None or not adapter.descriptor.capabilities.book:
                    raise BookingError(f"provider {q.provider_id} does not support direct booking")

        booking_id = f"booking_{uuid.uuid4().hex[:16]}"
        total = round(sum(q.price.amount for q in quotes), 2)

        payment = await self._payments.charge(booking_id, total, currency, payment_token)
        if payment.status == "failed":
            raise BookingError("payment declined")

        confirmation = BookingConfirmation(
            booking_id=booking_id,
            reference_number=f"TR{100000 + secrets.randbelow(900000)}",
            status="confirmed" if payment.status == "paid" else "pending",
            items=quotes,
            total_price=TotalPrice(
                amount=total,
                currency=currency,
                paid=payment.amount_captured,
                remaining=round(total - payment.amount_captured, 2),
            ),
            payment_status=payment.status,
            traveler_details=traveler_details,
            cancellation_info=self._cancellation_info(quotes, total),
            created_at=now,
        )

        logger.info(f"Booking {confirmation.status}: {booking_id} for {total} {currency} ({len(quotes)} items)")
        return confirmation

    @staticmethod
    def _cancellation_info(quotes: list[Quote], total: float) -> CancellationInfo:
        refundable = all(q.cancellation.refundable for q in quotes)
        deadlines = [q.cancellation.deadline for q in quotes if q.cancellation.deadline is not None]
        penalty = round(sum(q.cancellation.penalty or 0.0 for q in quotes), 2)
        return CancellationInfo(
            refundable=refundable,
            deadline=min(deadlines) if deadlines else None,
            penalty=penalty,
            refund_amount=max(round(total - penalty, 2), 0.0) if refundable else 0.0,
        )
