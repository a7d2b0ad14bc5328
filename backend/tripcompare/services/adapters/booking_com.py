"""Booking.com adapter — hotel availability with basic auth."""

from datetime import datetime, time, timezone

from tripcompare.schemas.quote import Quote
from tripcompare.schemas.search import SearchCriteria
from tripcompare.services.adapters.base import CancellationToken
from tripcompare.services.adapters.http import HttpProviderAdapter


class BookingComAdapter(HttpProviderAdapter):
    async def fetch(self, criteria: SearchCriteria, token: CancellationToken) -> list[dict]:
        if not criteria.destination or not criteria.start_date or not criteria.end_date:
            return []

        adults = criteria.extras.get("adults", 1)
        params = {
            "city_ids": criteria.destination,
            "checkin": criteria.start_date.isoformat(),
            "checkout": criteria.end_date.isoformat(),
            "room1": ",".join(["A"] * adults),
            "rows": criteria.extras.get("max_results", 50),
            "currency": criteria.extras.get("currency", self.descriptor.default_currency),
        }
        if criteria.rooms > 1:
            for i in range(2, criteria.rooms + 1):
                params[f"room{i}"] = "A"

        data = await self._request("GET", "/json/getHotelAvailabilityV2", token, params=params)
        return data.get("result", [])

    def normalize(self, raw: dict, criteria: SearchCriteria) -> Quote:
        # review_score is on a 0-10 scale
        score = raw.get("review_score")
        rating = round(float(score) / 2, 1) if score is not None else None

        deadline = None
        if raw.get("is_free_cancellable") and criteria.start_date:
            deadline = datetime.combine(criteria.start_date, time(12, 0), tzinfo=timezone.utc)

        return self.build_quote(
            quote_id=str(raw["hotel_id"]),
            title=raw["hotel_name"],
            description=raw.get("address", ""),
            amount=float(raw["price"]),
            currency=raw.get("hotel_currency_code"),
            taxes=float(raw.get("included_taxes", 0)),
            expires_at=self.expiry(),
            available=int(raw.get("available_rooms", 1)) > 0,
            remaining=int(raw.get("available_rooms", 0)),
            refundable=bool(raw.get("is_free_cancellable")),
            cancellation_deadline=deadline,
            supplier_name=raw["hotel_name"],
            supplier_logo=raw.get("photo"),
            rating=rating,
            review_count=int(raw.get("review_nr", 0)),
            deeplink_params={"hotel_id": raw["hotel_id"]},
            metadata={
                "stars": raw.get("stars"),
                "nights": criteria.nights(),
                "amenities": list(raw.get("hotel_amenities", [])),
            },
        )
