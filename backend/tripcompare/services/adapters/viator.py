"""Viator adapter — bookable tours and activities."""

from tripcompare.schemas.quote import Quote
from tripcompare.schemas.search import SearchCriteria
from tripcompare.services.adapters.base import CancellationToken
from tripcompare.services.adapters.http import HttpProviderAdapter


class ViatorAdapter(HttpProviderAdapter):
    async def _auth_headers(self) -> dict[str, str]:
        return {"exp-api-key": self.descriptor.auth.secret("key"), "Accept-Language": "en-US"}

    async def fetch(self, criteria: SearchCriteria, token: CancellationToken) -> list[dict]:
        if not criteria.destination:
            return []

        filtering = {"destination": criteria.destination}
        if criteria.start_date:
            filtering["startDate"] = criteria.start_date.isoformat()
        if criteria.end_date:
            filtering["endDate"] = criteria.end_date.isoformat()

        body = {
            "filtering": filtering,
            "sorting": {"sort": "TRAVELER_RATING", "order": "DESCENDING"},
            "pagination": {"start": 1, "count": criteria.extras.get("max_results", 50)},
            "currency": criteria.extras.get("currency", self.descriptor.default_currency),
        }
        data = await self._request("POST", "/partner/products/search", token, json=body)
        return data.get("products", [])

    def normalize(self, raw: dict, criteria: SearchCriteria) -> Quote:
        pricing = raw["pricing"]
        reviews = raw.get("reviews", {})
        flags = raw.get("flags", [])
        duration = raw.get("duration", {}).get("fixedDurationInMinutes")

        return self.build_quote(
            quote_id=raw["productCode"],
            title=raw["title"],
            description=raw.get("description", ""),
            amount=float(pricing["summary"]["fromPrice"]),
            currency=pricing.get("currency"),
            expires_at=self.expiry(),
            refundable="FREE_CANCELLATION" in flags,
            rating=reviews.get("combinedAverageRating"),
            review_count=int(reviews.get("totalReviews", 0)),
            deeplink_params={"product": raw["productCode"]},
            metadata={
                "duration_minutes": duration,
                "product_url": raw.get("productUrl"),
                "features": [f.replace("_", " ").lower() for f in flags],
            },
        )
