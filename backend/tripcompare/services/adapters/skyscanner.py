"""Skyscanner adapter — redirect-only flight quotes."""

from tripcompare.schemas.quote import Quote
from tripcompare.schemas.search import SearchCriteria
from tripcompare.services.adapters.base import CancellationToken
from tripcompare.services.adapters.http import HttpProviderAdapter


class SkyscannerAdapter(HttpProviderAdapter):
    async def _auth_headers(self) -> dict[str, str]:
        return {"x-api-key": self.descriptor.auth.secret("key")}

    async def fetch(self, criteria: SearchCriteria, token: CancellationToken) -> list[dict]:
        if not criteria.origin or not criteria.destination or not criteria.start_date:
            return []

        body = {
            "query": {
                "market": criteria.extras.get("market", "US"),
                "locale": criteria.extras.get("locale", "en-US"),
                "currency": criteria.extras.get("currency", self.descriptor.default_currency),
                "originPlace": criteria.origin,
                "destinationPlace": criteria.destination,
                "outboundDate": criteria.start_date.isoformat(),
                "inboundDate": criteria.end_date.isoformat() if criteria.end_date else None,
                "cabinClass": (criteria.cabin_class or "economy").upper(),
                "adults": criteria.extras.get("adults", 1),
            }
        }
        data = await self._request("POST", "/v3/flights/live/search/create", token, json=body)
        return data.get("quotes", [])

    def normalize(self, raw: dict, criteria: SearchCriteria) -> Quote:
        price = raw["price"]
        carrier = raw.get("carrier", "Unknown carrier")
        stops = int(raw.get("stops", 0))

        return self.build_quote(
            quote_id=str(raw["id"]),
            title=f"{carrier} {criteria.origin} → {criteria.destination}",
            amount=float(price["amount"]),
            currency=price.get("currency"),
            expires_at=self.expiry(),
            supplier_name=carrier,
            deeplink_params={"redirect": raw.get("deeplink", "")},
            metadata={
                "duration_minutes": raw.get("durationMinutes"),
                "stops": stops,
                "departure_time": raw.get("departureTime"),
                "features": ["nonstop"] if stops == 0 else [f"{stops} stop{'s' if stops != 1 else ''}"],
                "redirect_only": True,
            },
        )
