"""Hertz adapter — car rental availability."""

from tripcompare.schemas.quote import Quote
from tripcompare.schemas.search import SearchCriteria
from tripcompare.services.adapters.base import CancellationToken
from tripcompare.services.adapters.http import HttpProviderAdapter


class HertzAdapter(HttpProviderAdapter):
    async def _auth_headers(self) -> dict[str, str]:
        return {"apikey": self.descriptor.auth.secret("key")}

    async def fetch(self, criteria: SearchCriteria, token: CancellationToken) -> list[dict]:
        pickup = criteria.origin or criteria.destination
        if not pickup or not criteria.start_date:
            return []

        params = {
            "pickupLocation": pickup,
            "returnLocation": criteria.destination or pickup,
            "pickupDate": criteria.start_date.isoformat(),
            "returnDate": (criteria.end_date or criteria.start_date).isoformat(),
        }
        if criteria.extras.get("vehicle_class"):
            params["vehicleClass"] = criteria.extras["vehicle_class"]

        data = await self._request("GET", "/vehicles/availability", token, params=params)
        return data.get("vehicles", [])

    def normalize(self, raw: dict, criteria: SearchCriteria) -> Quote:
        charges = raw["charges"]
        return self.build_quote(
            quote_id=str(raw["id"]),
            title=f"{raw['model']} or similar",
            description=raw.get("category", ""),
            amount=float(charges["total"]),
            currency=charges.get("currency"),
            taxes=float(charges.get("taxes", 0)),
            fees=float(charges.get("fees", 0)),
            expires_at=self.expiry(),
            available=raw.get("status", "AVAILABLE") == "AVAILABLE",
            remaining=int(raw.get("fleetCount", 0)),
            refundable=bool(raw.get("freeCancellation", True)),
            rating=raw.get("rating"),
            review_count=int(raw.get("reviewCount", 0)),
            deeplink_params={"vehicle": raw["id"]},
            metadata={
                "category": raw.get("category"),
                "seats": raw.get("seats"),
                "transmission": raw.get("transmission"),
                "features": list(raw.get("features", [])),
            },
        )
