"""Amadeus adapter — flight offers over the Self-Service API with OAuth2."""

import logging
import re
from datetime import datetime, timedelta

import httpx

from tripcompare.errors import AdapterError
from tripcompare.schemas.quote import Quote
from tripcompare.schemas.search import SearchCriteria
from tripcompare.services.adapters.base import CancellationToken
from tripcompare.services.adapters.http import HttpProviderAdapter

logger = logging.getLogger(__name__)

_ISO_DURATION = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?)?$")

CABIN_MAP = {
    "economy": "ECONOMY",
    "premium_economy": "PREMIUM_ECONOMY",
    "business": "BUSINESS",
    "first": "FIRST",
}

AIRLINE_NAMES = {
    "AC": "Air Canada", "WS": "WestJet", "AA": "American Airlines",
    "DL": "Delta Air Lines", "UA": "United Airlines", "B6": "JetBlue Airways",
    "BA": "British Airways", "LH": "Lufthansa", "AF": "Air France", "KL": "KLM",
    "EK": "Emirates", "QR": "Qatar Airways", "SQ": "Singapore Airlines",
    "AI": "Air India", "6E": "IndiGo", "UK": "Vistara",
}


class AmadeusAdapter(HttpProviderAdapter):
    """Flight search via /v2/shopping/flight-offers."""

    def __init__(self, descriptor, **kwargs):
        super().__init__(descriptor, **kwargs)
        self._token: str | None = None
        self._token_expires: datetime | None = None

    async def _auth_headers(self) -> dict[str, str]:
        await self._ensure_token()
        return {"Authorization": f"Bearer {self._token}"}

    async def _ensure_token(self):
        """Get or refresh the OAuth2 client-credentials token."""
        if self._token and self._token_expires and self._clock() < self._token_expires:
            return

        client = await self._get_client()
        try:
            resp = await client.post(
                "/v1/security/oauth2/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.descriptor.auth.secret("client_id"),
                    "client_secret": self.descriptor.auth.secret("client_secret"),
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise AdapterError(self.provider_id, f"token request rejected: {e.response.status_code}", kind="auth") from e
        except httpx.RequestError as e:
            raise AdapterError(self.provider_id, f"token request failed: {e}", kind="network") from e
        except ValueError as e:
            raise AdapterError(self.provider_id, f"invalid token response: {e}", kind="parse") from e

        self._token = data["access_token"]
        self._token_expires = self._clock() + timedelta(seconds=data.get("expires_in", 1799) - 60)
        logger.info("Amadeus token refreshed")

    async def fetch(self, criteria: SearchCriteria, token: CancellationToken) -> list[dict]:
        if not criteria.origin or not criteria.destination or not criteria.start_date:
            return []

        params = {
            "originLocationCode": criteria.origin,
            "destinationLocationCode": criteria.destination,
            "departureDate": criteria.start_date.isoformat(),
            "adults": criteria.extras.get("adults", 1),
            "travelClass": CABIN_MAP.get(criteria.cabin_class or "economy", "ECONOMY"),
            "max": criteria.extras.get("max_results", 50),
        }
        if criteria.end_date:
            params["returnDate"] = criteria.end_date.isoformat()
        if criteria.extras.get("currency"):
            params["currencyCode"] = criteria.extras["currency"]

        data = await self._request("GET", "/v2/shopping/flight-offers", token, params=params)
        return data.get("data", [])

    def normalize(self, raw: dict, criteria: SearchCriteria) -> Quote:
        price = raw["price"]
        total = float(price["grandTotal"])
        base = float(price.get("base", total))
        fees = sum(float(f.get("amount", 0)) for f in price.get("fees", []))
        taxes = max(total - base - fees, 0.0)

        itin = raw["itineraries"][0]
        segments = itin["segments"]
        first_seg, last_seg = segments[0], segments[-1]
        airline_code = first_seg.get("carrierCode", "")
        airline_name = AIRLINE_NAMES.get(airline_code, airline_code)
        stops = len(segments) - 1

        cabin = criteria.cabin_class or "economy"
        bags = None
        traveler_pricings = raw.get("travelerPricings", [])
        if traveler_pricings:
            fare_details = traveler_pricings[0].get("fareDetailsBySegment", [])
            if fare_details:
                cabin = fare_details[0].get("cabin", cabin.upper()).lower()
                bags = fare_details[0].get("includedCheckedBags", {}).get("quantity")

        features = [f"{stops} stop{'s' if stops != 1 else ''}" if stops else "nonstop", cabin]
        if bags:
            features.append("checked bag")

        return self.build_quote(
            quote_id=str(raw["id"]),
            title=f"{airline_name} {first_seg['departure']['iataCode']} → {last_seg['arrival']['iataCode']}",
            description=", ".join(f"{s['carrierCode']}{s['number']}" for s in segments),
            amount=total,
            currency=price.get("currency"),
            taxes=taxes,
            fees=fees,
            expires_at=self.expiry(),
            remaining=int(raw.get("numberOfBookableSeats", 0)),
            supplier_name=airline_name,
            deeplink_params={"from": criteria.origin, "to": criteria.destination},
            metadata={
                "airline_code": airline_code,
                "departure_time": first_seg["departure"]["at"],
                "arrival_time": last_seg["arrival"]["at"],
                "duration_minutes": self._parse_duration(itin.get("duration", "")),
                "stops": stops,
                "cabin_class": cabin,
                "features": features,
            },
        )

    @staticmethod
    def _parse_duration(duration_str: str | None) -> int | None:
        """Parse ISO 8601 duration (PT2H30M, P1DT2H) to minutes; None when absent or unreadable."""
        match = _ISO_DURATION.match(duration_str or "")
        if not match or not any(match.groups()):
            return None
        days, hours, minutes = (int(g) if g else 0 for g in match.groups())
        total = days * 1440 + hours * 60 + minutes
        return total or None
