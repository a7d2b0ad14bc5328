"""Demo adapter — deterministic, criteria-seeded offers for credential-less development."""

import asyncio
import hashlib
import json
import random
from datetime import datetime, time, timedelta, timezone

from tripcompare.schemas.quote import Quote
from tripcompare.schemas.search import SearchCriteria
from tripcompare.services.adapters.base import CancellationToken, ProviderAdapter

AIRLINES = ["AC", "UA", "DL", "AA", "BA", "LH", "AF", "EK"]
HOTEL_CHAINS = ["Hilton", "Marriott", "Hyatt", "Novotel", "Ibis", "Radisson", "Holiday Inn"]
HOTEL_AMENITIES = ["wifi", "breakfast", "pool", "gym", "parking", "spa", "airport shuttle", "bar"]
CAR_MODELS = [
    ("Toyota Corolla", "compact", 5), ("Ford Escape", "suv", 5), ("Nissan Versa", "economy", 5),
    ("Chevrolet Malibu", "midsize", 5), ("Chrysler Pacifica", "minivan", 7), ("BMW 3 Series", "premium", 5),
]
CAR_FEATURES = ["automatic", "air conditioning", "unlimited mileage", "gps", "bluetooth"]
ACTIVITY_KINDS = ["Walking Tour", "Food Tour", "Museum Pass", "Boat Cruise", "Day Trip", "Cooking Class"]

# Per-unit base prices: per flight, per night, per rental day, per activity
BASE_PRICES = {"flight": 420.0, "hotel": 160.0, "car": 55.0, "activity": 75.0}


class DemoAdapter(ProviderAdapter):
    """Same criteria always produce the same offers for the same provider."""

    def __init__(self, descriptor, latency: float = 0.0, **kwargs):
        super().__init__(descriptor, **kwargs)
        self._latency = latency

    async def fetch(self, criteria: SearchCriteria, token: CancellationToken) -> list[dict]:
        if self._latency:
            await asyncio.sleep(self._latency)

        seed_str = f"{self.provider_id}{json.dumps(criteria.model_dump(mode='json'), sort_keys=True)}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        generator = {
            "flight": self._mock_flights,
            "hotel": self._mock_hotels,
            "car": self._mock_cars,
            "activity": self._mock_activities,
        }[self.descriptor.item_type]
        return generator(rng, criteria)

    def normalize(self, raw: dict, criteria: SearchCriteria) -> Quote:
        deadline = None
        if raw["refundable"] and criteria.start_date:
            deadline = datetime.combine(criteria.start_date - timedelta(days=1), time(23, 59), tzinfo=timezone.utc)

        return self.build_quote(
            quote_id=raw["id"],
            title=raw["title"],
            description=raw.get("description", ""),
            amount=raw["price"],
            taxes=raw["taxes"],
            fees=raw["fees"],
            expires_at=self.expiry(),
            available=raw["remaining"] > 0,
            remaining=raw["remaining"],
            refundable=raw["refundable"],
            cancellation_deadline=deadline,
            supplier_name=raw.get("supplier"),
            rating=raw.get("rating"),
            review_count=raw.get("review_count", 0),
            metadata=raw["metadata"],
        )

    # --- Mock data generation ---

    def _priced(self, rng: random.Random, base: float) -> tuple[float, float, float]:
        price = round(base * rng.uniform(0.8, 1.6), 2)
        taxes = round(price * 0.12, 2)
        fees = round(rng.choice([0, 5, 10, 15]), 2)
        return price, taxes, fees

    def _mock_flights(self, rng: random.Random, criteria: SearchCriteria) -> list[dict]:
        cabin = criteria.cabin_class or "economy"
        cabin_multiplier = {"economy": 1.0, "premium_economy": 1.8, "business": 3.5, "first": 6.0}.get(cabin, 1.0)
        origin, destination = criteria.origin or "YYZ", criteria.destination or "JFK"

        flights = []
        for i in range(rng.randint(4, 8)):
            airline = rng.choice(AIRLINES)
            stops = rng.choices([0, 1, 2], weights=[60, 30, 10])[0]
            duration = rng.randint(80, 420) + stops * rng.randint(45, 90)
            price, taxes, fees = self._priced(rng, BASE_PRICES["flight"] * cabin_multiplier)
            flights.append({
                "id": f"{airline}{rng.randint(100, 9999)}-{i}",
                "title": f"{airline} {origin} → {destination}",
                "price": price, "taxes": taxes, "fees": fees,
                "remaining": rng.randint(0, 9),
                "refundable": rng.random() < 0.3,
                "supplier": airline,
                "rating": round(rng.uniform(3.0, 4.9), 1),
                "review_count": rng.randint(50, 5000),
                "metadata": {
                    "duration_minutes": duration,
                    "stops": stops,
                    "cabin_class": cabin,
                    "features": ["nonstop" if stops == 0 else f"{stops} stop{'s' if stops > 1 else ''}", cabin],
                },
            })
        return flights

    def _mock_hotels(self, rng: random.Random, criteria: SearchCriteria) -> list[dict]:
        nights = criteria.nights()
        city = criteria.destination or "City Centre"

        hotels = []
        for i in range(rng.randint(3, 7)):
            chain = rng.choice(HOTEL_CHAINS)
            price, taxes, fees = self._priced(rng, BASE_PRICES["hotel"] * nights * criteria.rooms)
            hotels.append({
                "id": f"h{rng.randint(10000, 99999)}-{i}",
                "title": f"{chain} {city}",
                "description": f"{nights} night{'s' if nights > 1 else ''}, {criteria.rooms} room{'s' if criteria.rooms > 1 else ''}",
                "price": price, "taxes": taxes, "fees": fees,
                "remaining": rng.randint(0, 12),
                "refundable": rng.random() < 0.6,
                "supplier": chain,
                "rating": round(rng.uniform(2.8, 5.0), 1),
                "review_count": rng.randint(20, 8000),
                "metadata": {
                    "nights": nights,
                    "stars": rng.randint(2, 5),
                    "amenities": rng.sample(HOTEL_AMENITIES, rng.randint(2, 5)),
                },
            })
        return hotels

    def _mock_cars(self, rng: random.Random, criteria: SearchCriteria) -> list[dict]:
        days = criteria.nights()

        cars = []
        for i, (model, category, seats) in enumerate(rng.sample(CAR_MODELS, rng.randint(3, len(CAR_MODELS)))):
            price, taxes, fees = self._priced(rng, BASE_PRICES["car"] * days)
            cars.append({
                "id": f"{category}-{rng.randint(100, 999)}-{i}",
                "title": f"{model} or similar",
                "description": category,
                "price": price, "taxes": taxes, "fees": fees,
                "remaining": rng.randint(0, 6),
                "refundable": True,
                "rating": round(rng.uniform(3.2, 4.8), 1),
                "review_count": rng.randint(10, 900),
                "metadata": {
                    "category": category,
                    "seats": seats,
                    "features": rng.sample(CAR_FEATURES, rng.randint(1, 4)),
                },
            })
        return cars

    def _mock_activities(self, rng: random.Random, criteria: SearchCriteria) -> list[dict]:
        city = criteria.destination or "the city"

        activities = []
        for i in range(rng.randint(3, 8)):
            kind = rng.choice(ACTIVITY_KINDS)
            price, taxes, fees = self._priced(rng, BASE_PRICES["activity"])
            activities.append({
                "id": f"P{rng.randint(10000, 99999)}-{i}",
                "title": f"{city} {kind}",
                "price": price, "taxes": taxes, "fees": fees,
                "remaining": rng.randint(0, 20),
                "refundable": rng.random() < 0.7,
                "rating": round(rng.uniform(3.5, 5.0), 1),
                "review_count": rng.randint(5, 3000),
                "metadata": {
                    "duration_minutes": rng.choice([60, 90, 120, 180, 240, 480]),
                    "features": ["skip the line"] if rng.random() < 0.3 else [],
                },
            })
        return activities
