"""Provider registry — descriptors and adapters, resolved per search."""

import logging

from tripcompare.config import Settings
from tripcompare.schemas.provider import AuthConfig, ItemType, ProviderCapabilities, ProviderDescriptor
from tripcompare.services.adapters import (
    AmadeusAdapter,
    BookingComAdapter,
    DemoAdapter,
    HertzAdapter,
    ProviderAdapter,
    SkyscannerAdapter,
    ViatorAdapter,
)

logger = logging.getLogger(__name__)

MAJOR_CURRENCIES = ("USD", "EUR", "INR", "GBP")


class ProviderRegistry:
    """Populated at startup, then frozen; read-only during searches."""

    def __init__(self):
        self._adapters: dict[str, ProviderAdapter] = {}
        self._frozen = False

    def register(self, adapter: ProviderAdapter):
        if self._frozen:
            raise RuntimeError("provider registry is frozen")
        pid = adapter.provider_id
        if pid in self._adapters:
            logger.warning(f"Replacing registered provider {pid}")
        self._adapters[pid] = adapter

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, provider_id: str) -> ProviderAdapter | None:
        return self._adapters.get(provider_id)

    def descriptors(self) -> list[ProviderDescriptor]:
        return [a.descriptor for a in self._adapters.values()]

    def adapters(self) -> list[ProviderAdapter]:
        return list(self._adapters.values())

    def adapters_for(
        self,
        item_type: ItemType,
        currency: str | None = None,
        region: str | None = None,
    ) -> list[ProviderAdapter]:
        """Adapters that can search this item type in the given currency and region."""
        return [
            a for a in self._adapters.values()
            if a.descriptor.item_type == item_type
            and a.descriptor.capabilities.search
            and a.descriptor.supports_currency(currency)
            and a.descriptor.supports_region(region)
        ]

    async def close(self):
        for adapter in self._adapters.values():
            await adapter.close()


def default_descriptors(settings: Settings) -> list[ProviderDescriptor]:
    """The five supported providers with credentials taken from settings."""
    return [
        ProviderDescriptor(
            id="amadeus",
            name="Amadeus GDS",
            item_type="flight",
            base_url=settings.amadeus_base_url,
            auth=AuthConfig(type="oauth", credentials={
                "client_id": settings.amadeus_client_id,
                "client_secret": settings.amadeus_client_secret,
            }),
            capabilities=ProviderCapabilities(book=True, modify=True, cancel=True, real_time_inventory=True),
            commission=3.5,
            supported_currencies=MAJOR_CURRENCIES,
            deeplink_base="https://www.amadeus.com/book",
        ),
        ProviderDescriptor(
            id="skyscanner",
            name="Skyscanner",
            item_type="flight",
            base_url=settings.skyscanner_base_url,
            auth=AuthConfig(type="apikey", credentials={"key": settings.skyscanner_api_key}),
            capabilities=ProviderCapabilities(real_time_inventory=True),
            commission=0,
            supported_currencies=MAJOR_CURRENCIES,
            deeplink_base="https://www.skyscanner.net/transport/flights",
        ),
        ProviderDescriptor(
            id="booking_com",
            name="Booking.com",
            item_type="hotel",
            base_url=settings.booking_base_url,
            auth=AuthConfig(type="basic", credentials={
                "username": settings.booking_username,
                "password": settings.booking_password,
            }),
            capabilities=ProviderCapabilities(book=True, modify=True, cancel=True, real_time_inventory=True),
            commission=15,
            supported_currencies=MAJOR_CURRENCIES,
            deeplink_base="https://www.booking.com/hotel",
        ),
        ProviderDescriptor(
            id="hertz",
            name="Hertz Car Rental",
            item_type="car",
            base_url=settings.hertz_base_url,
            auth=AuthConfig(type="apikey", credentials={"key": settings.hertz_api_key}),
            capabilities=ProviderCapabilities(book=True, modify=True, cancel=True, real_time_inventory=True),
            commission=8,
            supported_currencies=("USD", "EUR", "GBP"),
            supported_regions=("US", "EU"),
            deeplink_base="https://www.hertz.com/rentacar/reservation",
        ),
        ProviderDescriptor(
            id="viator",
            name="Viator (TripAdvisor)",
            item_type="activity",
            base_url=settings.viator_base_url,
            auth=AuthConfig(type="apikey", credentials={"key": settings.viator_api_key}),
            capabilities=ProviderCapabilities(book=True, cancel=True, real_time_inventory=True),
            commission=12,
            supported_currencies=MAJOR_CURRENCIES,
            deeplink_base="https://www.viator.com/tours",
        ),
    ]


ADAPTER_CLASSES: dict[str, type[ProviderAdapter]] = {
    "amadeus": AmadeusAdapter,
    "skyscanner": SkyscannerAdapter,
    "booking_com": BookingComAdapter,
    "hertz": HertzAdapter,
    "viator": ViatorAdapter,
}


def build_registry(settings: Settings) -> ProviderRegistry:
    """Real adapters where credentials exist, demo adapters otherwise (when enabled)."""
    registry = ProviderRegistry()
    for descriptor in default_descriptors(settings):
        if descriptor.auth.configured:
            registry.register(ADAPTER_CLASSES[descriptor.id](descriptor, timeout=settings.adapter_timeout_seconds))
            logger.info(f"Registered provider {descriptor.id} ({descriptor.item_type})")
        elif settings.demo_mode:
            registry.register(DemoAdapter(descriptor))
            logger.info(f"Registered demo provider {descriptor.id} ({descriptor.item_type}), no credentials")
        else:
            logger.warning(f"Skipping provider {descriptor.id}: credentials not configured")
    registry.freeze()
    return registry
