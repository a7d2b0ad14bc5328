from typing import Literal

from pydantic import BaseModel, Field, SecretStr

ItemType = Literal["flight", "hotel", "car", "activity"]


class ProviderCapabilities(BaseModel):
    search: bool = True
    book: bool = False
    modify: bool = False
    cancel: bool = False
    real_time_inventory: bool = False

    model_config = {"frozen": True}


class AuthConfig(BaseModel):
    type: Literal["apikey", "oauth", "basic", "none"] = "none"
    credentials: dict[str, SecretStr] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def secret(self, name: str) -> str:
        value = self.credentials.get(name)
        return value.get_secret_value() if value else ""

    @property
    def configured(self) -> bool:
        if self.type == "none":
            return True
        return bool(self.credentials) and all(v.get_secret_value() for v in self.credentials.values())


class ProviderDescriptor(BaseModel):
    id: str
    name: str
    item_type: ItemType
    base_url: str = ""
    auth: AuthConfig = Field(default_factory=AuthConfig)
    capabilities: ProviderCapabilities = Field(default_factory=ProviderCapabilities)
    commission: float = Field(default=0.0, ge=0, le=100)
    supported_currencies: tuple[str, ...] = ("USD",)
    supported_regions: tuple[str, ...] = ("global",)
    deeplink_base: str = ""

    model_config = {"frozen": True}

    @property
    def default_currency(self) -> str:
        return self.supported_currencies[0] if self.supported_currencies else "USD"

    def supports_currency(self, currency: str | None) -> bool:
        return currency is None or currency.upper() in self.supported_currencies

    def supports_region(self, region: str | None) -> bool:
        if region is None or "global" in self.supported_regions:
            return True
        return region.upper() in self.supported_regions
