from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class ProviderStatus(BaseModel):
    id: str
    item_type: str
    status: Literal["operational", "degraded", "down", "unknown"]
    consecutive_failures: int = 0
    last_error: str | None = None
    last_latency_ms: int | None = None
    last_checked_at: datetime | None = None


class SystemHealth(BaseModel):
    status: Literal["healthy", "degraded", "down"]
    providers: list[ProviderStatus]
    cache_size: int
    active_searches: int
    tracked_items: int = 0
    active_alerts: int = 0
