"""Typed errors raised and recorded by the aggregation core."""


class TripCompareError(Exception):
    """Base class; ``code`` is the stable identifier exposed to callers."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class AdapterError(TripCompareError):
    """A provider call failed (network, parse, auth)."""

    code = "ADAPTER_ERROR"

    def __init__(self, provider_id: str, message: str, kind: str = "network"):
        super().__init__(message)
        self.provider_id = provider_id
        self.kind = kind

    def __str__(self) -> str:
        return f"[{self.provider_id}] {self.kind}: {self.message}"


class AdapterTimeout(AdapterError):
    code = "ADAPTER_TIMEOUT"

    def __init__(self, provider_id: str, timeout: float):
        super().__init__(provider_id, f"no response within {timeout:g}s", kind="timeout")
        self.timeout = timeout


class SearchCancelled(AdapterError):
    code = "SEARCH_CANCELLED"

    def __init__(self, provider_id: str = "*"):
        super().__init__(provider_id, "search cancelled", kind="cancelled")


class QuotaExceeded(TripCompareError):
    """Rejected before any adapter call was attempted."""

    code = "QUOTA_EXCEEDED"

    def __init__(self, key: str, limit: int, retry_after: float):
        super().__init__(f"search quota of {limit}/window exceeded for {key}")
        self.key = key
        self.limit = limit
        self.retry_after = retry_after


class QuoteExpired(TripCompareError):
    """Confirmation attempted on a stale or unknown quote; a fresh search is required."""

    code = "QUOTE_EXPIRED"

    def __init__(self, quote_ids: list[str]):
        super().__init__(f"quotes expired or unknown: {', '.join(quote_ids)}")
        self.quote_ids = quote_ids


class AllProvidersFailed(TripCompareError):
    code = "ALL_PROVIDERS_FAILED"

    def __init__(self, failures: list | None = None, message: str = "no provider returned usable results"):
        super().__init__(message)
        self.failures = failures or []


class BookingError(TripCompareError):
    code = "BOOKING_FAILED"


class SearchAlreadyRunning(TripCompareError):
    """A caller-supplied request id is already used by an in-flight search."""

    code = "SEARCH_ALREADY_RUNNING"

    def __init__(self, request_id: str):
        super().__init__(f"search {request_id} is already running")
        self.request_id = request_id
