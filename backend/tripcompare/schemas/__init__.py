from tripcompare.schemas.booking import BookingConfirmation, BookingConfirmRequest
from tripcompare.schemas.comparison import (
    ComparisonResult,
    PriceInsights,
    ProviderFailure,
    Recommendations,
    SearchErrorInfo,
    SearchFilters,
)
from tripcompare.schemas.health import ProviderStatus, SystemHealth
from tripcompare.schemas.price import (
    AlertNotification,
    MarketAlert,
    PriceAlert,
    PriceHistory,
    PricePoint,
    PricePointMetadata,
    PricePrediction,
    PriceStatistics,
)
from tripcompare.schemas.provider import AuthConfig, ProviderCapabilities, ProviderDescriptor
from tripcompare.schemas.quote import (
    Availability,
    CancellationTerms,
    Price,
    PriceBreakdown,
    Quote,
    SupplierInfo,
)
from tripcompare.schemas.search import BookingWindow, Budget, SearchCriteria, SearchRequest, TravelerCounts

__all__ = [
    "AlertNotification",
    "AuthConfig",
    "Availability",
    "BookingConfirmation",
    "BookingConfirmRequest",
    "BookingWindow",
    "Budget",
    "CancellationTerms",
    "ComparisonResult",
    "MarketAlert",
    "Price",
    "PriceAlert",
    "PriceBreakdown",
    "PriceHistory",
    "PriceInsights",
    "PricePoint",
    "PricePointMetadata",
    "PricePrediction",
    "PriceStatistics",
    "ProviderCapabilities",
    "ProviderDescriptor",
    "ProviderFailure",
    "ProviderStatus",
    "Quote",
    "Recommendations",
    "SearchCriteria",
    "SearchErrorInfo",
    "SearchFilters",
    "SearchRequest",
    "SupplierInfo",
    "SystemHealth",
    "TravelerCounts",
]
