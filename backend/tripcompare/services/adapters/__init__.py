from tripcompare.services.adapters.amadeus import AmadeusAdapter
from tripcompare.services.adapters.base import CancellationToken, ProviderAdapter
from tripcompare.services.adapters.booking_com import BookingComAdapter
from tripcompare.services.adapters.demo import DemoAdapter
from tripcompare.services.adapters.hertz import HertzAdapter
from tripcompare.services.adapters.http import HttpProviderAdapter
from tripcompare.services.adapters.skyscanner import SkyscannerAdapter
from tripcompare.services.adapters.viator import ViatorAdapter

__all__ = [
    "AmadeusAdapter",
    "BookingComAdapter",
    "CancellationToken",
    "DemoAdapter",
    "HertzAdapter",
    "HttpProviderAdapter",
    "ProviderAdapter",
    "SkyscannerAdapter",
    "ViatorAdapter",
]
