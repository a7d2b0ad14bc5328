from tripcompare.models.price import PriceAlertRecord, PricePointRecord, SearchLogRecord

__all__ = [
    "PriceAlertRecord",
    "PricePointRecord",
    "SearchLogRecord",
]
