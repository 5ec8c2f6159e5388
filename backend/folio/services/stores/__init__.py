from folio.services.stores.base import HoldingStore, LiveQuoteStore, PriceHistoryStore
from folio.services.stores.live_quotes import SqlLiveQuoteStore
from folio.services.stores.price_history import SqlPriceHistoryStore

__all__ = [
    "HoldingStore",
    "LiveQuoteStore",
    "PriceHistoryStore",
    "SqlLiveQuoteStore",
    "SqlPriceHistoryStore",
]
