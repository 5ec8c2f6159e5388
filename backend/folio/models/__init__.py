# Base
from folio.models.base import TimestampMixin, IdMixin

# Market Data
from folio.models.price_bar import PriceBar
from folio.models.live_quote import LiveQuote

# Portfolio
from folio.models.holding import Holding

__all__ = [
    "TimestampMixin",
    "IdMixin",
    "PriceBar",
    "LiveQuote",
    "Holding",
]
