from sqlalchemy import Column, String, Numeric, UniqueConstraint
from folio.core.database import Base
from folio.models.base import IdMixin, TimestampMixin

class LiveQuote(Base, IdMixin, TimestampMixin):
    """
    Latest market quote for a symbol in a region.
    Refreshed wholesale by the quote import, never diffed.
    """
    __tablename__ = "current_prices"
    __table_args__ = (
        UniqueConstraint("symbol", "region", name="uq_current_prices_symbol_region"),
    )

    symbol = Column(String(20), nullable=False, index=True)
    region = Column(String(8), nullable=False, index=True)
    regular_market_price = Column(Numeric(14, 4))
    regular_market_change_percent = Column(Numeric(12, 6))
    fifty_two_week_high = Column(Numeric(14, 4))
    fifty_two_week_low = Column(Numeric(14, 4))
    dividend_yield = Column(Numeric(12, 6))
    market_cap = Column(Numeric(20, 2))
    trailing_pe = Column(Numeric(12, 4))
