from sqlalchemy import Column, String, Date, Numeric, BigInteger, Index, UniqueConstraint
from folio.core.database import Base
from folio.models.base import IdMixin, TimestampMixin

class PriceBar(Base, IdMixin, TimestampMixin):
    """
    Daily OHLCV bar for a symbol within one regional portfolio.
    Replaced wholesale on reimport, never patched in place.
    """
    __tablename__ = "historical_prices"
    __table_args__ = (
        UniqueConstraint("symbol", "region", "date", name="uq_historical_prices_symbol_region_date"),
        Index("ix_historical_prices_symbol_region_date", "symbol", "region", "date"),
    )

    symbol = Column(String(20), nullable=False)
    region = Column(String(8), nullable=False)
    date = Column(Date, nullable=False)
    open = Column(Numeric(14, 4))
    high = Column(Numeric(14, 4))
    low = Column(Numeric(14, 4))
    close = Column(Numeric(14, 4), nullable=False)
    volume = Column(BigInteger)
    adjusted_close = Column(Numeric(14, 4))
