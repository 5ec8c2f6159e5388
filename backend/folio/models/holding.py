from sqlalchemy import Column, String, Integer, Numeric, UniqueConstraint
from folio.core.database import Base
from folio.models.base import IdMixin, TimestampMixin

class Holding(Base, IdMixin, TimestampMixin):
    """
    One position in a regional portfolio.
    purchase_price is NULL for positions without a cost basis (cash/ETF sleeves).
    """
    __tablename__ = "portfolio_holdings"
    __table_args__ = (
        UniqueConstraint("symbol", "region", name="uq_portfolio_holdings_symbol_region"),
    )

    symbol = Column(String(20), nullable=False, index=True)
    region = Column(String(8), nullable=False, index=True)
    company = Column(String(200), nullable=False)
    stock_type = Column(String(10), nullable=False, default="Comp")
    rating = Column(Integer, nullable=False, default=1)
    sector = Column(String(100))
    quantity = Column(Numeric(18, 4), nullable=False, default=0)
    purchase_price = Column(Numeric(14, 4))
