"""
Portfolio Valuation Service.

Combines holdings, live quotes and trailing performance metrics into the
per-holding view served by the portfolio API.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from folio.core.metrics import metrics as metrics_emitter
from folio.core.types import Region
from folio.models.holding import Holding
from folio.models.live_quote import LiveQuote
from folio.services.performance.engine import BatchPerformanceEngine
from folio.services.performance.returns import as_float, percent_return
from folio.services.performance.types import PerformanceMetrics
from folio.services.stores.base import LiveQuoteStore

logger = logging.getLogger(__name__)

PRICE_SOURCE_QUOTE = "quote"
PRICE_SOURCE_PURCHASE = "purchase_price"
PRICE_SOURCE_UNAVAILABLE = "unavailable"

RETURN_FIELDS = ("mtd_return", "ytd_return", "six_month_return", "fifty_two_week_return")


@dataclass
class ValuedHolding:
    """A holding priced for one response. Never persisted."""
    id: Optional[int]
    symbol: str
    company: Optional[str]
    stock_type: Optional[str]
    rating: Optional[int]
    sector: Optional[str]
    quantity: float
    purchase_price: Optional[float]
    current_price: float
    price_source: str
    net_asset_value: float
    portfolio_percentage: float
    profit_loss: float
    daily_change_percent: Optional[float] = None
    mtd_return: Optional[float] = None
    ytd_return: Optional[float] = None
    six_month_return: Optional[float] = None
    fifty_two_week_return: Optional[float] = None
    fifty_two_week_range_position: Optional[float] = None
    dividend_yield: Optional[float] = None


@dataclass
class PortfolioSummary:
    """Aggregate view of one regional portfolio."""
    region: str
    total_value: float
    holding_count: int
    unpriced_count: int
    total_cost_basis: float
    unrealized_pnl: float
    mtd_return: Optional[float] = None
    ytd_return: Optional[float] = None
    six_month_return: Optional[float] = None
    fifty_two_week_return: Optional[float] = None


def fifty_two_week_range_position(
    current_price: float,
    high: Any,
    low: Any,
) -> Optional[float]:
    """
    Where the price sits in its 52-week range.

    Above the 52-week high the return from the 52-week low is reported (a new
    high); otherwise the percent distance below the high (<= 0).
    """
    high_value = as_float(high)
    if high_value is None:
        return None
    if current_price > high_value:
        return percent_return(current_price, low)
    return percent_return(current_price, high_value)


def resolve_current_price(
    holding: Holding,
    quote: Optional[LiveQuote],
) -> Tuple[float, str]:
    """Live quote, else cost basis, else 0 flagged as unavailable."""
    if quote is not None:
        price = as_float(quote.regular_market_price)
        if price is not None and price > 0:
            return price, PRICE_SOURCE_QUOTE
    purchase = as_float(holding.purchase_price)
    if purchase is not None and purchase > 0:
        return purchase, PRICE_SOURCE_PURCHASE
    return 0.0, PRICE_SOURCE_UNAVAILABLE


class PortfolioValuationService:
    """Values a regional portfolio against live quotes and price history."""

    def __init__(self, quote_store: LiveQuoteStore, engine: BatchPerformanceEngine):
        self.quote_store = quote_store
        self.engine = engine

    async def value_portfolio(
        self,
        holdings: Sequence[Holding],
        region: Region,
    ) -> List[ValuedHolding]:
        """
        Price every holding, weight it against the portfolio total and attach
        trailing returns. Output order matches ``holdings``.

        Raises:
            InvalidRegionError: for an unknown region
        """
        region = Region.parse(region)
        if not holdings:
            return []

        symbols = [holding.symbol for holding in holdings]
        quotes = await self._fetch_quotes(symbols, region)

        priced = []
        for holding in holdings:
            quote = quotes.get(holding.symbol)
            price, source = resolve_current_price(holding, quote)
            if source != PRICE_SOURCE_QUOTE:
                reason = "no_quote" if source == PRICE_SOURCE_PURCHASE else "unpriced"
                if source == PRICE_SOURCE_UNAVAILABLE:
                    logger.warning(
                        "%s (%s) has neither a quote nor a cost basis; valued at 0",
                        holding.symbol,
                        region.value,
                    )
                await metrics_emitter.valuation_degraded(holding.symbol, region.value, reason)
            quantity = as_float(holding.quantity) or 0.0
            priced.append((holding, quote, price, source, quantity * price))

        total_value = sum(nav for *_, nav in priced)
        performance = await self.engine.calculate_batch(symbols, region)

        valued = [
            self._build(holding, quote, price, source, nav, total_value, performance)
            for holding, quote, price, source, nav in priced
        ]
        logger.debug(
            "Valued %s %s holdings, total %.2f",
            len(valued),
            region.value,
            total_value,
        )
        return valued

    async def _fetch_quotes(self, symbols: List[str], region: Region) -> Dict[str, LiveQuote]:
        try:
            return await self.quote_store.get_quotes(symbols, region)
        except Exception as exc:
            logger.error(
                "Live quotes unavailable for %s; falling back to cost basis: %s",
                region.value,
                exc,
            )
            return {}

    def _build(
        self,
        holding: Holding,
        quote: Optional[LiveQuote],
        price: float,
        source: str,
        nav: float,
        total_value: float,
        performance: Dict[str, PerformanceMetrics],
    ) -> ValuedHolding:
        purchase = as_float(holding.purchase_price)
        perf = performance.get(holding.symbol.strip().upper(), PerformanceMetrics())
        weight = nav / total_value * 100 if total_value > 0 else 0.0
        profit_loss = percent_return(price, purchase) if purchase is not None else None

        return ValuedHolding(
            id=holding.id,
            symbol=holding.symbol,
            company=holding.company,
            stock_type=holding.stock_type,
            rating=holding.rating,
            sector=holding.sector,
            quantity=as_float(holding.quantity) or 0.0,
            purchase_price=purchase,
            current_price=price,
            price_source=source,
            net_asset_value=nav,
            portfolio_percentage=weight,
            # No cost basis is reported as 0 here, unlike the return fields.
            profit_loss=profit_loss if profit_loss is not None else 0.0,
            daily_change_percent=as_float(quote.regular_market_change_percent) if quote else None,
            mtd_return=perf.mtd_return,
            ytd_return=perf.ytd_return,
            six_month_return=perf.six_month_return,
            fifty_two_week_return=perf.fifty_two_week_return,
            fifty_two_week_range_position=(
                fifty_two_week_range_position(price, quote.fifty_two_week_high, quote.fifty_two_week_low)
                if quote is not None and source == PRICE_SOURCE_QUOTE
                else None
            ),
            dividend_yield=as_float(quote.dividend_yield) if quote else None,
        )


def summarize_portfolio(valued: Sequence[ValuedHolding], region: Region) -> PortfolioSummary:
    """
    Portfolio totals plus NAV-weighted trailing returns. Each weighted return
    only averages holdings whose metric is known; None when none is.
    """
    region = Region.parse(region)
    if not valued:
        return PortfolioSummary(
            region=region.value,
            total_value=0.0,
            holding_count=0,
            unpriced_count=0,
            total_cost_basis=0.0,
            unrealized_pnl=0.0,
        )

    frame = pd.DataFrame([asdict(item) for item in valued])
    purchase = pd.to_numeric(frame["purchase_price"], errors="coerce")
    has_basis = purchase.notna() & (frame["price_source"] != PRICE_SOURCE_UNAVAILABLE)

    cost_basis = (frame.loc[has_basis, "quantity"] * purchase[has_basis]).sum()
    market_value = frame.loc[has_basis, "net_asset_value"].sum()

    weighted: Dict[str, Optional[float]] = {}
    for column in RETURN_FIELDS:
        values = pd.to_numeric(frame[column], errors="coerce")
        known = values.notna() & (frame["net_asset_value"] > 0)
        weights = frame.loc[known, "net_asset_value"]
        if known.any() and weights.sum() > 0:
            weighted[column] = float(np.average(values[known], weights=weights))
        else:
            weighted[column] = None

    return PortfolioSummary(
        region=region.value,
        total_value=float(frame["net_asset_value"].sum()),
        holding_count=len(frame),
        unpriced_count=int((frame["price_source"] == PRICE_SOURCE_UNAVAILABLE).sum()),
        total_cost_basis=float(cost_basis),
        unrealized_pnl=float(market_value - cost_basis),
        **weighted,
    )
