"""
Portfolio Performance History Service.

Builds a daily value series for a regional portfolio from its current
holdings and stored daily bars, and compares it with the region's benchmark
rebased to 100 on the first usable day of the window.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from folio.core.config import settings
from folio.core.types import Region
from folio.models.holding import Holding
from folio.models.price_bar import PriceBar
from folio.services.performance.anchors import to_utc_date, utc_now
from folio.services.performance.returns import as_float
from folio.services.stores.base import PriceHistoryStore

logger = logging.getLogger(__name__)

BENCHMARK_BASE = 100.0


class TimeRange(str, Enum):
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    YEAR_TO_DATE = "YTD"
    ONE_YEAR = "1Y"

    def start_date(self, today: date) -> date:
        if self is TimeRange.ONE_WEEK:
            return today - timedelta(days=7)
        if self is TimeRange.ONE_MONTH:
            return (pd.Timestamp(today) - pd.DateOffset(months=1)).date()
        if self is TimeRange.YEAR_TO_DATE:
            return today.replace(month=1, day=1)
        return (pd.Timestamp(today) - pd.DateOffset(years=1)).date()


@dataclass
class HistoryPoint:
    """One trading day; returns are in percent."""
    date: date
    portfolio_value: float
    benchmark_value: float
    portfolio_cumulative_return: float
    benchmark_cumulative_return: float
    portfolio_daily_return: float
    benchmark_daily_return: float
    relative_performance: float


@dataclass
class PortfolioHistory:
    region: str
    benchmark: str
    time_range: str
    start_date: date
    end_date: date
    points: List[HistoryPoint] = field(default_factory=list)


def bar_price(bar: PriceBar) -> Optional[float]:
    """Adjusted close when present, else close. Non-positive prices are no price."""
    price = as_float(bar.adjusted_close)
    if price is None or price <= 0:
        price = as_float(bar.close)
    if price is None or price <= 0:
        return None
    return price


def compute_history(
    bars: Sequence[PriceBar],
    quantities: Dict[str, float],
    benchmark: str,
    min_coverage: float = 0.8,
) -> List[HistoryPoint]:
    """
    Daily portfolio value against the benchmark.

    Days without a benchmark bar are skipped. The baseline is the first day
    on which every held symbol has a price and the portfolio is worth more
    than zero. After that, a day is kept when the priced symbols carry at
    least ``min_coverage`` of the baseline value; missing symbols add
    nothing to that day's value. Daily returns compare against the previous
    kept day, so the baseline day reports 0.
    """
    held = {symbol: qty for symbol, qty in quantities.items() if qty > 0}
    if not held or not bars:
        return []

    frame = pd.DataFrame(
        [{"date": bar.date, "symbol": bar.symbol, "price": bar_price(bar)} for bar in bars]
    )
    prices = (
        frame.drop_duplicates(subset=["date", "symbol"], keep="last")
        .pivot(index="date", columns="symbol", values="price")
        .astype(float)
        .sort_index()
    )
    if benchmark not in prices.columns:
        logger.warning("No %s benchmark bars in the requested window", benchmark)
        return []
    prices = prices[prices[benchmark].notna()]

    qty = pd.Series(held, dtype=float)
    positions = prices.reindex(columns=qty.index)
    values = positions.mul(qty, axis=1)

    complete = positions.notna().all(axis=1) & (values.sum(axis=1) > 0)
    if not complete.any():
        logger.warning("No day with prices for every holding and %s", benchmark)
        return []
    baseline_date = complete.idxmax()

    positions = positions.loc[baseline_date:]
    values = values.loc[baseline_date:]
    baseline_values = values.loc[baseline_date]
    weights = baseline_values / baseline_values.sum()

    coverage = positions.notna().mul(weights, axis=1).sum(axis=1)
    kept = coverage >= min_coverage
    skipped = int((~kept).sum())
    if skipped:
        logger.info("Skipped %s days with less than %.0f%% of the portfolio priced", skipped, min_coverage * 100)

    portfolio = values[kept].sum(axis=1)
    bench = prices.loc[portfolio.index, benchmark] / prices.at[baseline_date, benchmark] * BENCHMARK_BASE

    portfolio_cumulative = (portfolio / portfolio.iloc[0] - 1) * 100
    benchmark_cumulative = (bench / BENCHMARK_BASE - 1) * 100
    portfolio_daily = portfolio.pct_change().fillna(0.0) * 100
    benchmark_daily = bench.pct_change().fillna(0.0) * 100

    return [
        HistoryPoint(
            date=day,
            portfolio_value=float(portfolio[day]),
            benchmark_value=float(bench[day]),
            portfolio_cumulative_return=float(portfolio_cumulative[day]),
            benchmark_cumulative_return=float(benchmark_cumulative[day]),
            portfolio_daily_return=float(portfolio_daily[day]),
            benchmark_daily_return=float(benchmark_daily[day]),
            relative_performance=float(portfolio_cumulative[day] - benchmark_cumulative[day]),
        )
        for day in portfolio.index
    ]


class PortfolioHistoryService:
    """
    Reads the window's bars for the holdings and the benchmark in one query.
    Store errors propagate as UpstreamUnavailableError.
    """

    def __init__(
        self,
        store: PriceHistoryStore,
        clock: Callable[[], datetime] = utc_now,
        benchmarks: Optional[Dict[str, str]] = None,
        min_coverage: Optional[float] = None,
    ):
        self.store = store
        self.clock = clock
        self.benchmarks = benchmarks or settings.BENCHMARK_SYMBOLS
        self.min_coverage = settings.HISTORY_MIN_COVERAGE if min_coverage is None else min_coverage

    def benchmark_for(self, region: Region) -> str:
        return self.benchmarks[Region.parse(region).value]

    async def build_history(
        self,
        holdings: Sequence[Holding],
        region: Region,
        time_range: TimeRange = TimeRange.ONE_YEAR,
    ) -> PortfolioHistory:
        region = Region.parse(region)
        time_range = TimeRange(time_range)
        today = to_utc_date(self.clock())
        start = time_range.start_date(today)
        benchmark = self.benchmark_for(region)

        history = PortfolioHistory(
            region=region.value,
            benchmark=benchmark,
            time_range=time_range.value,
            start_date=start,
            end_date=today,
        )

        quantities: Dict[str, float] = {}
        for holding in holdings:
            quantities[holding.symbol] = quantities.get(holding.symbol, 0.0) + (as_float(holding.quantity) or 0.0)
        if not any(qty > 0 for qty in quantities.values()):
            return history

        symbols = sorted(set(quantities) | {benchmark})
        bars = await self.store.get_bars(symbols, region, start, today)
        history.points = compute_history(bars, quantities, benchmark, self.min_coverage)
        logger.debug(
            "Built %s history for %s over %s: %s points",
            time_range.value,
            region.value,
            symbols,
            len(history.points),
        )
        return history
