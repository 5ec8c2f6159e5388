"""
Batch Performance Engine.

Computes month-to-date, year-to-date, six-month and 52-week returns for a set
of symbols in one region. Callers that need trailing returns for several
symbols should make one ``calculate_batch`` call rather than looping per
symbol, so cache partitioning and store lookups happen once per batch.
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from folio.core.errors import UpstreamUnavailableError
from folio.core.metrics import metrics as metrics_emitter
from folio.core.types import Region, normalize_symbol
from folio.services.performance.anchors import AnchorDates, resolve_anchor_dates, utc_now
from folio.services.performance.cache import MetricsCache
from folio.services.performance.resolver import nearest_price
from folio.services.performance.returns import percent_return
from folio.services.performance.types import PerformanceMetrics
from folio.services.stores.base import PriceHistoryStore

logger = logging.getLogger(__name__)


class BatchPerformanceEngine:
    """
    Resolves cache hits, computes the misses concurrently and caches them.

    The returned mapping always has one entry per distinct input symbol. A
    symbol whose computation fails gets an all-None result that is not cached,
    so the next request retries it.
    """

    def __init__(
        self,
        store: PriceHistoryStore,
        cache: MetricsCache,
        clock: Callable[[], datetime] = utc_now,
        max_concurrency: int = 5,
    ):
        self.store = store
        self.cache = cache
        self.clock = clock
        self.max_concurrency = max(1, max_concurrency)

    async def calculate_batch(
        self,
        symbols: Iterable[Any],
        region: Region,
    ) -> Dict[str, PerformanceMetrics]:
        """
        Args:
            symbols: Symbol strings. Objects carrying a ``symbol`` field are
                accepted and unwrapped, but logged as a caller defect.
            region: USD, CAD or INTL (case-insensitive)

        Returns:
            Mapping symbol -> PerformanceMetrics, in input order

        Raises:
            InvalidRegionError: for an unknown region; nothing else escapes
        """
        region = Region.parse(region)
        ordered = await self._normalize(symbols, region)

        results: Dict[str, PerformanceMetrics] = {}
        misses: List[str] = []
        for symbol in ordered:
            cached = await self._cache_get(symbol, region)
            if cached is not None:
                results[symbol] = cached
            else:
                misses.append(symbol)

        await metrics_emitter.cache_lookup(region.value, hits=len(results), misses=len(misses))
        if not misses:
            return results

        started = time.perf_counter()
        anchors = resolve_anchor_dates(self.clock())
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def compute(symbol: str) -> Optional[PerformanceMetrics]:
            async with semaphore:
                return await self._compute_guarded(symbol, region, anchors)

        computed = await asyncio.gather(*(compute(symbol) for symbol in misses))

        failed = 0
        for symbol, outcome in zip(misses, computed):
            if outcome is None:
                failed += 1
                results[symbol] = PerformanceMetrics()
                continue
            results[symbol] = outcome
            await self._cache_put(symbol, region, outcome)

        duration_ms = (time.perf_counter() - started) * 1000
        await metrics_emitter.batch_processed(
            region.value,
            count=len(misses),
            success=len(misses) - failed,
            failed=failed,
            duration_ms=duration_ms,
        )
        logger.info(
            "Computed performance for %s/%s %s symbols in %.1fms (%s failed)",
            len(misses),
            len(ordered),
            region.value,
            duration_ms,
            failed,
        )
        return {symbol: results[symbol] for symbol in ordered}

    async def calculate(self, symbol: str, region: Region) -> PerformanceMetrics:
        """Single-symbol convenience over ``calculate_batch``."""
        result = await self.calculate_batch([symbol], region)
        return next(iter(result.values()), PerformanceMetrics())

    async def _compute_guarded(
        self,
        symbol: str,
        region: Region,
        anchors: AnchorDates,
    ) -> Optional[PerformanceMetrics]:
        try:
            return await self._compute(symbol, region, anchors)
        except Exception as exc:
            logger.error(
                "Performance computation failed for %s (%s): %s",
                symbol,
                region.value,
                exc,
                exc_info=not isinstance(exc, UpstreamUnavailableError),
            )
            await metrics_emitter.symbol_failed(symbol, region.value, str(exc))
            return None

    async def _compute(
        self,
        symbol: str,
        region: Region,
        anchors: AnchorDates,
    ) -> PerformanceMetrics:
        latest = await self.store.get_latest_bar(symbol, region)
        if latest is None:
            logger.debug("No price history for %s (%s)", symbol, region.value)
            return PerformanceMetrics()

        current = float(latest.close)
        mtd, ytd, six_month, fifty_two_week = await asyncio.gather(
            nearest_price(self.store, symbol, region, anchors.month_start),
            nearest_price(self.store, symbol, region, anchors.year_start),
            nearest_price(self.store, symbol, region, anchors.six_months_ago),
            nearest_price(self.store, symbol, region, anchors.fifty_two_weeks_ago),
        )
        return PerformanceMetrics(
            mtd_return=percent_return(current, mtd),
            ytd_return=percent_return(current, ytd),
            six_month_return=percent_return(current, six_month),
            fifty_two_week_return=percent_return(current, fifty_two_week),
        )

    async def _normalize(self, symbols: Iterable[Any], region: Region) -> List[str]:
        ordered: List[str] = []
        seen = set()
        for entry in symbols:
            symbol, unwrapped = normalize_symbol(entry)
            if unwrapped:
                logger.warning(
                    "calculate_batch received %s instead of a symbol string (%s); "
                    "fix the caller",
                    type(entry).__name__,
                    symbol or "no symbol field",
                )
                await metrics_emitter.contract_violation(type(entry).__name__, symbol, region.value)
            if symbol is None or symbol in seen:
                continue
            seen.add(symbol)
            ordered.append(symbol)
        return ordered

    async def _cache_get(self, symbol: str, region: Region) -> Optional[PerformanceMetrics]:
        try:
            return await self.cache.get(symbol, region)
        except UpstreamUnavailableError as exc:
            logger.warning("Metrics cache read failed for %s (%s): %s", symbol, region.value, exc)
            return None

    async def _cache_put(self, symbol: str, region: Region, value: PerformanceMetrics) -> None:
        try:
            await self.cache.put(symbol, region, value)
        except UpstreamUnavailableError as exc:
            logger.warning("Metrics cache write failed for %s (%s): %s", symbol, region.value, exc)
