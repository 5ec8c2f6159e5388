"""
Performance API endpoints.

Provides:
- Trailing returns (MTD, YTD, 6M, 52W) for a symbol set in one region
- Price lookup for a symbol on a date, with the nearest-bar fallback
- Metrics cache reset
"""
from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from folio.api.deps import get_metrics_cache, get_performance_engine, get_price_history_store, get_region
from folio.core.types import Region
from folio.services.performance import BatchPerformanceEngine, MetricsCache, nearest_bar
from folio.services.stores.base import PriceHistoryStore

router = APIRouter()


# ============================================================================
# Pydantic Response Schemas
# ============================================================================

class PerformanceMetricsResponse(BaseModel):
    """Trailing returns in percent; null when no anchor price resolved."""
    mtd_return: Optional[float] = None
    ytd_return: Optional[float] = None
    six_month_return: Optional[float] = None
    fifty_two_week_return: Optional[float] = None


class PriceOnDateResponse(BaseModel):
    """Close for a symbol on a requested date."""
    symbol: str
    region: str
    requested_date: date
    price_date: Optional[date] = None
    close: Optional[float] = None
    exact: bool = False


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/{region}", response_model=Dict[str, PerformanceMetricsResponse])
async def get_performance(
    region: Region = Depends(get_region),
    symbols: List[str] = Query(default=[], description="Symbols; repeat or comma-separate"),
    engine: BatchPerformanceEngine = Depends(get_performance_engine),
) -> Dict[str, PerformanceMetricsResponse]:
    """
    Trailing returns for every requested symbol.

    The response has one entry per distinct symbol, with null fields where
    history is missing or the lookup failed.
    """
    requested = [part for value in symbols for part in value.split(",") if part.strip()]
    results = await engine.calculate_batch(requested, region)
    return {
        symbol: PerformanceMetricsResponse(**result.to_dict())
        for symbol, result in results.items()
    }


@router.get("/{region}/{symbol}/price", response_model=PriceOnDateResponse)
async def get_price_on_date(
    symbol: str,
    on: date = Query(..., description="Date (YYYY-MM-DD)"),
    region: Region = Depends(get_region),
    store: PriceHistoryStore = Depends(get_price_history_store),
) -> PriceOnDateResponse:
    """
    Exact close on ``on`` when a bar exists that day, otherwise the close of
    the nearest bar (next trading day, else the last one before).
    """
    symbol = symbol.strip().upper()
    bar = await store.get_bar(symbol, region, on)
    exact = bar is not None
    if bar is None:
        bar = await nearest_bar(store, symbol, region, on)

    return PriceOnDateResponse(
        symbol=symbol,
        region=region.value,
        requested_date=on,
        price_date=bar.date if bar is not None else None,
        close=float(bar.close) if bar is not None and bar.close is not None else None,
        exact=exact,
    )


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_metrics_cache(cache: MetricsCache = Depends(get_metrics_cache)):
    """Drop every cached metrics entry so the next request recomputes."""
    await cache.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
