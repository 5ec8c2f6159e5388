"""
FastAPI dependency providers.

The metrics cache and the read stores are process-wide; the holding service
borrows the request's database session.
"""
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from folio.core.config import settings
from folio.core.database import get_db
from folio.core.types import Region
from folio.services.history_service import PortfolioHistoryService
from folio.services.holding_service import HoldingService
from folio.services.performance import BatchPerformanceEngine, MetricsCache, build_metrics_cache
from folio.services.stores import (
    HoldingStore,
    LiveQuoteStore,
    PriceHistoryStore,
    SqlLiveQuoteStore,
    SqlPriceHistoryStore,
)
from folio.services.valuation_service import PortfolioValuationService


@lru_cache
def get_metrics_cache() -> MetricsCache:
    return build_metrics_cache(settings)


@lru_cache
def get_price_history_store() -> PriceHistoryStore:
    return SqlPriceHistoryStore()


@lru_cache
def get_quote_store() -> LiveQuoteStore:
    return SqlLiveQuoteStore()


def get_performance_engine(
    store: PriceHistoryStore = Depends(get_price_history_store),
    cache: MetricsCache = Depends(get_metrics_cache),
) -> BatchPerformanceEngine:
    return BatchPerformanceEngine(
        store,
        cache,
        max_concurrency=settings.PERFORMANCE_MAX_CONCURRENCY,
    )


def get_valuation_service(
    quote_store: LiveQuoteStore = Depends(get_quote_store),
    engine: BatchPerformanceEngine = Depends(get_performance_engine),
) -> PortfolioValuationService:
    return PortfolioValuationService(quote_store, engine)


def get_history_service(
    store: PriceHistoryStore = Depends(get_price_history_store),
) -> PortfolioHistoryService:
    return PortfolioHistoryService(store)


def get_holding_service(db: AsyncSession = Depends(get_db)) -> HoldingStore:
    return HoldingService(session=db)


def get_region(region: str) -> Region:
    """Path-parameter region, case-insensitive. Unknown regions raise InvalidRegionError."""
    return Region.parse(region)
