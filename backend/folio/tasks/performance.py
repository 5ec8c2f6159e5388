from folio.scheduler.celery_app import app
from folio.core.config import settings
from folio.core.database import close_db
from folio.core.redis import close_redis
from folio.core.types import Region
from folio.services.holding_service import HoldingService
from folio.services.performance import BatchPerformanceEngine, build_metrics_cache
from folio.services.stores import SqlPriceHistoryStore
import logging
import asyncio

logger = logging.getLogger(__name__)


async def _warm_regions() -> dict:
    holdings = HoldingService()
    engine = BatchPerformanceEngine(
        SqlPriceHistoryStore(),
        build_metrics_cache(settings),
        max_concurrency=settings.PERFORMANCE_MAX_CONCURRENCY,
    )

    warmed = {}
    try:
        for region in Region:
            rows = await holdings.list_holdings(region)
            symbols = [row.symbol for row in rows]
            if not symbols:
                warmed[region.value] = 0
                continue
            results = await engine.calculate_batch(symbols, region)
            warmed[region.value] = len(results)
    finally:
        # Each task run gets a fresh event loop; pooled connections can't outlive it
        await close_db()
        await close_redis()
    return warmed


@app.task(name="folio.tasks.performance.warm_performance_metrics")
def warm_performance_metrics():
    """
    Scheduled task to precompute trailing returns for every held symbol.
    Runs inside the cache TTL so API reads stay warm.
    """
    if settings.METRICS_CACHE_BACKEND != "redis":
        logger.info("Metrics cache is process-local; warming only affects the worker process")

    try:
        warmed = asyncio.run(_warm_regions())
    except Exception as e:
        logger.error(f"Performance warm-up failed: {e}")
        raise

    logger.info(f"Warmed performance metrics: {warmed}")
    return {
        "status": "completed",
        "symbols": warmed,
    }
