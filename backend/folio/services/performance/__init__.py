from folio.services.performance.anchors import AnchorDates, resolve_anchor_dates
from folio.services.performance.cache import (
    InMemoryMetricsCache,
    MetricsCache,
    RedisMetricsCache,
    build_metrics_cache,
)
from folio.services.performance.engine import BatchPerformanceEngine
from folio.services.performance.resolver import nearest_bar, nearest_price
from folio.services.performance.returns import percent_return
from folio.services.performance.types import PerformanceMetrics

__all__ = [
    "AnchorDates",
    "BatchPerformanceEngine",
    "InMemoryMetricsCache",
    "MetricsCache",
    "PerformanceMetrics",
    "RedisMetricsCache",
    "build_metrics_cache",
    "nearest_bar",
    "nearest_price",
    "percent_return",
    "resolve_anchor_dates",
]
