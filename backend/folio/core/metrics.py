"""
Structured observability events for the performance pipeline.

Event categories:
- cache: hit/miss partition of each batch
- pipeline: batch completions and per-symbol failures
- contract: callers passing something other than a symbol string
- valuation: holdings valued without a live quote

Every event is logged at DEBUG, kept in a bounded in-memory buffer for the
metrics API and, when a Redis client is attached, appended to the metrics
stream.
"""
import json
import logging
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Deque, Dict, List, Optional

from folio.core.config import settings
from folio.core.redis import StreamNames

logger = logging.getLogger(__name__)


@dataclass
class MetricEvent:
    timestamp: datetime
    category: str
    event_type: str
    symbol: Optional[str]
    region: Optional[str]
    value: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class MetricsEmitter:
    """
    Records pipeline events for the metrics API.

    The buffer is plain process memory; events from concurrent tasks land in
    completion order. Only ``emit_async`` publishes to the Redis stream, so
    request handlers never block the event loop on a stream write.
    """

    CATEGORY_CACHE = "cache"
    CATEGORY_PIPELINE = "pipeline"
    CATEGORY_CONTRACT = "contract"
    CATEGORY_VALUATION = "valuation"

    def __init__(self, redis_client=None, buffer_size: int = 1000):
        self.redis = redis_client
        self.buffer_size = buffer_size
        self._buffer: Deque[MetricEvent] = deque(maxlen=buffer_size)
        self._enabled = True

    def set_redis(self, redis_client) -> None:
        """Attach an async Redis client after startup."""
        self.redis = redis_client

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def emit(
        self,
        category: str,
        event_type: str,
        value: float,
        symbol: Optional[str] = None,
        region: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Optional[MetricEvent]:
        """
        Record one event in the log and the buffer. ``value`` is a count, a
        ratio, or 1.0 for a one-off occurrence. Returns None while the emitter
        is disabled.
        """
        if not self._enabled:
            return None

        event = MetricEvent(
            timestamp=datetime.now(timezone.utc),
            category=category,
            event_type=event_type,
            symbol=symbol,
            region=region,
            value=value,
            metadata=metadata or {},
        )
        logger.debug(
            "metric %s/%s symbol=%s region=%s value=%s %s",
            category,
            event_type,
            symbol,
            region,
            value,
            event.metadata,
        )
        self._buffer.append(event)
        return event

    async def emit_async(
        self,
        category: str,
        event_type: str,
        value: float,
        symbol: Optional[str] = None,
        region: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Optional[MetricEvent]:
        """``emit``, then append the event to the metrics stream when a client is attached."""
        event = self.emit(category, event_type, value, symbol, region, metadata)
        if event is None or self.redis is None:
            return event

        try:
            await self.redis.xadd(StreamNames.METRICS, {"data": json.dumps(event.to_dict())})
        except Exception as exc:
            logger.warning("Could not publish metric to the redis stream: %s", exc)
        return event

    # Pipeline events

    async def cache_lookup(self, region: str, hits: int, misses: int) -> Optional[MetricEvent]:
        total = hits + misses
        return await self.emit_async(
            self.CATEGORY_CACHE,
            "lookup",
            hits / total if total else 0.0,
            region=region,
            metadata={"hits": hits, "misses": misses},
        )

    async def batch_processed(
        self,
        region: str,
        count: int,
        success: int,
        failed: int,
        duration_ms: float,
    ) -> Optional[MetricEvent]:
        return await self.emit_async(
            self.CATEGORY_PIPELINE,
            "batch_processed",
            count,
            region=region,
            metadata={"success": success, "failed": failed, "duration_ms": round(duration_ms, 2)},
        )

    async def symbol_failed(self, symbol: str, region: str, error: str) -> Optional[MetricEvent]:
        return await self.emit_async(
            self.CATEGORY_PIPELINE,
            "symbol_failed",
            1.0,
            symbol=symbol,
            region=region,
            metadata={"error": error},
        )

    async def contract_violation(
        self,
        received_type: str,
        symbol: Optional[str],
        region: str,
    ) -> Optional[MetricEvent]:
        """An entry that had to be unwrapped, or dropped when it carried no symbol."""
        return await self.emit_async(
            self.CATEGORY_CONTRACT,
            "symbol_unwrapped" if symbol else "entry_dropped",
            1.0,
            symbol=symbol,
            region=region,
            metadata={"received_type": received_type},
        )

    async def valuation_degraded(self, symbol: str, region: str, reason: str) -> Optional[MetricEvent]:
        return await self.emit_async(self.CATEGORY_VALUATION, reason, 1.0, symbol=symbol, region=region)

    # Aggregation

    def get_buffer(self) -> List[MetricEvent]:
        return list(self._buffer)

    def get_summary(self, hours: int = 24) -> dict:
        """Counts by category and event over the last ``hours``, plus the cache hit rate."""
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        recent = [event for event in self._buffer if event.timestamp >= cutoff]

        by_category = Counter(event.category for event in recent)
        by_event = Counter(f"{event.category}/{event.event_type}" for event in recent)

        lookups = [
            event for event in recent
            if event.category == self.CATEGORY_CACHE and event.event_type == "lookup"
        ]
        hits = sum(event.metadata.get("hits", 0) for event in lookups)
        misses = sum(event.metadata.get("misses", 0) for event in lookups)

        return {
            "period_hours": hours,
            "total_events": len(recent),
            "by_category": dict(by_category),
            "by_event": dict(by_event),
            "cache_hit_rate": hits / (hits + misses) if hits + misses else None,
            "batches_processed": by_event[f"{self.CATEGORY_PIPELINE}/batch_processed"],
            "symbol_failures": by_event[f"{self.CATEGORY_PIPELINE}/symbol_failed"],
            "contract_violations": by_category[self.CATEGORY_CONTRACT],
            "degraded_valuations": by_category[self.CATEGORY_VALUATION],
        }

    def clear_buffer(self) -> int:
        count = len(self._buffer)
        self._buffer.clear()
        return count


metrics = MetricsEmitter(buffer_size=settings.METRICS_BUFFER_SIZE)
