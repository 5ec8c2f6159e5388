"""
Short-lived memoization of per-symbol performance metrics.

Entries are keyed by ``{symbol}_{region}`` and expire a fixed TTL after they
were written. Expiry is checked on read only; there is no size bound, which is
fine for portfolios of tens to low hundreds of symbols. Concurrent misses for
the same key are not coalesced and concurrent writes are last-write-wins.
"""
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from redis.exceptions import RedisError

from folio.core.config import Settings
from folio.core.errors import UpstreamUnavailableError
from folio.core.types import Region
from folio.services.performance.types import PerformanceMetrics

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


def cache_key(symbol: str, region: Region) -> str:
    return f"{symbol}_{Region.parse(region).value}"


class MetricsCache(ABC):
    """Async get/put/clear so shared backends can suspend on I/O."""

    ttl_seconds: float

    @abstractmethod
    async def get(self, symbol: str, region: Region) -> Optional[PerformanceMetrics]:
        """Cached metrics, or None on a miss or an expired entry."""
        pass

    @abstractmethod
    async def put(
        self,
        symbol: str,
        region: Region,
        metrics: PerformanceMetrics,
        now: Optional[float] = None,
    ) -> None:
        pass

    @abstractmethod
    async def clear(self) -> int:
        """Drop every entry; returns how many were removed."""
        pass


@dataclass
class _Entry:
    metrics: PerformanceMetrics
    stored_at: float


class InMemoryMetricsCache(MetricsCache):
    """Process-local cache with an injectable clock (seconds)."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, _Entry] = {}

    async def get(self, symbol: str, region: Region) -> Optional[PerformanceMetrics]:
        entry = self._entries.get(cache_key(symbol, region))
        if entry is None:
            return None
        if self.clock() - entry.stored_at >= self.ttl_seconds:
            return None
        return entry.metrics

    async def put(
        self,
        symbol: str,
        region: Region,
        metrics: PerformanceMetrics,
        now: Optional[float] = None,
    ) -> None:
        stored_at = self.clock() if now is None else now
        self._entries[cache_key(symbol, region)] = _Entry(metrics, stored_at)

    async def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)


class RedisMetricsCache(MetricsCache):
    """
    Cache shared between API workers and the scheduled warmer.
    Redis owns expiry (SET ... EX), so ``now`` is not used.
    """

    def __init__(self, client, ttl_seconds: float = DEFAULT_TTL_SECONDS, prefix: str = "perf-metrics:"):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    async def get(self, symbol: str, region: Region) -> Optional[PerformanceMetrics]:
        try:
            raw = await self.client.get(self._key(symbol, region))
        except RedisError as exc:
            raise UpstreamUnavailableError(f"Metrics cache read failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return PerformanceMetrics.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning(
                "Ignoring unreadable metrics cache entry %s: %s",
                self._key(symbol, region),
                exc,
            )
            return None

    async def put(
        self,
        symbol: str,
        region: Region,
        metrics: PerformanceMetrics,
        now: Optional[float] = None,
    ) -> None:
        try:
            await self.client.set(
                self._key(symbol, region),
                json.dumps(metrics.to_dict()),
                ex=int(self.ttl_seconds),
            )
        except RedisError as exc:
            raise UpstreamUnavailableError(f"Metrics cache write failed: {exc}") from exc

    async def clear(self) -> int:
        removed = 0
        try:
            async for key in self.client.scan_iter(match=f"{self.prefix}*"):
                removed += await self.client.delete(key)
        except RedisError as exc:
            raise UpstreamUnavailableError(f"Metrics cache clear failed: {exc}") from exc
        return removed

    def _key(self, symbol: str, region: Region) -> str:
        return f"{self.prefix}{cache_key(symbol, region)}"


def build_metrics_cache(settings: Settings) -> MetricsCache:
    """Cache backend selected by METRICS_CACHE_BACKEND."""
    if settings.METRICS_CACHE_BACKEND == "redis":
        from folio.core.redis import get_async_redis

        logger.info("Using redis metrics cache (ttl=%ss)", settings.METRICS_CACHE_TTL_SECONDS)
        return RedisMetricsCache(
            get_async_redis(),
            ttl_seconds=settings.METRICS_CACHE_TTL_SECONDS,
            prefix=settings.METRICS_CACHE_KEY_PREFIX,
        )
    return InMemoryMetricsCache(ttl_seconds=settings.METRICS_CACHE_TTL_SECONDS)
