import json

import pytest

from folio.core.config import Settings
from folio.core.errors import UpstreamUnavailableError
from folio.services.performance import (
    InMemoryMetricsCache,
    PerformanceMetrics,
    RedisMetricsCache,
    build_metrics_cache,
)
from folio.services.performance.cache import cache_key
from tests.fakes import FakeAsyncRedis

SAMPLE = PerformanceMetrics(mtd_return=4.5, ytd_return=-2.0, six_month_return=None, fifty_two_week_return=12.25)


def test_cache_key():
    assert cache_key("AAPL", "usd") == "AAPL_USD"


@pytest.mark.asyncio
async def test_hit_within_ttl(cache, clock):
    await cache.put("AAPL", "USD", SAMPLE)
    clock.advance(299)
    assert await cache.get("AAPL", "USD") == SAMPLE


@pytest.mark.asyncio
async def test_expires_at_ttl(cache, clock):
    await cache.put("AAPL", "USD", SAMPLE)
    clock.advance(300)
    assert await cache.get("AAPL", "USD") is None


@pytest.mark.asyncio
async def test_explicit_write_time(cache, clock):
    await cache.put("AAPL", "USD", SAMPLE, now=clock() - 250)
    clock.advance(60)
    assert await cache.get("AAPL", "USD") is None


@pytest.mark.asyncio
async def test_keyed_by_region(cache):
    await cache.put("AAPL", "USD", SAMPLE)
    assert await cache.get("AAPL", "CAD") is None


@pytest.mark.asyncio
async def test_clear(cache):
    await cache.put("AAPL", "USD", SAMPLE)
    await cache.put("SHOP", "CAD", SAMPLE)
    assert len(cache) == 2
    assert await cache.clear() == 2
    assert await cache.get("AAPL", "USD") is None


@pytest.mark.asyncio
async def test_redis_round_trip_sets_expiry():
    client = FakeAsyncRedis()
    cache = RedisMetricsCache(client, ttl_seconds=300, prefix="perf-metrics:")

    await cache.put("AAPL", "USD", SAMPLE)

    assert client.expiry["perf-metrics:AAPL_USD"] == 300
    assert json.loads(client.data["perf-metrics:AAPL_USD"])["six_month_return"] is None
    assert await cache.get("AAPL", "USD") == SAMPLE
    assert await cache.get("AAPL", "INTL") is None


@pytest.mark.asyncio
async def test_redis_clear_only_touches_prefix():
    client = FakeAsyncRedis()
    client.data["other:key"] = "1"
    cache = RedisMetricsCache(client, ttl_seconds=300, prefix="perf-metrics:")
    await cache.put("AAPL", "USD", SAMPLE)
    await cache.put("SHOP", "CAD", SAMPLE)

    assert await cache.clear() == 2
    assert list(client.data) == ["other:key"]


@pytest.mark.asyncio
async def test_redis_failure_raises_upstream_unavailable():
    cache = RedisMetricsCache(FakeAsyncRedis(fail=True))
    with pytest.raises(UpstreamUnavailableError):
        await cache.get("AAPL", "USD")
    with pytest.raises(UpstreamUnavailableError):
        await cache.put("AAPL", "USD", SAMPLE)


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["not-json", "null", "[1, 2]", "42"])
async def test_redis_unreadable_entry_is_a_miss(raw):
    client = FakeAsyncRedis()
    client.data["perf-metrics:AAPL_USD"] = raw
    cache = RedisMetricsCache(client, prefix="perf-metrics:")

    assert await cache.get("AAPL", "USD") is None


def test_build_metrics_cache_defaults_to_memory():
    cache = build_metrics_cache(Settings(METRICS_CACHE_BACKEND="memory", METRICS_CACHE_TTL_SECONDS=120))
    assert isinstance(cache, InMemoryMetricsCache)
    assert cache.ttl_seconds == 120
