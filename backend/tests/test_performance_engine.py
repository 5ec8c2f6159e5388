import asyncio
import dataclasses
import json
from datetime import date
from types import SimpleNamespace

import pytest

from folio.core.errors import InvalidRegionError
from folio.services.performance import (
    BatchPerformanceEngine,
    InMemoryMetricsCache,
    PerformanceMetrics,
    RedisMetricsCache,
)
from tests.fakes import NOW, FailingPriceHistoryStore, FakeAsyncRedis, InMemoryPriceHistoryStore


@pytest.mark.asyncio
async def test_computes_trailing_returns(engine):
    result = await engine.calculate_batch(["TEST"], "USD")

    metrics = result["TEST"]
    assert metrics.mtd_return == pytest.approx((110 - 105) / 105 * 100)
    assert metrics.ytd_return == pytest.approx((110 - 90) / 90 * 100)
    # Dec 15 and Jun 16 anchors both resolve forward to the Jan 2 bar
    assert metrics.six_month_return == pytest.approx((110 - 90) / 90 * 100)
    assert metrics.fifty_two_week_return == pytest.approx((110 - 90) / 90 * 100)


@pytest.mark.asyncio
async def test_no_history_yields_all_none(engine):
    result = await engine.calculate_batch(["NOPE"], "USD")

    assert result["NOPE"] == PerformanceMetrics()
    assert all(value is None for value in dataclasses.asdict(result["NOPE"]).values())


@pytest.mark.asyncio
async def test_every_symbol_present_even_when_some_fail(cache):
    store = FailingPriceHistoryStore(["B"])
    store.add("A", date(2024, 1, 2), 50.0)
    store.add("A", date(2024, 6, 14), 55.0)
    engine = BatchPerformanceEngine(store, cache, clock=lambda: NOW)

    result = await engine.calculate_batch(["A", "B", "C"], "USD")

    assert list(result) == ["A", "B", "C"]
    assert result["A"].ytd_return == pytest.approx(10.0)
    assert result["B"].is_empty
    assert result["C"].is_empty


@pytest.mark.asyncio
async def test_failed_symbols_are_not_cached(cache, metrics_buffer):
    store = FailingPriceHistoryStore(["B"])
    engine = BatchPerformanceEngine(store, cache, clock=lambda: NOW)

    await engine.calculate_batch(["B", "C"], "USD")

    assert await cache.get("B", "USD") is None
    # Missing history is a real answer and is cached
    assert await cache.get("C", "USD") == PerformanceMetrics()
    failures = [e for e in metrics_buffer.get_buffer() if e.event_type == "symbol_failed"]
    assert [e.symbol for e in failures] == ["B"]


@pytest.mark.asyncio
async def test_second_call_within_ttl_is_served_from_cache(engine, history):
    first = await engine.calculate_batch(["TEST"], "USD")
    calls = history.calls

    second = await engine.calculate_batch(["TEST"], "USD")

    assert second["TEST"] is first["TEST"]
    assert history.calls == calls


@pytest.mark.asyncio
async def test_recomputes_after_ttl(engine, history, clock):
    first = await engine.calculate_batch(["TEST"], "USD")
    history.add("TEST", date(2024, 6, 17), 121.0)

    clock.advance(299)
    assert (await engine.calculate_batch(["TEST"], "USD"))["TEST"] == first["TEST"]

    clock.advance(2)
    refreshed = (await engine.calculate_batch(["TEST"], "USD"))["TEST"]
    assert refreshed.mtd_return == pytest.approx((121 - 105) / 105 * 100)


@pytest.mark.asyncio
async def test_duplicates_and_case_collapse(engine):
    result = await engine.calculate_batch(["test", "TEST", " Test "], "usd")
    assert list(result) == ["TEST"]


@pytest.mark.asyncio
async def test_holding_objects_are_unwrapped_and_reported(engine, metrics_buffer):
    holding = SimpleNamespace(symbol="TEST", quantity=10)

    result = await engine.calculate_batch([holding, {"symbol": "nope"}, None, 42], "USD")

    assert list(result) == ["TEST", "NOPE"]
    assert result["TEST"].ytd_return is not None
    events = [e.event_type for e in metrics_buffer.get_buffer() if e.category == "contract"]
    assert events == ["symbol_unwrapped", "symbol_unwrapped", "entry_dropped"]


@pytest.mark.asyncio
async def test_invalid_region_raises(engine):
    with pytest.raises(InvalidRegionError):
        await engine.calculate_batch(["TEST"], "EUR")


@pytest.mark.asyncio
async def test_empty_batch(engine):
    assert await engine.calculate_batch([], "CAD") == {}


@pytest.mark.asyncio
async def test_regions_do_not_share_results(engine):
    result = await engine.calculate_batch(["TEST"], "CAD")
    assert result["TEST"].is_empty


@pytest.mark.asyncio
async def test_cache_outage_degrades_to_recompute(history):
    cache = RedisMetricsCache(FakeAsyncRedis(fail=True))
    engine = BatchPerformanceEngine(history, cache, clock=lambda: NOW)

    result = await engine.calculate_batch(["TEST"], "USD")

    assert result["TEST"].mtd_return == pytest.approx(4.7619, abs=1e-3)


@pytest.mark.asyncio
async def test_unreadable_cache_entries_are_recomputed(history):
    history.add("OTHER", date(2024, 6, 3), 50.0)
    history.add("OTHER", date(2024, 6, 14), 55.0)
    redis = FakeAsyncRedis()
    redis.data["perf-metrics:TEST_USD"] = "not-json"
    redis.data["perf-metrics:OTHER_USD"] = "null"
    engine = BatchPerformanceEngine(history, RedisMetricsCache(redis), clock=lambda: NOW)

    result = await engine.calculate_batch(["TEST", "OTHER"], "USD")

    assert result["TEST"].mtd_return == pytest.approx(4.7619, abs=1e-3)
    assert result["OTHER"].mtd_return == pytest.approx(10.0)
    # Recomputed values replace the bad entries
    assert json.loads(redis.data["perf-metrics:TEST_USD"])["mtd_return"] == pytest.approx(4.7619, abs=1e-3)


@pytest.mark.asyncio
async def test_concurrency_is_bounded(clock):
    in_flight = 0
    peak = 0

    class SlowStore(InMemoryPriceHistoryStore):
        async def get_latest_bar(self, symbol, region):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0)
                return await super().get_latest_bar(symbol, region)
            finally:
                in_flight -= 1

    engine = BatchPerformanceEngine(
        SlowStore(),
        InMemoryMetricsCache(clock=clock),
        clock=lambda: NOW,
        max_concurrency=2,
    )
    result = await engine.calculate_batch([f"S{i}" for i in range(10)], "USD")

    assert len(result) == 10
    assert peak <= 2


@pytest.mark.asyncio
async def test_batch_metrics_emitted(engine, metrics_buffer):
    await engine.calculate_batch(["TEST", "NOPE"], "USD")
    await engine.calculate_batch(["TEST"], "USD")

    summary = metrics_buffer.get_summary()
    assert summary["batches_processed"] == 1
    assert summary["cache_hit_rate"] == pytest.approx(1 / 3)


@pytest.mark.asyncio
async def test_calculate_single_symbol(engine):
    metrics = await engine.calculate("test", "USD")
    assert metrics.ytd_return == pytest.approx(22.2222, abs=1e-3)
