from datetime import date

import pytest

from folio.core.metrics import metrics
from folio.services.performance import BatchPerformanceEngine, InMemoryMetricsCache
from tests.fakes import NOW, FakeClock, InMemoryPriceHistoryStore


@pytest.fixture(autouse=True)
def metrics_buffer():
    """Each test starts with an empty, enabled metrics buffer."""
    metrics.enable()
    metrics.clear_buffer()
    yield metrics
    metrics.clear_buffer()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return InMemoryMetricsCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def history():
    """TEST: YTD anchor close 90, MTD anchor close 105, latest close 110."""
    store = InMemoryPriceHistoryStore()
    store.add("TEST", date(2024, 1, 2), 90.0)
    store.add("TEST", date(2024, 3, 28), 98.0)
    store.add("TEST", date(2024, 6, 3), 105.0)
    store.add("TEST", date(2024, 6, 14), 110.0)
    return store


@pytest.fixture
def engine(history, cache):
    return BatchPerformanceEngine(history, cache, clock=lambda: NOW)
