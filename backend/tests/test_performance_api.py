import pytest
from httpx import ASGITransport, AsyncClient

from folio.api.deps import get_metrics_cache, get_performance_engine, get_price_history_store
from folio.api.main import app
from folio.services.performance import PerformanceMetrics


@pytest.fixture
def client_app(engine, history, cache):
    app.dependency_overrides[get_performance_engine] = lambda: engine
    app.dependency_overrides[get_price_history_store] = lambda: history
    app.dependency_overrides[get_metrics_cache] = lambda: cache
    yield app
    app.dependency_overrides.clear()


def _client(application):
    return AsyncClient(transport=ASGITransport(app=application), base_url="http://test")


@pytest.mark.asyncio
async def test_batch_performance(client_app):
    async with _client(client_app) as client:
        resp = await client.get("/api/v1/performance/USD", params=[("symbols", "TEST"), ("symbols", "nope,TEST")])

    assert resp.status_code == 200
    data = resp.json()
    assert list(data) == ["TEST", "NOPE"]
    assert data["TEST"]["mtd_return"] == pytest.approx(4.7619, abs=1e-3)
    assert data["NOPE"] == {
        "mtd_return": None,
        "ytd_return": None,
        "six_month_return": None,
        "fifty_two_week_return": None,
    }


@pytest.mark.asyncio
async def test_batch_performance_invalid_region(client_app):
    async with _client(client_app) as client:
        resp = await client.get("/api/v1/performance/XX", params={"symbols": "TEST"})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_price_on_exact_date(client_app):
    async with _client(client_app) as client:
        resp = await client.get("/api/v1/performance/usd/test/price", params={"on": "2024-06-03"})

    assert resp.status_code == 200
    assert resp.json() == {
        "symbol": "TEST",
        "region": "USD",
        "requested_date": "2024-06-03",
        "price_date": "2024-06-03",
        "close": 105.0,
        "exact": True,
    }


@pytest.mark.asyncio
async def test_price_falls_back_to_nearest_bar(client_app):
    async with _client(client_app) as client:
        weekend = await client.get("/api/v1/performance/USD/TEST/price", params={"on": "2024-06-01"})
        after_history = await client.get("/api/v1/performance/USD/TEST/price", params={"on": "2024-07-01"})
        unknown = await client.get("/api/v1/performance/USD/NOPE/price", params={"on": "2024-07-01"})

    assert weekend.json()["price_date"] == "2024-06-03"
    assert weekend.json()["exact"] is False
    assert after_history.json()["close"] == 110.0
    assert unknown.json()["close"] is None
    assert unknown.json()["price_date"] is None


@pytest.mark.asyncio
async def test_clear_cache(client_app, cache):
    await cache.put("TEST", "USD", PerformanceMetrics(mtd_return=1.0))

    async with _client(client_app) as client:
        resp = await client.delete("/api/v1/performance/cache")

    assert resp.status_code == 204
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_health():
    async with _client(app) as client:
        resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
