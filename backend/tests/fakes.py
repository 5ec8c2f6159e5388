"""In-memory stand-ins for the database and Redis used across tests."""
import fnmatch
from datetime import date, datetime, timezone
from itertools import count
from typing import Iterable, Optional, Sequence

from redis.exceptions import ConnectionError as RedisConnectionError

from folio.core.errors import DuplicateHoldingError, HoldingNotFoundError, UpstreamUnavailableError
from folio.core.types import Region
from folio.models.holding import Holding
from folio.models.live_quote import LiveQuote
from folio.models.price_bar import PriceBar
from folio.services.stores.base import HoldingStore, LiveQuoteStore, PriceHistoryStore

# A Saturday in June; the MTD anchor (June 1) is a Saturday too
NOW = datetime(2024, 6, 15, 14, 30, tzinfo=timezone.utc)


def make_bar(symbol: str, on: date, close: float, region: str = "USD", **fields) -> PriceBar:
    return PriceBar(symbol=symbol, region=region, date=on, close=close, **fields)


def make_quote(symbol: str, price: Optional[float], region: str = "USD", **fields) -> LiveQuote:
    return LiveQuote(symbol=symbol, region=region, regular_market_price=price, **fields)


def make_holding(
    id: int,
    symbol: str,
    quantity: float,
    purchase_price: Optional[float],
    region: str = "USD",
    **fields,
) -> Holding:
    values = {
        "company": f"{symbol} Inc",
        "stock_type": "Comp",
        "rating": 1,
        "sector": None,
    }
    values.update(fields)
    return Holding(
        id=id,
        symbol=symbol,
        region=region,
        quantity=quantity,
        purchase_price=purchase_price,
        **values,
    )


class FakeClock:
    """Monotonic seconds that only move when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class InMemoryPriceHistoryStore(PriceHistoryStore):
    def __init__(self, bars: Iterable[PriceBar] = ()):
        self.bars = list(bars)
        self.calls = 0

    def add(self, symbol: str, on: date, close: float, region: str = "USD", **fields) -> None:
        self.bars.append(make_bar(symbol, on, close, region, **fields))

    def _series(self, symbol: str, region: Region) -> list:
        region = Region.parse(region).value
        rows = [bar for bar in self.bars if bar.symbol == symbol and bar.region == region]
        return sorted(rows, key=lambda bar: bar.date)

    async def get_bar(self, symbol, region, on):
        self.calls += 1
        return next((bar for bar in self._series(symbol, region) if bar.date == on), None)

    async def get_bar_on_or_after(self, symbol, region, on):
        self.calls += 1
        return next((bar for bar in self._series(symbol, region) if bar.date >= on), None)

    async def get_bar_before(self, symbol, region, on):
        self.calls += 1
        earlier = [bar for bar in self._series(symbol, region) if bar.date < on]
        return earlier[-1] if earlier else None

    async def get_latest_bar(self, symbol, region):
        self.calls += 1
        series = self._series(symbol, region)
        return series[-1] if series else None

    async def get_bars(self, symbols, region, start, end):
        self.calls += 1
        rows = [
            bar
            for symbol in symbols
            for bar in self._series(symbol, region)
            if start <= bar.date <= end
        ]
        return sorted(rows, key=lambda bar: (bar.date, bar.symbol))


class FailingPriceHistoryStore(InMemoryPriceHistoryStore):
    """Raises for the listed symbols and serves the rest normally."""

    def __init__(self, failing: Sequence[str], bars: Iterable[PriceBar] = ()):
        super().__init__(bars)
        self.failing = set(failing)

    def _series(self, symbol, region):
        if symbol in self.failing:
            raise UpstreamUnavailableError(f"history unavailable for {symbol}")
        return super()._series(symbol, region)


class InMemoryLiveQuoteStore(LiveQuoteStore):
    def __init__(self, quotes: Iterable[LiveQuote] = (), fail: bool = False):
        self.quotes = list(quotes)
        self.fail = fail

    async def get_quotes(self, symbols, region):
        if self.fail:
            raise UpstreamUnavailableError("quotes unavailable")
        region = Region.parse(region).value
        wanted = set(symbols)
        return {
            quote.symbol: quote
            for quote in self.quotes
            if quote.region == region and quote.symbol in wanted
        }


class InMemoryHoldingStore(HoldingStore):
    def __init__(self, holdings: Iterable[Holding] = ()):
        self.holdings = list(holdings)
        self._ids = count(max([h.id for h in self.holdings], default=0) + 1)

    def _in_region(self, region):
        region = Region.parse(region).value
        return [h for h in self.holdings if h.region == region]

    async def list_holdings(self, region):
        return sorted(self._in_region(region), key=lambda h: h.id)

    async def get_holding(self, holding_id, region):
        return next((h for h in self._in_region(region) if h.id == holding_id), None)

    async def create_holding(self, region, values):
        region = Region.parse(region)
        row = _clean(values)
        if any(h.symbol == row["symbol"] for h in self._in_region(region)):
            raise DuplicateHoldingError(row["symbol"], region.value)
        holding = make_holding(
            next(self._ids),
            row.pop("symbol"),
            row.pop("quantity", 0),
            row.pop("purchase_price", None),
            region=region.value,
            **row,
        )
        self.holdings.append(holding)
        return holding

    async def update_holding(self, holding_id, region, values):
        region = Region.parse(region)
        holding = await self.get_holding(holding_id, region)
        if holding is None:
            raise HoldingNotFoundError(holding_id, region.value)
        changes = _clean(values)
        new_symbol = changes.get("symbol")
        if new_symbol and new_symbol != holding.symbol:
            if any(h.symbol == new_symbol for h in self._in_region(region)):
                raise DuplicateHoldingError(new_symbol, region.value)
        for name, value in changes.items():
            setattr(holding, name, value)
        return holding

    async def delete_holding(self, holding_id, region):
        region = Region.parse(region)
        holding = await self.get_holding(holding_id, region)
        if holding is None:
            raise HoldingNotFoundError(holding_id, region.value)
        self.holdings.remove(holding)

    async def replace_holdings(self, region, rows):
        region = Region.parse(region)
        self.holdings = [h for h in self.holdings if h.region != region.value]
        created = []
        for values in rows:
            created.append(await self.create_holding(region, values))
        return created


def _clean(values: dict) -> dict:
    row = dict(values)
    if row.get("symbol"):
        row["symbol"] = row["symbol"].strip().upper()
    if hasattr(row.get("stock_type"), "value"):
        row["stock_type"] = row["stock_type"].value
    return row


class FakeAsyncRedis:
    """Just enough of ``redis.asyncio.Redis`` for the metrics cache."""

    def __init__(self, fail: bool = False):
        self.data = {}
        self.expiry = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis is down")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match=None):
        self._check()
        for key in list(self.data):
            if match is None or fnmatch.fnmatch(key, match):
                yield key
