from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional, Sequence

from folio.core.types import Region
from folio.models.holding import Holding
from folio.models.live_quote import LiveQuote
from folio.models.price_bar import PriceBar


class PriceHistoryStore(ABC):
    """Read access to daily bars keyed by (symbol, region, date)."""

    @abstractmethod
    async def get_bar(self, symbol: str, region: Region, on: date) -> Optional[PriceBar]:
        """Bar dated exactly ``on``."""
        pass

    @abstractmethod
    async def get_bar_on_or_after(self, symbol: str, region: Region, on: date) -> Optional[PriceBar]:
        """Earliest bar dated ``on`` or later."""
        pass

    @abstractmethod
    async def get_bar_before(self, symbol: str, region: Region, on: date) -> Optional[PriceBar]:
        """Latest bar dated strictly before ``on``."""
        pass

    @abstractmethod
    async def get_latest_bar(self, symbol: str, region: Region) -> Optional[PriceBar]:
        """Most recent bar for the symbol."""
        pass

    @abstractmethod
    async def get_bars(
        self,
        symbols: Sequence[str],
        region: Region,
        start: date,
        end: date,
    ) -> list[PriceBar]:
        """Bars of ``symbols`` dated within [start, end], ordered by date."""
        pass


class LiveQuoteStore(ABC):
    """Read access to the latest quote per (symbol, region)."""

    @abstractmethod
    async def get_quotes(self, symbols: Sequence[str], region: Region) -> dict[str, LiveQuote]:
        """Quotes keyed by symbol; symbols without a quote are absent."""
        pass


class HoldingStore(ABC):
    """CRUD over regional portfolio holdings."""

    @abstractmethod
    async def list_holdings(self, region: Region) -> list[Holding]:
        pass

    @abstractmethod
    async def get_holding(self, holding_id: int, region: Region) -> Optional[Holding]:
        pass

    @abstractmethod
    async def create_holding(self, region: Region, values: dict) -> Holding:
        pass

    @abstractmethod
    async def update_holding(self, holding_id: int, region: Region, values: dict) -> Holding:
        pass

    @abstractmethod
    async def delete_holding(self, holding_id: int, region: Region) -> None:
        pass

    @abstractmethod
    async def replace_holdings(self, region: Region, rows: Iterable[dict]) -> list[Holding]:
        """Full rebalance: drop every holding of the region, then insert ``rows``."""
        pass
