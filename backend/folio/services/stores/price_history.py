from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from folio.core.database import AsyncSessionLocal
from folio.core.errors import UpstreamUnavailableError
from folio.core.types import Region
from folio.models.price_bar import PriceBar
from folio.services.stores.base import PriceHistoryStore


class SqlPriceHistoryStore(PriceHistoryStore):
    """
    Price history backed by the ``historical_prices`` table.

    Every lookup runs in its own short-lived session so that concurrent
    lookups from one batch never share a connection.
    """

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def get_bar(self, symbol: str, region: Region, on: date) -> Optional[PriceBar]:
        stmt = self._base(symbol, region).where(PriceBar.date == on).limit(1)
        return await self._first(stmt)

    async def get_bar_on_or_after(self, symbol: str, region: Region, on: date) -> Optional[PriceBar]:
        stmt = (
            self._base(symbol, region)
            .where(PriceBar.date >= on)
            .order_by(PriceBar.date.asc())
            .limit(1)
        )
        return await self._first(stmt)

    async def get_bar_before(self, symbol: str, region: Region, on: date) -> Optional[PriceBar]:
        stmt = (
            self._base(symbol, region)
            .where(PriceBar.date < on)
            .order_by(PriceBar.date.desc())
            .limit(1)
        )
        return await self._first(stmt)

    async def get_latest_bar(self, symbol: str, region: Region) -> Optional[PriceBar]:
        stmt = self._base(symbol, region).order_by(PriceBar.date.desc()).limit(1)
        return await self._first(stmt)

    async def get_bars(
        self,
        symbols: Sequence[str],
        region: Region,
        start: date,
        end: date,
    ) -> list[PriceBar]:
        if not symbols:
            return []
        stmt = (
            select(PriceBar)
            .where(
                PriceBar.symbol.in_(list(symbols)),
                PriceBar.region == Region.parse(region).value,
                PriceBar.date >= start,
                PriceBar.date <= end,
            )
            .order_by(PriceBar.date.asc(), PriceBar.symbol.asc())
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError(f"Price history query failed: {exc}") from exc

    def _base(self, symbol: str, region: Region):
        return select(PriceBar).where(
            PriceBar.symbol == symbol,
            PriceBar.region == Region.parse(region).value,
        )

    async def _first(self, stmt) -> Optional[PriceBar]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return result.scalars().first()
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError(f"Price history query failed: {exc}") from exc
