import logging
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from folio.core.database import AsyncSessionLocal
from folio.core.errors import DuplicateHoldingError, HoldingNotFoundError, UpstreamUnavailableError
from folio.core.types import Region
from folio.models.holding import Holding
from folio.services.stores.base import HoldingStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "symbol",
    "company",
    "stock_type",
    "rating",
    "sector",
    "quantity",
    "purchase_price",
)


class HoldingService(HoldingStore):
    """Manage regional portfolio holdings."""

    def __init__(self, session: Optional[AsyncSession] = None):
        self.session = session

    async def list_holdings(self, region: Region) -> list[Holding]:
        region = Region.parse(region)
        async with self._get_session() as session:
            stmt = (
                select(Holding)
                .where(Holding.region == region.value)
                .order_by(Holding.id.asc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_holding(self, holding_id: int, region: Region) -> Optional[Holding]:
        region = Region.parse(region)
        async with self._get_session() as session:
            stmt = select(Holding).where(
                Holding.id == holding_id,
                Holding.region == region.value,
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def create_holding(self, region: Region, values: dict) -> Holding:
        region = Region.parse(region)
        row = self._clean(values)
        async with self._get_session() as session:
            if await self._symbol_taken(session, row["symbol"], region):
                raise DuplicateHoldingError(row["symbol"], region.value)

            holding = Holding(region=region.value, **row)
            session.add(holding)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise DuplicateHoldingError(row["symbol"], region.value) from exc
            await session.refresh(holding)
            logger.info("Added %s to %s portfolio", holding.symbol, region.value)
            return holding

    async def update_holding(self, holding_id: int, region: Region, values: dict) -> Holding:
        region = Region.parse(region)
        changes = self._clean(values)
        async with self._get_session() as session:
            stmt = select(Holding).where(
                Holding.id == holding_id,
                Holding.region == region.value,
            )
            holding = (await session.execute(stmt)).scalar_one_or_none()
            if holding is None:
                raise HoldingNotFoundError(holding_id, region.value)

            new_symbol = changes.get("symbol")
            if new_symbol and new_symbol != holding.symbol:
                if await self._symbol_taken(session, new_symbol, region):
                    raise DuplicateHoldingError(new_symbol, region.value)

            for name, value in changes.items():
                setattr(holding, name, value)
            await session.flush()
            await session.refresh(holding)
            return holding

    async def delete_holding(self, holding_id: int, region: Region) -> None:
        region = Region.parse(region)
        async with self._get_session() as session:
            stmt = delete(Holding).where(
                Holding.id == holding_id,
                Holding.region == region.value,
            )
            result = await session.execute(stmt)
            if not result.rowcount:
                raise HoldingNotFoundError(holding_id, region.value)
            logger.info("Deleted holding %s from %s portfolio", holding_id, region.value)

    async def replace_holdings(self, region: Region, rows: Iterable[dict]) -> list[Holding]:
        region = Region.parse(region)
        cleaned = [self._clean(row) for row in rows]
        async with self._get_session() as session:
            await session.execute(delete(Holding).where(Holding.region == region.value))
            holdings = [Holding(region=region.value, **row) for row in cleaned]
            session.add_all(holdings)
            await session.flush()
            for holding in holdings:
                await session.refresh(holding)
            logger.info(
                "Rebalanced %s portfolio with %s holdings",
                region.value,
                len(holdings),
            )
            return holdings

    async def _symbol_taken(self, session: AsyncSession, symbol: str, region: Region) -> bool:
        stmt = select(Holding.id).where(
            Holding.symbol == symbol,
            Holding.region == region.value,
        )
        result = await session.execute(stmt)
        return result.first() is not None

    def _clean(self, values: dict) -> dict:
        row = {key: values[key] for key in EDITABLE_FIELDS if key in values}
        if row.get("symbol"):
            row["symbol"] = row["symbol"].strip().upper()
        if "stock_type" in row and hasattr(row["stock_type"], "value"):
            row["stock_type"] = row["stock_type"].value
        return row

    @asynccontextmanager
    async def _get_session(self):
        try:
            if self.session is not None:
                yield self.session
            else:
                async with AsyncSessionLocal() as session:
                    try:
                        yield session
                        await session.commit()
                    except Exception:
                        await session.rollback()
                        raise
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError(f"Holding query failed: {exc}") from exc
