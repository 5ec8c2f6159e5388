import logging
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from folio.core.database import AsyncSessionLocal
from folio.core.errors import UpstreamUnavailableError
from folio.core.types import Region
from folio.models.live_quote import LiveQuote
from folio.services.stores.base import LiveQuoteStore

logger = logging.getLogger(__name__)


class SqlLiveQuoteStore(LiveQuoteStore):
    """Quotes backed by the ``current_prices`` table."""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def get_quotes(self, symbols: Sequence[str], region: Region) -> dict[str, LiveQuote]:
        if not symbols:
            return {}

        stmt = select(LiveQuote).where(
            LiveQuote.region == Region.parse(region).value,
            LiveQuote.symbol.in_(list(symbols)),
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                quotes = result.scalars().all()
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError(f"Live quote query failed: {exc}") from exc

        logger.debug("Loaded %s/%s quotes for %s", len(quotes), len(symbols), region)
        return {quote.symbol: quote for quote in quotes}
