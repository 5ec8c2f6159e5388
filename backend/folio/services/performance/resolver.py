from datetime import date
from typing import Optional

from folio.core.types import Region
from folio.models.price_bar import PriceBar
from folio.services.stores.base import PriceHistoryStore


async def nearest_bar(
    store: PriceHistoryStore,
    symbol: str,
    region: Region,
    target: date,
) -> Optional[PriceBar]:
    """
    First bar on or after ``target``.

    Anchors often land on weekends and holidays, so the next trading day
    stands in for "start of period". When no later bar exists (the target is
    past the end of the history) the last bar before it is used instead.
    None when the symbol has no history at all.
    """
    bar = await store.get_bar_on_or_after(symbol, region, target)
    if bar is None:
        bar = await store.get_bar_before(symbol, region, target)
    return bar


async def nearest_price(
    store: PriceHistoryStore,
    symbol: str,
    region: Region,
    target: date,
) -> Optional[float]:
    """Close of ``nearest_bar``, or None."""
    bar = await nearest_bar(store, symbol, region, target)
    if bar is None or bar.close is None:
        return None
    return float(bar.close)
