import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, List, Optional, Tuple

import pandas as pd
from sqlalchemy import delete, insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from folio.core.config import settings
from folio.core.database import AsyncSessionLocal
from folio.core.types import Region
from folio.models.live_quote import LiveQuote
from folio.models.price_bar import PriceBar

logger = logging.getLogger(__name__)

BAR_COLUMNS = ["symbol", "date", "open", "high", "low", "close", "volume", "adjusted_close"]
QUOTE_COLUMNS = [
    "symbol",
    "regular_market_price",
    "regular_market_change_percent",
    "fifty_two_week_high",
    "fifty_two_week_low",
    "dividend_yield",
    "market_cap",
    "trailing_pe",
]


@dataclass
class DataQualityAlert:
    """Represents a data quality issue."""
    symbol: str
    date: Optional[date]
    issue_type: str
    message: str
    severity: str  # "WARNING" or "ERROR"


def _number(value: Any) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


class DataQualityValidator:
    """
    Validates daily bars before they replace stored history:
    - close must be positive; other prices positive when present
    - volume must not be negative
    - high must not be below low
    - gaps above the configured threshold are flagged, not rejected
    """

    def __init__(self, max_gap_percent: float = settings.PRICE_GAP_THRESHOLD):
        self.max_gap_percent = max_gap_percent
        self.alerts: List[DataQualityAlert] = []

    def validate_bar(self, row: pd.Series, prev_close: Optional[float] = None) -> Tuple[bool, Optional[DataQualityAlert]]:
        """
        Validate a single bar.
        Returns (is_valid, alert_if_any).
        """
        symbol = str(row.get("symbol", "UNKNOWN"))
        bar_date = row.get("date")

        close = _number(row.get("close"))
        if close is None or close <= 0:
            return False, self._alert(symbol, bar_date, "INVALID_PRICE",
                                      f"close is missing or not positive: {row.get('close')}", "ERROR")

        for field in ("open", "high", "low", "adjusted_close"):
            value = _number(row.get(field))
            if value is not None and value <= 0:
                return False, self._alert(symbol, bar_date, "INVALID_PRICE",
                                          f"{field} is zero or negative: {value}", "ERROR")

        volume = _number(row.get("volume"))
        if volume is not None and volume < 0:
            return False, self._alert(symbol, bar_date, "INVALID_VOLUME",
                                      f"Volume is negative: {volume}", "ERROR")

        high, low = _number(row.get("high")), _number(row.get("low"))
        if high is not None and low is not None:
            if high < low:
                return False, self._alert(symbol, bar_date, "INVALID_OHLC",
                                          f"High ({high}) < Low ({low})", "ERROR")
            if not low <= close <= high:
                # Allowed, but worth a look
                self._alert(symbol, bar_date, "INVALID_OHLC",
                            f"Close {close} outside range L={low} H={high}", "WARNING")

        open_ = _number(row.get("open"))
        if prev_close and open_ is not None:
            gap_pct = abs(open_ - prev_close) / prev_close
            if gap_pct > self.max_gap_percent:
                alert = self._alert(symbol, bar_date, "LARGE_GAP",
                                    f"Gap of {gap_pct:.1%} from prev close {prev_close} to open {open_}",
                                    "WARNING")
                logger.warning(f"Large gap detected: {alert.message}")

        return True, None

    def get_alerts(self) -> List[DataQualityAlert]:
        return self.alerts

    def clear_alerts(self) -> None:
        self.alerts = []

    def _alert(self, symbol, bar_date, issue_type, message, severity) -> DataQualityAlert:
        alert = DataQualityAlert(
            symbol=symbol,
            date=bar_date,
            issue_type=issue_type,
            message=message,
            severity=severity,
        )
        self.alerts.append(alert)
        return alert


class PriceIngestionService:
    """
    Replaces stored price history and live quotes for a region.
    Rows are overwritten wholesale per symbol; nothing is patched in place.
    """

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory
        self.validator = DataQualityValidator()

    def prepare_bars(self, bars: pd.DataFrame, region: Region) -> List[dict]:
        """Validate a bar frame and convert the accepted rows to insert records."""
        region = Region.parse(region)
        self.validator.clear_alerts()
        if bars.empty:
            return []

        missing = {"symbol", "date", "close"} - set(bars.columns)
        if missing:
            raise ValueError(f"Bar data is missing columns: {sorted(missing)}")

        frame = bars.reindex(columns=BAR_COLUMNS).copy()
        frame["symbol"] = frame["symbol"].astype(str).str.strip().str.upper()
        frame["date"] = pd.to_datetime(frame["date"]).dt.date
        frame = frame.sort_values(["symbol", "date"]).drop_duplicates(["symbol", "date"], keep="last")

        records = []
        prev_closes: dict[str, float] = {}
        for _, row in frame.iterrows():
            symbol = row["symbol"]
            is_valid, alert = self.validator.validate_bar(row, prev_closes.get(symbol))
            if not is_valid:
                logger.warning(f"Rejected invalid bar: {symbol} {row['date']}: {alert.message if alert else 'unknown'}")
                continue
            records.append(self._bar_record(row, region))
            prev_closes[symbol] = float(row["close"])
        return records

    async def replace_price_history(self, bars: pd.DataFrame, region: Region) -> Tuple[int, List[DataQualityAlert]]:
        """
        Replace the stored history of every symbol present in ``bars``.
        Returns (number of bars written, data quality alerts).
        """
        region = Region.parse(region)
        records = self.prepare_bars(bars, region)
        alerts = self.validator.get_alerts()
        if not records:
            logger.warning("No valid bars to import for %s", region.value)
            return 0, alerts

        symbols = sorted({record["symbol"] for record in records})
        batch_size = settings.PRICE_INSERT_BATCH_SIZE

        async with self.session_factory() as session:
            try:
                await session.execute(
                    delete(PriceBar).where(
                        PriceBar.region == region.value,
                        PriceBar.symbol.in_(symbols),
                    )
                )
                for i in range(0, len(records), batch_size):
                    batch = records[i:i + batch_size]
                    await session.execute(insert(PriceBar), batch)
                    logger.info(f"Inserted batch {i // batch_size + 1}: {len(batch)} bars")
                await session.commit()
            except Exception as e:
                logger.error(f"Failed to store price history: {e}")
                await session.rollback()
                raise

        logger.info(
            "Replaced price history for %s %s symbols (%s bars, %s alerts)",
            len(symbols),
            region.value,
            len(records),
            len(alerts),
        )
        return len(records), alerts

    def prepare_quotes(self, quotes: Iterable[dict], region: Region) -> List[dict]:
        region = Region.parse(region)
        records = {}
        for quote in quotes:
            symbol = str(quote.get("symbol") or "").strip().upper()
            if not symbol:
                continue
            record = {"symbol": symbol, "region": region.value}
            for column in QUOTE_COLUMNS[1:]:
                record[column] = _number(quote.get(column))
            records[symbol] = record
        return list(records.values())

    async def replace_live_quotes(self, quotes: Iterable[dict], region: Region) -> int:
        """Supersede the region's quotes for every symbol in ``quotes``."""
        region = Region.parse(region)
        records = self.prepare_quotes(quotes, region)
        if not records:
            return 0

        async with self.session_factory() as session:
            try:
                await session.execute(
                    delete(LiveQuote).where(
                        LiveQuote.region == region.value,
                        LiveQuote.symbol.in_([record["symbol"] for record in records]),
                    )
                )
                await session.execute(insert(LiveQuote), records)
                await session.commit()
            except Exception as e:
                logger.error(f"Failed to store live quotes: {e}")
                await session.rollback()
                raise

        logger.info("Replaced %s live quotes for %s", len(records), region.value)
        return len(records)

    def _bar_record(self, row: pd.Series, region: Region) -> dict:
        volume = _number(row.get("volume"))
        return {
            "symbol": row["symbol"],
            "region": region.value,
            "date": row["date"],
            "open": _number(row.get("open")),
            "high": _number(row.get("high")),
            "low": _number(row.get("low")),
            "close": float(row["close"]),
            "volume": int(volume) if volume is not None else None,
            "adjusted_close": _number(row.get("adjusted_close")),
        }
