#!/usr/bin/env python3
"""
Import daily bars (and optionally live quotes) for one regional portfolio.

Every symbol present in the file has its stored history replaced wholesale.

Usage:
    python scripts/import_prices.py --region USD --bars bars.csv [--quotes quotes.csv]

Bar columns: symbol, date, open, high, low, close, volume, adjusted_close
Quote columns: symbol, regular_market_price, regular_market_change_percent,
    fifty_two_week_high, fifty_two_week_low, dividend_yield, market_cap, trailing_pe
"""

import asyncio
import logging
import os
import sys
from argparse import ArgumentParser
from typing import Optional

import pandas as pd

# Add backend to path
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from folio.core.database import close_db
from folio.core.types import Region
from folio.services.price_ingestion_service import PriceIngestionService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def import_prices(region: Region, bars_path: str, quotes_path: Optional[str] = None) -> int:
    """Load the CSV files and replace stored prices for the region."""
    service = PriceIngestionService()

    try:
        bars = pd.read_csv(bars_path)
        logger.info(f"Read {len(bars)} bars from {bars_path}")
        processed, alerts = await service.replace_price_history(bars, region)
        logger.info(f"Stored {processed} bars for {region.value}")

        if alerts:
            warnings = [a for a in alerts if a.severity == "WARNING"]
            errors = [a for a in alerts if a.severity == "ERROR"]

            if warnings:
                logger.warning(f"Data quality warnings: {len(warnings)}")
                for alert in warnings[:5]:
                    logger.warning(f"  {alert.symbol} ({alert.date}): {alert.message}")

            if errors:
                logger.error(f"Rejected bars: {len(errors)}")
                for alert in errors[:5]:
                    logger.error(f"  {alert.symbol} ({alert.date}): {alert.message}")

        if quotes_path:
            quotes = pd.read_csv(quotes_path)
            stored = await service.replace_live_quotes(quotes.to_dict("records"), region)
            logger.info(f"Stored {stored} live quotes for {region.value}")

        return processed

    except Exception as e:
        logger.error(f"Import failed: {e}", exc_info=True)
        return 0
    finally:
        await close_db()


def main():
    parser = ArgumentParser(description="Import historical prices for a regional portfolio")
    parser.add_argument(
        "--region",
        type=Region.parse,
        required=True,
        help="Portfolio region: USD, CAD or INTL"
    )
    parser.add_argument("--bars", required=True, help="CSV file of daily bars")
    parser.add_argument("--quotes", help="CSV file of live quotes")
    args = parser.parse_args()

    result = asyncio.run(import_prices(args.region, args.bars, args.quotes))

    if result > 0:
        logger.info(f"Import completed: {result} bars")
        sys.exit(0)
    else:
        logger.error("Import failed or no valid bars")
        sys.exit(1)


if __name__ == "__main__":
    main()
