"""
Domain value types used at the service boundary.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional, Tuple

from folio.core.errors import InvalidRegionError


class Region(str, Enum):
    """Independent portfolio partitions. Regions never share symbols or cash."""

    USD = "USD"
    CAD = "CAD"
    INTL = "INTL"

    @classmethod
    def parse(cls, value: Any) -> "Region":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise InvalidRegionError(value)


class StockType(str, Enum):
    COMP = "Comp"
    CAT = "Cat"
    CYCL = "Cycl"
    CASH = "Cash"
    ETF = "ETF"


def normalize_symbol(value: Any) -> Tuple[Optional[str], bool]:
    """
    Coerce a caller-supplied entry into a plain symbol.

    Returns (symbol, was_unwrapped). ``was_unwrapped`` is True when the entry
    was a richer object (e.g. a holding) rather than a symbol string, which
    callers should report as a contract violation. Unusable entries yield None.
    """
    if isinstance(value, str):
        symbol = value.strip().upper()
        return (symbol or None), False

    raw = None
    if isinstance(value, Mapping):
        raw = value.get("symbol")
    elif value is not None:
        raw = getattr(value, "symbol", None)

    if isinstance(raw, str) and raw.strip():
        return raw.strip().upper(), True
    return None, value is not None
