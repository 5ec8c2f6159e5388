"""
Percentage return between a current price and a historical reference price.
"""
import math
from typing import Any, Optional


def as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def percent_return(current: Any, reference: Any) -> Optional[float]:
    """
    (current - reference) / reference * 100.

    Returns None, never 0.0, when either side is unusable or the reference is
    not a positive finite number: "unknown" must stay distinguishable from a
    flat period. Never raises.
    """
    ref = as_float(reference)
    cur = as_float(current)
    if ref is None or cur is None or ref <= 0:
        return None
    return (cur - ref) / ref * 100
