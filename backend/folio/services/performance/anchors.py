"""
Anchor dates for trailing-return windows.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Union

import pandas as pd

FIFTY_TWO_WEEK_DAYS = 365
SIX_MONTHS = pd.DateOffset(months=6)


@dataclass(frozen=True)
class AnchorDates:
    """Reference dates a batch measures returns against."""
    as_of: date
    month_start: date
    year_start: date
    six_months_ago: date
    fifty_two_weeks_ago: date


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_date(now: Union[datetime, date]) -> date:
    """UTC civil date of ``now``; naive datetimes are taken as UTC."""
    if isinstance(now, datetime):
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date()
    return now


def resolve_anchor_dates(now: Union[datetime, date]) -> AnchorDates:
    """
    MTD and YTD anchors are the first day of the current month and year.
    The six-month anchor uses calendar months (clamped to month end, so
    Aug 31 -> Feb 28/29); the 52-week anchor is 365 days back.
    """
    today = to_utc_date(now)
    six_months_ago = (pd.Timestamp(today) - SIX_MONTHS).date()
    return AnchorDates(
        as_of=today,
        month_start=today.replace(day=1),
        year_start=today.replace(month=1, day=1),
        six_months_ago=six_months_ago,
        fifty_two_weeks_ago=today - timedelta(days=FIFTY_TWO_WEEK_DAYS),
    )
