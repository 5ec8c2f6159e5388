from datetime import date, datetime, timedelta, timezone

import pytest

from folio.services.performance.anchors import resolve_anchor_dates, to_utc_date


def test_anchor_dates():
    anchors = resolve_anchor_dates(datetime(2024, 6, 15, 14, 30, tzinfo=timezone.utc))

    assert anchors.as_of == date(2024, 6, 15)
    assert anchors.month_start == date(2024, 6, 1)
    assert anchors.year_start == date(2024, 1, 1)
    assert anchors.six_months_ago == date(2023, 12, 15)
    assert anchors.fifty_two_weeks_ago == date(2023, 6, 16)


@pytest.mark.parametrize("month", range(2, 13))
def test_month_and_year_anchors_differ_outside_january(month):
    for day in (1, 15, 28):
        anchors = resolve_anchor_dates(date(2025, month, day))
        assert anchors.month_start != anchors.year_start


def test_january_anchors_coincide():
    anchors = resolve_anchor_dates(date(2025, 1, 20))
    assert anchors.month_start == anchors.year_start == date(2025, 1, 1)


def test_six_month_anchor_clamps_to_month_end():
    assert resolve_anchor_dates(date(2023, 8, 31)).six_months_ago == date(2023, 2, 28)
    assert resolve_anchor_dates(date(2024, 8, 31)).six_months_ago == date(2024, 2, 29)


def test_fifty_two_week_anchor_is_365_days():
    today = date(2024, 3, 1)
    assert resolve_anchor_dates(today).fifty_two_weeks_ago == today - timedelta(days=365)


def test_uses_utc_civil_date():
    # 2024-07-01 03:00 in UTC+5 is still June 30 in UTC
    local = datetime(2024, 7, 1, 3, 0, tzinfo=timezone(timedelta(hours=5)))
    assert to_utc_date(local) == date(2024, 6, 30)
    assert resolve_anchor_dates(local).month_start == date(2024, 6, 1)


def test_naive_datetime_taken_as_utc():
    assert to_utc_date(datetime(2024, 7, 1, 23, 59)) == date(2024, 7, 1)
