from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.leads.filters import DateWindow, DateWindowSpec, resolve_date_window


UTC = ZoneInfo("UTC")
LOS_ANGELES = ZoneInfo("America/Los_Angeles")

# 2026-01-05 is a Monday.
MONDAY = datetime(2026, 1, 5, tzinfo=timezone.utc)


def test_no_filters_leave_the_window_open() -> None:
    window = resolve_date_window(DateWindowSpec(), MONDAY, UTC)

    assert window == DateWindow()
    assert window.is_open


def test_today_spans_the_whole_local_day() -> None:
    now = datetime(2026, 1, 7, 15, 30, tzinfo=timezone.utc)

    window = resolve_date_window(DateWindowSpec(date_filter_type="today"), now, UTC)

    assert window.start == datetime(2026, 1, 7, tzinfo=timezone.utc)
    assert window.end == datetime(2026, 1, 7, 23, 59, 59, 999000, tzinfo=timezone.utc)


def test_yesterday_spans_the_previous_local_day() -> None:
    now = datetime(2026, 1, 7, 15, 30, tzinfo=timezone.utc)

    window = resolve_date_window(DateWindowSpec(date_filter_type="yesterday"), now, UTC)

    assert window.start == datetime(2026, 1, 6, tzinfo=timezone.utc)
    assert window.end == datetime(2026, 1, 6, 23, 59, 59, 999000, tzinfo=timezone.utc)


def test_presets_follow_the_business_timezone() -> None:
    # 03:00 UTC on the 7th is still the 6th in Los Angeles (UTC-8 in January).
    now = datetime(2026, 1, 7, 3, 0, tzinfo=timezone.utc)

    window = resolve_date_window(DateWindowSpec(date_filter_type="today"), now, LOS_ANGELES)

    assert window.start == datetime(2026, 1, 6, 8, 0, tzinfo=timezone.utc)
    assert window.end == datetime(2026, 1, 7, 7, 59, 59, 999000, tzinfo=timezone.utc)


def test_this_week_starts_on_monday_and_stays_open_ended() -> None:
    now = datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc)

    window = resolve_date_window(DateWindowSpec(date_filter_type="this_week"), now, UTC)

    assert window.start == MONDAY
    assert window.end is None


def test_this_week_with_hours_keeps_monday_midnight_when_it_is_later() -> None:
    now = MONDAY + timedelta(hours=3)

    window = resolve_date_window(DateWindowSpec(date_filter_type="this_week", time_in_hours="6"), now, UTC)

    assert window.start == max(MONDAY, now - timedelta(hours=6)) == MONDAY
    assert window.end == now


def test_this_week_with_hours_narrows_to_the_hour_limit() -> None:
    now = datetime(2026, 1, 7, 12, 0, tzinfo=timezone.utc)

    window = resolve_date_window(DateWindowSpec(date_filter_type="this_week", time_in_hours=6), now, UTC)

    assert window.start == now - timedelta(hours=6)
    assert window.end == now


def test_hours_alone_cover_the_trailing_period() -> None:
    now = datetime(2026, 1, 7, 12, 0, tzinfo=timezone.utc)

    window = resolve_date_window(DateWindowSpec(time_in_hours="1.5"), now, UTC)

    assert window.start == now - timedelta(minutes=90)
    assert window.end == now


def test_custom_range_uses_whole_days() -> None:
    requested = DateWindowSpec(
        date_filter_type="custom",
        custom_start_date="2026-01-02",
        custom_end_date="2026-01-03T10:00:00Z",
    )

    window = resolve_date_window(requested, MONDAY, UTC)

    assert window.start == datetime(2026, 1, 2, tzinfo=timezone.utc)
    assert window.end == datetime(2026, 1, 3, 23, 59, 59, 999000, tzinfo=timezone.utc)


def test_custom_range_bounds_are_independent() -> None:
    only_start = resolve_date_window(
        DateWindowSpec(date_filter_type="custom", custom_start_date="2026-01-02"), MONDAY, UTC
    )
    only_end = resolve_date_window(DateWindowSpec(date_filter_type="custom", custom_end_date="2026-01-03"), MONDAY, UTC)

    assert only_start.start == datetime(2026, 1, 2, tzinfo=timezone.utc)
    assert only_start.end is None
    assert only_end.start is None
    assert only_end.end == datetime(2026, 1, 3, 23, 59, 59, 999000, tzinfo=timezone.utc)


def test_unparseable_custom_dates_are_ignored() -> None:
    requested = DateWindowSpec(date_filter_type="custom", custom_start_date="not-a-date", custom_end_date="2026-13-40")

    assert resolve_date_window(requested, MONDAY, UTC).is_open


@pytest.mark.parametrize("hours", ["abc", "-5", "0", "nan", "inf", "1e20", ""])
def test_bad_hour_values_are_ignored(hours: str) -> None:
    window = resolve_date_window(DateWindowSpec(date_filter_type="today", time_in_hours=hours), MONDAY, UTC)

    assert window.start == MONDAY
    assert window.end == datetime(2026, 1, 5, 23, 59, 59, 999000, tzinfo=timezone.utc)


def test_unknown_preset_is_ignored() -> None:
    assert resolve_date_window(DateWindowSpec(date_filter_type="last_decade"), MONDAY, UTC).is_open


def test_naive_now_is_treated_as_utc() -> None:
    window = resolve_date_window(DateWindowSpec(date_filter_type="today"), datetime(2026, 1, 7, 15, 30), UTC)

    assert window.start == datetime(2026, 1, 7, tzinfo=timezone.utc)
