"""Tests for interval arithmetic and timezone conversion."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.services.intervals import (
    Interval,
    format_hhmm,
    is_nonexistent_local,
    local_day_bounds_utc,
    merge_intervals,
    overlaps,
    resolve_timezone,
    to_local,
    to_utc,
)

NEW_YORK = ZoneInfo("America/New_York")


def dt(hour, minute=0, day=7):
    return datetime(2030, 1, day, hour, minute)


def test_touching_ranges_do_not_overlap():
    assert overlaps(dt(9), dt(10), dt(10), dt(11)) is False
    assert overlaps(dt(10), dt(11), dt(9), dt(10)) is False


def test_partial_and_nested_ranges_overlap():
    assert overlaps(dt(9), dt(10, 30), dt(10), dt(11)) is True
    assert overlaps(dt(9), dt(12), dt(10), dt(11)) is True


def test_padded_interval():
    padded = Interval(dt(10), dt(11)).padded(15, 30)
    assert padded == Interval(dt(9, 45), dt(11, 30))


def test_merge_intervals_joins_overlapping_and_touching():
    merged = merge_intervals([
        Interval(dt(13), dt(14)),
        Interval(dt(9), dt(10)),
        Interval(dt(9, 30), dt(11)),
        Interval(dt(11), dt(12)),
        Interval(dt(15), dt(15)),  # empty, dropped
    ])
    assert merged == [Interval(dt(9), dt(12)), Interval(dt(13), dt(14))]


def test_round_trip_between_local_and_utc():
    local = datetime(2030, 7, 1, 9, 0)
    instant = to_utc(local, NEW_YORK)
    assert instant == datetime(2030, 7, 1, 13, 0, tzinfo=timezone.utc)
    assert to_local(instant, NEW_YORK) == local


def test_spring_forward_gap_is_nonexistent():
    # 2026-03-08: clocks jump from 02:00 to 03:00 in New York
    assert is_nonexistent_local(datetime(2026, 3, 8, 2, 30), NEW_YORK) is True
    assert is_nonexistent_local(datetime(2026, 3, 8, 1, 30), NEW_YORK) is False
    assert is_nonexistent_local(datetime(2026, 3, 8, 3, 0), NEW_YORK) is False


def test_ambiguous_fall_back_time_uses_first_occurrence():
    # 2026-11-01 01:30 happens twice; the first is still EDT (UTC-4)
    instant = to_utc(datetime(2026, 11, 1, 1, 30), NEW_YORK)
    assert instant == datetime(2026, 11, 1, 5, 30, tzinfo=timezone.utc)
    assert is_nonexistent_local(datetime(2026, 11, 1, 1, 30), NEW_YORK) is False


def test_local_day_bounds_on_dst_day_are_23_hours():
    start, end = local_day_bounds_utc(date(2026, 3, 8), NEW_YORK)
    assert end - start == timedelta(hours=23)
    assert start == datetime(2026, 3, 8, 5, 0, tzinfo=timezone.utc)


def test_unknown_timezone_falls_back_to_default(caplog):
    tz = resolve_timezone("Mars/Olympus_Mons")
    assert tz == ZoneInfo("UTC")
    assert "Unknown timezone" in caplog.text


def test_missing_timezone_falls_back_to_default():
    assert resolve_timezone(None) == ZoneInfo("UTC")


def test_format_hhmm():
    assert format_hhmm(dt(9, 5)) == "09:05"
