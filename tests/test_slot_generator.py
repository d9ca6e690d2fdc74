"""Tests for slot generation over an in-memory calendar snapshot."""

from datetime import date, datetime, time, timezone
import uuid
from zoneinfo import ZoneInfo

import pytest

from app.models.booking_policy import BookingPolicy
from app.models.service import Service
from app.models.working_hours import WorkingHours
from app.services.calendar_resolver import BookedBlock, DayCalendar
from app.services.intervals import Interval
from app.services.slot_generator import generate_slots, get_available_slots

UTC = ZoneInfo("UTC")
MONDAY = date(2030, 1, 7)
LONG_AGO = datetime(2030, 1, 1, tzinfo=timezone.utc)


def make_calendar(day=MONDAY, tz=UTC, open_at=time(9), close_at=time(12), interval=30, notice=0, time_off=()):
    return DayCalendar(
        business_id=uuid.uuid4(),
        tz=tz,
        day=day,
        working_hours=WorkingHours(weekday=day.isoweekday(), is_closed=False, open_time=open_at, close_time=close_at),
        policy=BookingPolicy(
            slot_interval_minutes=interval,
            advance_notice_minutes=notice,
            cancellation_window_minutes=0,
            max_advance_days=60,
        ),
        time_off=list(time_off),
    )


def make_service(minutes=60, before=0, after=0, active=True):
    return Service(duration_minutes=minutes, buffer_before=before, buffer_after=after, is_active=active)


def booked(start_hour, end_hour, before=0, after=0, day=MONDAY):
    return BookedBlock(
        appointment_id=uuid.uuid4(),
        window=Interval(datetime.combine(day, time(start_hour)), datetime.combine(day, time(end_hour))),
        buffer_before=before,
        buffer_after=after,
    )


def hhmm(slots):
    return [s.strftime("%H:%M") for s in slots]


def test_empty_day_lists_every_fitting_start():
    slots = generate_slots(make_calendar(), make_service(), [], LONG_AGO)
    assert hhmm(slots) == ["09:00", "09:30", "10:00", "10:30", "11:00"]


def test_existing_booking_removes_overlapping_starts():
    slots = generate_slots(make_calendar(), make_service(), [booked(10, 11)], LONG_AGO)
    assert hhmm(slots) == ["09:00", "11:00"]


def test_candidate_buffer_keeps_distance_from_bookings():
    slots = generate_slots(make_calendar(), make_service(after=15), [booked(10, 11)], LONG_AGO)
    assert hhmm(slots) == ["11:00"]


def test_existing_booking_buffer_is_respected():
    slots = generate_slots(make_calendar(), make_service(), [booked(10, 11, after=30)], LONG_AGO)
    assert hhmm(slots) == ["09:00"]


def test_past_starts_are_skipped():
    now = datetime(2030, 1, 7, 9, 10, tzinfo=timezone.utc)
    slots = generate_slots(make_calendar(), make_service(), [], now)
    assert hhmm(slots) == ["09:30", "10:00", "10:30", "11:00"]


def test_advance_notice_pushes_out_first_slot():
    now = datetime(2030, 1, 7, 9, 45, tzinfo=timezone.utc)
    slots = generate_slots(make_calendar(notice=60), make_service(), [], now)
    assert hhmm(slots) == ["11:00"]


def test_closed_day_has_no_slots():
    calendar = make_calendar()
    calendar.working_hours.is_closed = True
    assert generate_slots(calendar, make_service(), [], LONG_AGO) == []


def test_missing_policy_or_hours_has_no_slots():
    calendar = make_calendar()
    calendar.policy = None
    assert generate_slots(calendar, make_service(), [], LONG_AGO) == []

    calendar = make_calendar()
    calendar.working_hours = None
    assert generate_slots(calendar, make_service(), [], LONG_AGO) == []


def test_inactive_or_missing_service_has_no_slots():
    assert generate_slots(make_calendar(), make_service(active=False), [], LONG_AGO) == []
    assert generate_slots(make_calendar(), None, [], LONG_AGO) == []


def test_service_longer_than_the_day_has_no_slots():
    assert generate_slots(make_calendar(), make_service(minutes=240), [], LONG_AGO) == []


def test_time_off_only_blocks_when_enabled():
    off = Interval(datetime(2030, 1, 7, 10, 0), datetime(2030, 1, 7, 11, 0))
    calendar = make_calendar(time_off=[off])

    assert hhmm(generate_slots(calendar, make_service(), [], LONG_AGO)) == [
        "09:00", "09:30", "10:00", "10:30", "11:00",
    ]
    assert hhmm(generate_slots(calendar, make_service(), [], LONG_AGO, respect_time_off=True)) == [
        "09:00", "11:00",
    ]


def test_dst_gap_starts_are_skipped():
    # 2026-03-08 02:00-03:00 does not exist in New York
    new_york = ZoneInfo("America/New_York")
    calendar = make_calendar(day=date(2026, 3, 8), tz=new_york, open_at=time(1), close_at=time(4))
    slots = generate_slots(calendar, make_service(minutes=30), [], datetime(2026, 1, 1, tzinfo=timezone.utc))
    assert hhmm(slots) == ["01:00", "01:30", "03:00", "03:30"]


def test_slots_are_strictly_ascending():
    slots = generate_slots(make_calendar(interval=15), make_service(minutes=45), [booked(10, 11)], LONG_AGO)
    assert slots == sorted(set(slots))


@pytest.mark.asyncio
async def test_get_available_slots_unknown_business_is_empty(db):
    slots = await get_available_slots(db, uuid.uuid4(), uuid.uuid4(), MONDAY, LONG_AGO)
    assert slots == []
