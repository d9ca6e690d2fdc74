"""Owner dashboard queries: filtered lists, weekly stats, calendar window."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.appointment import Appointment, AppointmentStatus
from app.models.booking_policy import BookingPolicy
from app.models.service import Service
from app.models.working_hours import WorkingHours
from app.services.appointment_lifecycle import reconcile_and_save
from app.services.calendar_resolver import (
    BookedBlock,
    get_business,
    get_policy,
    get_working_hours,
    load_blocks_near,
    load_time_off,
    weekday_of,
)
from app.services.intervals import (
    Interval,
    combine,
    local_day_bounds_utc,
    merge_intervals,
    resolve_timezone,
    to_local,
)

logger = logging.getLogger(__name__)

DATE_RANGES = ("all", "today", "week", "month")

# Used when a business has no policy row yet
FALLBACK_SLOT_INTERVAL = 30
FALLBACK_MAX_ADVANCE_DAYS = 30
MIN_SLOT_INTERVAL = 5


@dataclass
class AppointmentRow:
    appointment: Appointment
    service_name: Optional[str]
    start_local: datetime
    end_local: datetime


@dataclass
class DashboardStats:
    today_count: int = 0
    next_7_days_count: int = 0
    revenue_week: Decimal = Decimal("0.00")
    cancellations_week: int = 0
    open_slots_today: int = 0
    upcoming: list[AppointmentRow] = field(default_factory=list)


@dataclass
class CalendarWindow:
    bookable_start_date: date
    bookable_end_date: date
    min_bookable_start: datetime  # business-local
    slot_interval_minutes: int


def _is_live(appointment: Appointment) -> bool:
    return appointment.status != AppointmentStatus.CANCELLED and appointment.cancelled_utc is None


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.isoweekday() - 1)


def range_bounds(range_name: str, today: date) -> Optional[tuple[date, date]]:
    """Local [first, last) dates for a named range, or None for "all"."""
    name = (range_name or "all").lower()
    if name == "all":
        return None
    if name == "today":
        return today, today + timedelta(days=1)
    if name == "month":
        first = today.replace(day=1)
        next_month = (first + timedelta(days=32)).replace(day=1)
        return first, next_month
    start = week_start(today)
    return start, start + timedelta(days=7)


def filter_rows(
    rows: Sequence[AppointmentRow],
    today: date,
    range_name: str = "all",
    status: str = "all",
    q: Optional[str] = None,
) -> list[AppointmentRow]:
    bounds = range_bounds(range_name, today)
    if bounds is not None:
        first, last = bounds
        rows = [r for r in rows if first <= r.start_local.date() < last]

    if status and status.lower() != "all":
        try:
            wanted = AppointmentStatus(status.lower())
        except ValueError:
            # Unknown status filters are ignored
            wanted = None
        if wanted is not None:
            rows = [r for r in rows if r.appointment.status == wanted]

    if q and q.strip():
        needle = q.strip().lower()
        rows = [
            r for r in rows
            if needle in (r.appointment.customer_name or "").lower()
            or needle in (r.appointment.customer_email or "").lower()
            or needle in (r.service_name or "").lower()
            or needle in (r.appointment.notes or "").lower()
        ]

    return sorted(rows, key=lambda r: r.appointment.start_utc)


def build_stats(rows: Sequence[AppointmentRow], tz: ZoneInfo, now_utc: datetime) -> DashboardStats:
    """Counts and revenue for the owner's week, in business-local days."""
    today = to_local(now_utc, tz).date()
    next_7_end = today + timedelta(days=7)
    monday = week_start(today)
    sunday_end = monday + timedelta(days=7)

    def earned(a: Appointment) -> bool:
        if not _is_live(a) or a.status == AppointmentStatus.NO_SHOW:
            return False
        if a.status == AppointmentStatus.COMPLETED:
            return True
        return a.status == AppointmentStatus.CONFIRMED and a.end_utc <= now_utc

    stats = DashboardStats()
    for row in rows:
        a = row.appointment
        start_day = row.start_local.date()
        if _is_live(a):
            if start_day == today:
                stats.today_count += 1
            if today <= start_day < next_7_end:
                stats.next_7_days_count += 1
        if earned(a) and monday <= start_day < sunday_end:
            stats.revenue_week += Decimal(a.price)
        if not _is_live(a):
            cancelled_day = to_local(a.cancelled_utc or a.created_utc, tz).date()
            if monday <= cancelled_day < sunday_end:
                stats.cancellations_week += 1

    stats.upcoming = [
        r for r in sorted(rows, key=lambda r: r.appointment.start_utc)
        if _is_live(r.appointment) and r.appointment.start_utc >= now_utc
    ][:3]
    return stats


def _round_up(moment: datetime, step_minutes: int) -> datetime:
    minutes = moment.hour * 60 + moment.minute
    remainder = minutes % step_minutes
    rounded = moment.replace(second=0, microsecond=0)
    if remainder or moment.second or moment.microsecond:
        rounded += timedelta(minutes=step_minutes - remainder)
    return rounded


def count_open_slots(
    day: date,
    working_hours: Optional[WorkingHours],
    slot_interval_minutes: int,
    min_start_local: datetime,
    bookings: Sequence[BookedBlock],
    time_off: Sequence[Interval],
) -> int:
    """Slot-interval-sized gaps left on ``day`` after bookings and time off.

    Blocked time is the union of time off and buffered bookings, clipped to
    opening hours. Unlike the slot list this ignores service length.
    """
    if working_hours is None or not working_hours.is_open:
        return 0
    open_at = combine(day, working_hours.open_time)
    close_at = combine(day, working_hours.close_time)

    blocked = [t.clamp(open_at, close_at) for t in time_off if t.overlaps(Interval(open_at, close_at))]
    blocked += [
        b.blocked.clamp(open_at, close_at)
        for b in bookings
        if b.blocked.overlaps(Interval(open_at, close_at))
    ]
    merged = merge_intervals(blocked)

    step = max(MIN_SLOT_INTERVAL, slot_interval_minutes)
    size = timedelta(minutes=step)
    cursor = _round_up(open_at, step)
    count = 0
    while cursor + size <= close_at:
        candidate = Interval(cursor, cursor + size)
        if cursor >= min_start_local and not any(candidate.overlaps(m) for m in merged):
            count += 1
        cursor += size
    return count


def calendar_window(policy: Optional[BookingPolicy], tz: ZoneInfo, now_utc: datetime) -> CalendarWindow:
    """Dates the booking calendar should offer and the earliest bookable instant."""
    now_local = to_local(now_utc, tz)
    today = now_local.date()
    max_days = policy.max_advance_days if policy else FALLBACK_MAX_ADVANCE_DAYS
    notice = policy.advance_notice_minutes if policy else 0
    return CalendarWindow(
        bookable_start_date=today,
        bookable_end_date=today + timedelta(days=max_days + 1),
        min_bookable_start=now_local + timedelta(minutes=notice),
        slot_interval_minutes=policy.slot_interval_minutes if policy else FALLBACK_SLOT_INTERVAL,
    )


# ============================================================================
# LOADERS
# ============================================================================

async def load_rows(db: AsyncSession, business_id: UUID, tz: ZoneInfo, now_utc: datetime) -> list[AppointmentRow]:
    """Every appointment of the business with its service name, reconciled first."""
    result = await db.execute(
        select(Appointment, Service.name)
        .outerjoin(Service, Service.id == Appointment.service_id)
        .where(Appointment.business_id == business_id)
        .order_by(Appointment.start_utc)
    )
    pairs = result.all()
    await reconcile_and_save(db, [a for a, _ in pairs], now_utc)

    return [
        AppointmentRow(
            appointment=a,
            service_name=name,
            start_local=to_local(a.start_utc, tz),
            end_local=to_local(a.end_utc, tz),
        )
        for a, name in pairs
    ]


async def list_appointments(
    db: AsyncSession,
    business_id: UUID,
    now_utc: datetime,
    range_name: str = "all",
    status: str = "all",
    q: Optional[str] = None,
) -> list[AppointmentRow]:
    business = await get_business(db, business_id)
    if business is None:
        raise NotFoundError("Business", business_id)
    tz = resolve_timezone(business.timezone)

    rows = await load_rows(db, business_id, tz, now_utc)
    return filter_rows(rows, to_local(now_utc, tz).date(), range_name, status, q)


async def get_stats(db: AsyncSession, business_id: UUID, now_utc: datetime) -> DashboardStats:
    business = await get_business(db, business_id)
    if business is None:
        raise NotFoundError("Business", business_id)
    tz = resolve_timezone(business.timezone)

    rows = await load_rows(db, business_id, tz, now_utc)
    stats = build_stats(rows, tz, now_utc)

    today = to_local(now_utc, tz).date()
    policy = await get_policy(db, business_id)
    working_hours = await get_working_hours(db, business_id, weekday_of(today))
    if working_hours is not None and working_hours.is_open:
        window = calendar_window(policy, tz, now_utc)
        day_start, day_end = local_day_bounds_utc(today, tz)
        stats.open_slots_today = count_open_slots(
            today,
            working_hours,
            window.slot_interval_minutes,
            window.min_bookable_start,
            await load_blocks_near(
                db, business_id, tz,
                Interval(combine(today, working_hours.open_time), combine(today, working_hours.close_time)),
            ),
            await load_time_off(db, business_id, tz, day_start, day_end),
        )
    return stats


async def get_calendar_window(db: AsyncSession, business_id: UUID, now_utc: datetime) -> CalendarWindow:
    business = await get_business(db, business_id)
    if business is None:
        raise NotFoundError("Business", business_id)
    tz = resolve_timezone(business.timezone)
    return calendar_window(await get_policy(db, business_id), tz, now_utc)
