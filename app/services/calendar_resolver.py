"""Policy & calendar resolution for one business on one local date.

Loads the rows the slot generator and conflict validator work from, using one
explicit query per concern. Missing policy or working hours are reported as
"no availability" by the callers, never raised here.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import Appointment, AppointmentStatus
from app.models.booking_policy import BookingPolicy
from app.models.business import Business
from app.models.service import Service
from app.models.time_off import TimeOff
from app.models.working_hours import WorkingHours
from app.services.intervals import (
    Interval,
    combine,
    local_day_bounds_utc,
    resolve_timezone,
    to_local,
    to_utc,
)

logger = logging.getLogger(__name__)

# Widest buffer a service may declare, in minutes
MAX_BUFFER_MINUTES = 24 * 60


@dataclass(frozen=True)
class BookedBlock:
    """An existing, non-cancelled appointment in business-local time."""
    appointment_id: UUID
    window: Interval
    buffer_before: int = 0
    buffer_after: int = 0

    @property
    def blocked(self) -> Interval:
        """The appointment padded by its own service's buffers."""
        return self.window.padded(self.buffer_before, self.buffer_after)


@dataclass
class DayCalendar:
    """Everything that constrains bookings for one business on one local date."""
    business_id: UUID
    tz: ZoneInfo
    day: date
    working_hours: Optional[WorkingHours] = None
    policy: Optional[BookingPolicy] = None
    time_off: list[Interval] = field(default_factory=list)

    @property
    def open_window(self) -> Optional[Interval]:
        """Local [open, close) for the day, or None when closed or incomplete."""
        wh = self.working_hours
        if wh is None or not wh.is_open:
            return None
        return Interval(combine(self.day, wh.open_time), combine(self.day, wh.close_time))


def weekday_of(day: date) -> int:
    """ISO weekday, Monday=1 .. Sunday=7."""
    return day.isoweekday()


async def get_business(db: AsyncSession, business_id: UUID) -> Optional[Business]:
    result = await db.execute(select(Business).where(Business.id == business_id))
    return result.scalar_one_or_none()


async def get_service(db: AsyncSession, business_id: UUID, service_id: UUID) -> Optional[Service]:
    result = await db.execute(
        select(Service).where(Service.id == service_id, Service.business_id == business_id)
    )
    return result.scalar_one_or_none()


async def get_policy(db: AsyncSession, business_id: UUID) -> Optional[BookingPolicy]:
    result = await db.execute(select(BookingPolicy).where(BookingPolicy.business_id == business_id))
    return result.scalar_one_or_none()


async def get_working_hours(db: AsyncSession, business_id: UUID, weekday: int) -> Optional[WorkingHours]:
    result = await db.execute(
        select(WorkingHours).where(
            WorkingHours.business_id == business_id,
            WorkingHours.weekday == weekday,
        )
    )
    return result.scalar_one_or_none()


async def load_time_off(
    db: AsyncSession,
    business_id: UUID,
    tz: ZoneInfo,
    start_utc: datetime,
    end_utc: datetime,
) -> list[Interval]:
    """Time off intersecting [start_utc, end_utc), as local intervals."""
    result = await db.execute(
        select(TimeOff.start_utc, TimeOff.end_utc)
        .where(
            TimeOff.business_id == business_id,
            TimeOff.start_utc < end_utc,
            TimeOff.end_utc > start_utc,
        )
        .order_by(TimeOff.start_utc)
    )
    return [Interval(to_local(s, tz), to_local(e, tz)) for s, e in result.all()]


async def load_booked_blocks(
    db: AsyncSession,
    business_id: UUID,
    tz: ZoneInfo,
    start_utc: datetime,
    end_utc: datetime,
    exclude_appointment_id: Optional[UUID] = None,
) -> list[BookedBlock]:
    """Non-cancelled appointments starting in [start_utc, end_utc).

    Each is paired with its service's buffers; a deleted service counts as
    zero buffers.
    """
    query = (
        select(
            Appointment.id,
            Appointment.start_utc,
            Appointment.end_utc,
            Service.buffer_before,
            Service.buffer_after,
        )
        .outerjoin(Service, Service.id == Appointment.service_id)
        .where(
            and_(
                Appointment.business_id == business_id,
                Appointment.status != AppointmentStatus.CANCELLED,
                Appointment.cancelled_utc.is_(None),
                Appointment.start_utc >= start_utc,
                Appointment.start_utc < end_utc,
            )
        )
        .order_by(Appointment.start_utc)
    )
    if exclude_appointment_id is not None:
        query = query.where(Appointment.id != exclude_appointment_id)

    result = await db.execute(query)
    return [
        BookedBlock(
            appointment_id=appt_id,
            window=Interval(to_local(s, tz), to_local(e, tz)),
            buffer_before=before or 0,
            buffer_after=after or 0,
        )
        for appt_id, s, e, before, after in result.all()
    ]


async def load_blocks_for_day(db: AsyncSession, business_id: UUID, tz: ZoneInfo, day: date) -> list[BookedBlock]:
    """Bookings whose local start date is ``day``."""
    start_utc, end_utc = local_day_bounds_utc(day, tz)
    return await load_booked_blocks(db, business_id, tz, start_utc, end_utc)


async def load_blocks_near(
    db: AsyncSession,
    business_id: UUID,
    tz: ZoneInfo,
    window: Interval,
    exclude_appointment_id: Optional[UUID] = None,
) -> list[BookedBlock]:
    """Every booking whose buffered range could reach the local ``window``.

    Appointments are at most a day long and buffers at most a day wide, so
    widening the query by that much on each side never misses a collision.
    """
    reach = timedelta(minutes=2 * MAX_BUFFER_MINUTES)
    start_utc = to_utc(window.start, tz) - reach
    end_utc = to_utc(window.end, tz) + reach
    return await load_booked_blocks(db, business_id, tz, start_utc, end_utc, exclude_appointment_id)


async def resolve_day(db: AsyncSession, business: Business, day: date) -> DayCalendar:
    """Working hours, policy and time off for ``business`` on local ``day``."""
    tz = resolve_timezone(business.timezone)
    start_utc, end_utc = local_day_bounds_utc(day, tz)

    return DayCalendar(
        business_id=business.id,
        tz=tz,
        day=day,
        working_hours=await get_working_hours(db, business.id, weekday_of(day)),
        policy=await get_policy(db, business.id),
        time_off=await load_time_off(db, business.id, tz, start_utc, end_utc),
    )


def booking_horizon(policy: BookingPolicy, tz: ZoneInfo, now_utc: datetime) -> tuple[date, date]:
    """First and last local dates a customer may book."""
    today = to_local(now_utc, tz).date()
    return today, today + timedelta(days=policy.max_advance_days)


def is_within_horizon(policy: BookingPolicy, tz: ZoneInfo, day: date, now_utc: datetime) -> bool:
    first, last = booking_horizon(policy, tz, now_utc)
    return first <= day <= last
