"""Bookable start times for a (business, service, date).

``iter_slots`` is the pure algorithm over an already-resolved snapshot;
``get_available_slots`` loads that snapshot and runs it.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.service import Service
from app.services.calendar_resolver import (
    BookedBlock,
    DayCalendar,
    get_business,
    get_service,
    load_blocks_for_day,
    resolve_day,
)
from app.services.intervals import Interval, is_nonexistent_local, to_local

logger = logging.getLogger(__name__)


def iter_slots(
    calendar: DayCalendar,
    service: Optional[Service],
    bookings: Sequence[BookedBlock],
    now_utc: datetime,
    respect_time_off: bool = False,
) -> Iterator[time]:
    """Yield bookable local start times in ascending order.

    A candidate is dropped when it runs past closing, starts in the past or
    inside the advance-notice window, falls in a DST gap, or its buffered range
    overlaps the buffered range of an existing booking. Time off only blocks a
    candidate when ``respect_time_off`` is set.
    """
    if service is None or not service.is_active:
        return
    window = calendar.open_window
    policy = calendar.policy
    if window is None or policy is None:
        return

    duration = timedelta(minutes=service.duration_minutes)
    step = timedelta(minutes=policy.slot_interval_minutes)
    now_local = to_local(now_utc, calendar.tz)
    earliest = now_local + timedelta(minutes=policy.advance_notice_minutes)
    blocked = [b.blocked for b in bookings]

    cur = window.start
    while cur + duration <= window.end:
        candidate = Interval(cur, cur + duration)
        padded = candidate.padded(service.buffer_before, service.buffer_after)

        if (
            cur >= now_local
            and cur >= earliest
            and not is_nonexistent_local(cur, calendar.tz)
            and not any(padded.overlaps(b) for b in blocked)
            and not (respect_time_off and any(candidate.overlaps(t) for t in calendar.time_off))
        ):
            yield cur.time()

        cur += step


def generate_slots(
    calendar: DayCalendar,
    service: Optional[Service],
    bookings: Sequence[BookedBlock],
    now_utc: datetime,
    respect_time_off: bool = False,
) -> list[time]:
    return list(iter_slots(calendar, service, bookings, now_utc, respect_time_off))


async def get_available_slots(
    db: AsyncSession,
    business_id: UUID,
    service_id: UUID,
    day: date,
    now_utc: datetime,
) -> list[time]:
    """Open start times for a service on a local date. Empty when anything is missing."""
    business = await get_business(db, business_id)
    if business is None:
        return []

    service = await get_service(db, business_id, service_id)
    if service is None or not service.is_active:
        return []

    calendar = await resolve_day(db, business, day)
    if calendar.open_window is None or calendar.policy is None:
        logger.debug("No availability for business %s on %s", business_id, day)
        return []

    bookings = await load_blocks_for_day(db, business_id, calendar.tz, day)
    return generate_slots(
        calendar,
        service,
        bookings,
        now_utc,
        respect_time_off=settings.SLOTS_RESPECT_TIME_OFF,
    )
