"""Can this exact range be booked?

Checks run in a fixed order and stop at the first failure:

1. end after start
2. not in the past (one minute of slack for clock/formatting rounding)
3. both ends exist on the wall clock (DST gaps are refused)
4. inside the day's working hours, when the day has an open row
5. no overlap with time off (unbuffered)
6. no overlap between the buffered range and any other buffered booking
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import RejectionCode, ValidationRejection
from app.models.service import Service
from app.models.working_hours import WorkingHours
from app.services.calendar_resolver import (
    BookedBlock,
    get_working_hours,
    load_blocks_near,
    load_time_off,
    weekday_of,
)
from app.services.intervals import (
    Interval,
    combine,
    format_hhmm,
    is_nonexistent_local,
    to_local,
    to_utc,
)

logger = logging.getLogger(__name__)

PAST_SLACK = timedelta(minutes=1)


@dataclass(frozen=True)
class SlotCheck:
    """Outcome of a validation: accepted, or rejected with a reason."""
    accepted: bool
    code: Optional[RejectionCode] = None
    message: Optional[str] = None

    @classmethod
    def accept(cls) -> "SlotCheck":
        return cls(accepted=True)

    @classmethod
    def reject(cls, code: RejectionCode, message: str) -> "SlotCheck":
        return cls(accepted=False, code=code, message=message)

    def raise_for_rejection(self) -> None:
        if not self.accepted:
            raise ValidationRejection(self.code, self.message)


def check_slot(
    start_local: datetime,
    end_local: datetime,
    tz: ZoneInfo,
    now_utc: datetime,
    working_hours: Optional[WorkingHours],
    time_off: Sequence[Interval],
    bookings: Sequence[BookedBlock],
    buffer_before: int = 0,
    buffer_after: int = 0,
    exclude_appointment_id: Optional[UUID] = None,
) -> SlotCheck:
    """Pure validation of a local [start, end) against a snapshot."""
    if end_local <= start_local:
        return SlotCheck.reject(RejectionCode.END_BEFORE_START, "End time must be after start time.")

    now_local = to_local(now_utc, tz)
    if start_local < now_local - PAST_SLACK:
        return SlotCheck.reject(RejectionCode.IN_THE_PAST, "Start time must be in the future.")

    if is_nonexistent_local(start_local, tz) or is_nonexistent_local(end_local, tz):
        return SlotCheck.reject(
            RejectionCode.NONEXISTENT_LOCAL_TIME,
            "This time does not exist on the local clock (daylight saving change).",
        )

    # No row for the weekday means no constraint
    if working_hours is not None and working_hours.is_open:
        open_at = combine(start_local.date(), working_hours.open_time)
        close_at = combine(start_local.date(), working_hours.close_time)
        if start_local < open_at or end_local > close_at:
            return SlotCheck.reject(
                RejectionCode.OUTSIDE_WORKING_HOURS,
                f"Outside working hours ({format_hhmm(open_at)}-{format_hhmm(close_at)}).",
            )

    requested = Interval(start_local, end_local)
    if any(requested.overlaps(t) for t in time_off):
        return SlotCheck.reject(RejectionCode.TIME_OFF, "This time overlaps with time off.")

    padded = requested.padded(buffer_before, buffer_after)
    for booking in bookings:
        if exclude_appointment_id is not None and booking.appointment_id == exclude_appointment_id:
            continue
        if padded.overlaps(booking.blocked):
            return SlotCheck.reject(
                RejectionCode.APPOINTMENT_OVERLAP,
                "This time overlaps with an existing appointment.",
            )

    return SlotCheck.accept()


async def validate_slot(
    db: AsyncSession,
    business_id: UUID,
    tz: ZoneInfo,
    start_local: datetime,
    end_local: datetime,
    service: Service,
    now_utc: datetime,
    exclude_appointment_id: Optional[UUID] = None,
) -> SlotCheck:
    """Load the snapshot around [start_local, end_local) and run ``check_slot``.

    Read-only; committing the booking is the caller's job.
    """
    requested = Interval(start_local, end_local)
    working_hours = await get_working_hours(db, business_id, weekday_of(start_local.date()))

    time_off: list[Interval] = []
    bookings: list[BookedBlock] = []
    if not requested.is_empty:
        time_off = await load_time_off(db, business_id, tz, to_utc(start_local, tz), to_utc(end_local, tz))
        bookings = await load_blocks_near(
            db, business_id, tz, requested.padded(service.buffer_before, service.buffer_after),
            exclude_appointment_id=exclude_appointment_id,
        )

    result = check_slot(
        start_local,
        end_local,
        tz,
        now_utc,
        working_hours,
        time_off,
        bookings,
        buffer_before=service.buffer_before,
        buffer_after=service.buffer_after,
        exclude_appointment_id=exclude_appointment_id,
    )
    if not result.accepted:
        logger.info(
            "Rejected %s-%s for business %s: %s",
            start_local.isoformat(),
            end_local.isoformat(),
            business_id,
            result.code.value,
        )
    return result
