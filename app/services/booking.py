"""Committing bookings without double-booking.

Validating and inserting are separate statements, so two requests for the
same business could both pass validation against the same snapshot. Every
commit path here therefore:

1. locks the owning ``businesses`` row (``SELECT ... FOR UPDATE``), which
   serialises writers for that business,
2. reloads the calendar and re-runs the full check inside that transaction,
3. inserts / updates and commits, releasing the lock.

A competing writer that still trips a constraint or deadlock surfaces as
``ConcurrencyConflict`` (retryable), never as a validation error.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConcurrencyConflict, NotFoundError, RejectionCode, ValidationRejection
from app.models.appointment import Appointment, AppointmentOrigin, AppointmentStatus
from app.models.business import Business
from app.models.service import Service
from app.services import appointment_lifecycle as lifecycle
from app.services.calendar_resolver import (
    get_policy,
    get_service,
    is_within_horizon,
    load_blocks_for_day,
    load_blocks_near,
    resolve_day,
)
from app.services.conflict_validator import validate_slot
from app.services.intervals import (
    Interval,
    combine,
    format_hhmm,
    is_nonexistent_local,
    resolve_timezone,
    to_local,
    to_utc,
)
from app.services.slot_generator import generate_slots

logger = logging.getLogger(__name__)

# Postgres SQLSTATEs for lost races: deadlock, serialization failure, lock not available
CONTENTION_SQLSTATES = {"40P01", "40001", "55P03"}

# Fields an owner edit may change, grouped by what they affect
SCHEDULE_FIELDS = ("service_id", "start_local", "duration_minutes", "price")
CUSTOMER_FIELDS = ("customer_name", "customer_email", "customer_phone")


def new_token() -> str:
    return secrets.token_urlsafe(settings.CONFIRMATION_TOKEN_BYTES)


def _is_contention_error(exc: OperationalError) -> bool:
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in CONTENTION_SQLSTATES:
        return True
    message = str(exc).lower()
    return "deadlock detected" in message or "database is locked" in message


async def lock_business(db: AsyncSession, business_id: UUID) -> Business:
    """Take the per-business write lock for the rest of this transaction.

    On SQLite the lock is the database-wide one taken by ``BEGIN IMMEDIATE``
    (see ``app.core.database.use_immediate_transactions``).
    """
    try:
        result = await db.execute(
            select(Business).where(Business.id == business_id).with_for_update()
        )
    except OperationalError as exc:
        await db.rollback()
        if _is_contention_error(exc):
            logger.warning("Timed out waiting for the lock on business %s: %s", business_id, exc.orig)
            raise ConcurrencyConflict() from exc
        raise
    business = result.scalar_one_or_none()
    if business is None:
        raise NotFoundError("Business", business_id)
    return business


async def commit_booking(db: AsyncSession) -> None:
    """Commit, translating a lost race into ConcurrencyConflict."""
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("Booking commit lost a race: %s", exc.orig)
        raise ConcurrencyConflict() from exc
    except OperationalError as exc:
        await db.rollback()
        if _is_contention_error(exc):
            logger.warning("Booking commit hit lock contention: %s", exc.orig)
            raise ConcurrencyConflict() from exc
        raise


async def _bookable_service(db: AsyncSession, business_id: UUID, service_id: UUID) -> Service:
    service = await get_service(db, business_id, service_id)
    if service is None or not service.is_active:
        raise NotFoundError("Service", service_id)
    return service


# ============================================================================
# CUSTOMER SELF-SERVICE
# ============================================================================

async def book_for_customer(
    db: AsyncSession,
    business_id: UUID,
    service_id: UUID,
    day: date,
    start_time: time,
    customer_name: str,
    customer_email: str,
    now_utc: datetime,
    customer_phone: Optional[str] = None,
    notes: Optional[str] = None,
) -> Appointment:
    """Create a Pending booking awaiting email confirmation.

    The requested time must be one of the slots the customer could have been
    shown at this instant, so both paths apply exactly the same rules.
    """
    business = await lock_business(db, business_id)
    service = await _bookable_service(db, business_id, service_id)
    tz = resolve_timezone(business.timezone)

    policy = await get_policy(db, business_id)
    if policy is None:
        raise NotFoundError("Booking policy", business_id)
    if not is_within_horizon(policy, tz, day, now_utc):
        raise ValidationRejection(
            RejectionCode.BEYOND_BOOKING_HORIZON,
            f"Bookings are accepted up to {policy.max_advance_days} days in advance.",
        )

    start_time = start_time.replace(tzinfo=None, second=0, microsecond=0)
    start_local = combine(day, start_time)
    if is_nonexistent_local(start_local, tz):
        raise ValidationRejection(
            RejectionCode.NONEXISTENT_LOCAL_TIME,
            "This time does not exist on the local clock (daylight saving change).",
        )

    start_utc = to_utc(start_local, tz)
    if start_utc < now_utc:
        raise ValidationRejection(RejectionCode.IN_THE_PAST, "Start time must be in the future.")
    if start_utc < now_utc + timedelta(minutes=policy.advance_notice_minutes):
        raise ValidationRejection(
            RejectionCode.ADVANCE_NOTICE,
            f"Bookings need at least {policy.advance_notice_minutes} minutes' notice.",
        )

    calendar = await resolve_day(db, business, day)
    bookings = await load_blocks_for_day(db, business_id, tz, day)
    slots = generate_slots(calendar, service, bookings, now_utc, respect_time_off=settings.SLOTS_RESPECT_TIME_OFF)
    if start_time not in slots:
        raise ValidationRejection(
            RejectionCode.SLOT_UNAVAILABLE,
            f"Time slot {format_hhmm(start_time)} is not available.",
        )

    end_utc = start_utc + timedelta(minutes=service.duration_minutes)

    # Slot lists only see bookings starting on the same local day; a buffer
    # can still reach across midnight.
    padded = Interval(start_local, to_local(end_utc, tz)).padded(service.buffer_before, service.buffer_after)
    neighbours = await load_blocks_near(db, business_id, tz, padded)
    if any(padded.overlaps(b.blocked) for b in neighbours):
        raise ValidationRejection(
            RejectionCode.SLOT_UNAVAILABLE,
            f"Time slot {format_hhmm(start_time)} is not available.",
        )

    appointment = Appointment(
        business_id=business_id,
        service_id=service.id,
        customer_name=customer_name.strip(),
        customer_email=customer_email.strip(),
        customer_phone=(customer_phone or "").strip() or None,
        start_utc=start_utc,
        end_utc=end_utc,
        duration_minutes=service.duration_minutes,
        price=service.price,
        notes=(notes or "").strip() or None,
        status=AppointmentStatus.PENDING,
        origin=AppointmentOrigin.CUSTOMER,
        confirmation_token=new_token(),
    )
    db.add(appointment)
    await commit_booking(db)
    await db.refresh(appointment)

    logger.info("Customer booking %s created for business %s at %s", appointment.id, business_id, start_local)
    return appointment


# ============================================================================
# OWNER
# ============================================================================

async def book_for_owner(
    db: AsyncSession,
    business_id: UUID,
    service_id: UUID,
    start_local: datetime,
    customer_name: str,
    customer_email: str,
    now_utc: datetime,
    customer_phone: Optional[str] = None,
    duration_minutes: Optional[int] = None,
    price: Optional[Decimal] = None,
    notes: Optional[str] = None,
) -> Appointment:
    """Create a Confirmed booking directly (no confirmation step)."""
    business = await lock_business(db, business_id)
    service = await _bookable_service(db, business_id, service_id)
    tz = resolve_timezone(business.timezone)

    duration = duration_minutes or service.duration_minutes
    start_local = start_local.replace(tzinfo=None, second=0, microsecond=0)
    start_utc = to_utc(start_local, tz)
    end_utc = start_utc + timedelta(minutes=duration)

    check = await validate_slot(db, business_id, tz, start_local, to_local(end_utc, tz), service, now_utc)
    check.raise_for_rejection()

    appointment = Appointment(
        business_id=business_id,
        service_id=service.id,
        customer_name=customer_name.strip(),
        customer_email=customer_email.strip(),
        customer_phone=(customer_phone or "").strip() or None,
        start_utc=start_utc,
        end_utc=end_utc,
        duration_minutes=duration,
        price=price if price is not None else service.price,
        notes=(notes or "").strip() or None,
        status=AppointmentStatus.CONFIRMED,
        origin=AppointmentOrigin.OWNER,
        # No confirmation step; the token only backs the customer's cancel link
        consumed_token=new_token(),
    )
    db.add(appointment)
    await commit_booking(db)
    await db.refresh(appointment)

    logger.info("Owner booking %s created for business %s at %s", appointment.id, business_id, start_local)
    return appointment


@dataclass
class EditResult:
    appointment: Appointment
    previous_start_utc: datetime
    previous_end_utc: datetime
    previous_price: Decimal
    schedule_changed: bool = False
    cancelled: bool = False


def _changed_fields(appointment: Appointment, changes: dict[str, Any], tz) -> tuple[bool, bool]:
    """Whether ``changes`` really alters the schedule / the customer details."""
    current = {
        "service_id": appointment.service_id,
        "start_local": to_local(appointment.start_utc, tz),
        "duration_minutes": appointment.duration_minutes,
        "price": appointment.price,
        "customer_name": appointment.customer_name,
        "customer_email": appointment.customer_email,
        "customer_phone": appointment.customer_phone,
    }
    touches_schedule = any(
        f in changes and changes[f] is not None and changes[f] != current[f] for f in SCHEDULE_FIELDS
    )
    touches_customer = any(f in changes and changes[f] != current[f] for f in CUSTOMER_FIELDS)
    return touches_schedule, touches_customer


async def update_by_owner(
    db: AsyncSession,
    business_id: UUID,
    appointment_id: UUID,
    status: AppointmentStatus,
    changes: dict[str, Any],
    now_utc: datetime,
) -> EditResult:
    """Apply an owner edit.

    ``changes`` holds only the fields the owner sent (``start_local``,
    ``service_id``, ``duration_minutes``, ``price``, customer details,
    ``notes``). A reschedule is re-validated against every other booking
    under the business lock.
    """
    # Reconciled and persisted before anything else looks at it
    appointment = await lifecycle.get_appointment(db, appointment_id, now_utc, business_id)

    business = await lock_business(db, business_id)
    await db.refresh(appointment)
    lifecycle.auto_complete([appointment], now_utc)

    tz = resolve_timezone(business.timezone)
    if changes.get("start_local") is not None:
        changes["start_local"] = changes["start_local"].replace(tzinfo=None, second=0, microsecond=0)
    touches_schedule, touches_customer = _changed_fields(appointment, changes, tz)
    plan = lifecycle.plan_owner_edit(appointment, status, touches_schedule, touches_customer)

    result = EditResult(
        appointment=appointment,
        previous_start_utc=appointment.start_utc,
        previous_end_utc=appointment.end_utc,
        previous_price=appointment.price,
    )

    if "notes" in changes:
        appointment.notes = (changes["notes"] or "").strip() or None

    if plan.cancels:
        lifecycle.apply_cancel(appointment, now_utc, reason="Cancelled by owner")
        result.cancelled = True
    elif appointment.status == AppointmentStatus.PENDING:
        lifecycle.apply_confirm(appointment)

    if not appointment.is_customer_booking and not plan.cancels:
        for field in CUSTOMER_FIELDS:
            if field in changes:
                value = (changes[field] or "").strip() or None
                if field != "customer_phone" and value is None:
                    continue
                setattr(appointment, field, value)

    if plan.reschedule:
        service_id = changes.get("service_id") or appointment.service_id
        if service_id is None:
            raise NotFoundError("Service")
        service = await get_service(db, business_id, service_id)
        if service is None:
            raise NotFoundError("Service", service_id)
        service_changed = service.id != appointment.service_id

        start_local = changes.get("start_local") or to_local(appointment.start_utc, tz)
        duration = changes.get("duration_minutes") or (
            service.duration_minutes if service_changed else appointment.duration_minutes
        )
        if changes.get("price") is not None:
            price = changes["price"]
        else:
            price = service.price if service_changed else appointment.price

        start_utc = to_utc(start_local, tz)
        end_utc = start_utc + timedelta(minutes=duration)
        check = await validate_slot(
            db, business_id, tz, start_local, to_local(end_utc, tz), service, now_utc,
            exclude_appointment_id=appointment.id,
        )
        check.raise_for_rejection()

        appointment.service_id = service.id
        appointment.start_utc = start_utc
        appointment.end_utc = end_utc
        appointment.duration_minutes = duration
        appointment.price = price

        result.schedule_changed = (
            start_utc != result.previous_start_utc
            or end_utc != result.previous_end_utc
            or Decimal(price) != Decimal(result.previous_price)
            or service_changed
        )

    await commit_booking(db)
    await db.refresh(appointment)
    logger.info("Appointment %s updated by owner (status=%s)", appointment.id, appointment.status.value)
    return result
