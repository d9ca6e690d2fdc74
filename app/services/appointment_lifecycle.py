"""Appointment status state machine.

    Pending -> Confirmed -> Completed -> NoShow
    Pending | Confirmed -> Cancelled

Completed is never set by hand: ``reconcile`` derives it from the clock, and
every path that loads appointments for display or mutation runs it first and
persists the result before doing anything else.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    LifecycleError,
    NotFoundError,
    RejectionCode,
    TransitionCode,
    ValidationRejection,
)
from app.models.appointment import Appointment, AppointmentStatus
from app.models.booking_policy import BookingPolicy
from app.services.calendar_resolver import get_policy

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
# Statuses an owner may pick in the edit form
OWNER_SETTABLE_STATUSES = (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED)


# ============================================================================
# PURE TRANSITIONS
# ============================================================================

def reconcile(appointment: Appointment, now_utc: datetime) -> Optional[AppointmentStatus]:
    """Status the appointment should have at ``now_utc``, or None if unchanged.

    Only a Confirmed appointment whose end has passed moves (to Completed).
    Calling it again on the result is a no-op.
    """
    if appointment.status == AppointmentStatus.CONFIRMED and appointment.end_utc <= now_utc:
        return AppointmentStatus.COMPLETED
    return None


def auto_complete(appointments: Iterable[Appointment], now_utc: datetime) -> list[Appointment]:
    """Apply ``reconcile`` in place; returns the appointments that changed."""
    changed = []
    for appointment in appointments:
        new_status = reconcile(appointment, now_utc)
        if new_status is not None:
            appointment.status = new_status
            changed.append(appointment)
    if changed:
        logger.info("Auto-completed %d appointment(s)", len(changed))
    return changed


def apply_confirm(appointment: Appointment) -> None:
    """Pending -> Confirmed, consuming the confirmation token."""
    if appointment.status == AppointmentStatus.CANCELLED:
        raise LifecycleError(TransitionCode.ALREADY_CANCELLED, "This appointment was cancelled.")
    if appointment.status != AppointmentStatus.PENDING:
        raise LifecycleError(TransitionCode.INVALID_STATUS, "Only pending appointments can be confirmed.")

    appointment.status = AppointmentStatus.CONFIRMED
    if appointment.confirmation_token:
        appointment.consumed_token = appointment.confirmation_token
        appointment.confirmation_token = None


def apply_cancel(appointment: Appointment, now_utc: datetime, reason: Optional[str] = None) -> None:
    """Pending | Confirmed -> Cancelled. Irreversible."""
    if appointment.status == AppointmentStatus.CANCELLED:
        raise LifecycleError(TransitionCode.ALREADY_CANCELLED, "Appointment already cancelled.")
    if appointment.status not in EDITABLE_STATUSES:
        raise LifecycleError(
            TransitionCode.LOCKED,
            "Only pending or confirmed appointments can be cancelled.",
        )

    appointment.status = AppointmentStatus.CANCELLED
    appointment.cancelled_utc = now_utc
    appointment.cancellation_reason = reason
    # A pending link must not confirm a cancelled booking, but still resolves
    if appointment.confirmation_token:
        appointment.consumed_token = appointment.confirmation_token
        appointment.confirmation_token = None


def check_cancellation_window(appointment: Appointment, policy: Optional[BookingPolicy], now_utc: datetime) -> None:
    """Customers may not cancel closer to the start than the policy allows."""
    if policy is None or policy.cancellation_window_minutes <= 0:
        return
    deadline = appointment.start_utc - timedelta(minutes=policy.cancellation_window_minutes)
    if now_utc > deadline:
        raise ValidationRejection(
            RejectionCode.CANCELLATION_WINDOW,
            f"Appointments can only be cancelled at least {policy.cancellation_window_minutes} minutes in advance.",
        )


def apply_no_show(appointment: Appointment, now_utc: datetime) -> None:
    """Completed -> NoShow. Each refusal carries its own code."""
    if appointment.status == AppointmentStatus.CANCELLED:
        raise LifecycleError(
            TransitionCode.NO_SHOW_FROM_CANCELLED,
            "Cancelled appointments cannot be marked as No-Show.",
        )
    if appointment.status == AppointmentStatus.PENDING:
        raise LifecycleError(
            TransitionCode.NO_SHOW_FROM_PENDING,
            "Pending appointments cannot be marked as No-Show.",
        )
    if appointment.status == AppointmentStatus.NO_SHOW:
        raise LifecycleError(TransitionCode.ALREADY_NO_SHOW, "Appointment is already marked as No-Show.")
    if appointment.status != AppointmentStatus.COMPLETED or appointment.end_utc > now_utc:
        raise LifecycleError(
            TransitionCode.NOT_ENDED,
            "You can only mark No-Show after the appointment has ended.",
        )

    appointment.status = AppointmentStatus.NO_SHOW


def ensure_deletable(appointment: Appointment, now_utc: datetime) -> None:
    if appointment.status not in EDITABLE_STATUSES:
        raise LifecycleError(TransitionCode.LOCKED, "This appointment is locked and cannot be deleted.")
    if appointment.start_utc <= now_utc:
        raise LifecycleError(TransitionCode.DELETE_STARTED, "Appointments that have started cannot be deleted.")


@dataclass(frozen=True)
class OwnerEditPlan:
    """What an owner edit is allowed to touch."""
    status: AppointmentStatus
    reschedule: bool

    @property
    def cancels(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED


def plan_owner_edit(
    appointment: Appointment,
    requested_status: AppointmentStatus,
    touches_schedule: bool,
    touches_customer: bool = False,
) -> OwnerEditPlan:
    """Decide whether an owner edit may proceed and whether it reschedules.

    ``touches_schedule`` is True when the edit changes the time, service,
    duration or price; ``touches_customer`` when it changes the customer's
    contact details. Customer bookings only accept Confirm/Cancel (plus
    notes); the owner may not move, reprice or rewrite them.
    """
    if appointment.status not in EDITABLE_STATUSES:
        raise LifecycleError(TransitionCode.LOCKED, "This appointment is locked and cannot be edited.")
    if requested_status not in OWNER_SETTABLE_STATUSES:
        raise LifecycleError(TransitionCode.INVALID_STATUS, "You cannot set Pending or Completed manually.")

    if appointment.is_customer_booking:
        if touches_schedule or touches_customer:
            raise LifecycleError(
                TransitionCode.CUSTOMER_BOOKING_RESTRICTED,
                "This appointment was booked by a customer. Only its status and notes can be changed.",
            )
        return OwnerEditPlan(status=requested_status, reschedule=False)

    return OwnerEditPlan(
        status=requested_status,
        reschedule=touches_schedule and requested_status != AppointmentStatus.CANCELLED,
    )


# ============================================================================
# PERSISTED OPERATIONS
# ============================================================================

async def reconcile_and_save(db: AsyncSession, appointments: Iterable[Appointment], now_utc: datetime) -> list[Appointment]:
    """Run ``auto_complete`` and commit when anything moved."""
    changed = auto_complete(appointments, now_utc)
    if changed:
        await db.commit()
    return changed


async def get_appointment(
    db: AsyncSession,
    appointment_id: UUID,
    now_utc: datetime,
    business_id: Optional[UUID] = None,
) -> Appointment:
    """Load one appointment, reconciled and persisted, or raise NotFoundError."""
    query = select(Appointment).where(Appointment.id == appointment_id)
    if business_id is not None:
        query = query.where(Appointment.business_id == business_id)
    result = await db.execute(query)
    appointment = result.scalar_one_or_none()
    if appointment is None:
        raise NotFoundError("Appointment", appointment_id)

    await reconcile_and_save(db, [appointment], now_utc)
    return appointment


async def get_by_token(db: AsyncSession, token: str, now_utc: datetime) -> Appointment:
    """Appointment holding ``token`` as a live or consumed link token."""
    result = await db.execute(
        select(Appointment).where(
            or_(Appointment.confirmation_token == token, Appointment.consumed_token == token)
        )
    )
    appointment = result.scalar_one_or_none()
    if appointment is None:
        raise LifecycleError(TransitionCode.INVALID_TOKEN, "This link is invalid or has expired.")

    await reconcile_and_save(db, [appointment], now_utc)
    return appointment


@dataclass
class ConfirmOutcome:
    appointment: Appointment
    already_confirmed: bool = False


async def confirm_by_token(db: AsyncSession, token: str, now_utc: datetime) -> ConfirmOutcome:
    """Consume a customer confirmation token.

    Reusing a consumed token is not an error: the booking stays as it is and
    the caller is told it was already confirmed.
    """
    appointment = await get_by_token(db, token, now_utc)

    if appointment.status == AppointmentStatus.CANCELLED:
        raise LifecycleError(TransitionCode.ALREADY_CANCELLED, "This appointment was cancelled.")
    if appointment.confirmation_token != token:
        logger.info("Confirmation token reused for appointment %s", appointment.id)
        return ConfirmOutcome(appointment=appointment, already_confirmed=True)

    apply_confirm(appointment)
    await db.commit()
    logger.info("Appointment %s confirmed by customer", appointment.id)
    return ConfirmOutcome(appointment=appointment)


async def cancel(
    db: AsyncSession,
    appointment_id: UUID,
    now_utc: datetime,
    business_id: Optional[UUID] = None,
    reason: Optional[str] = None,
) -> Appointment:
    """Owner cancellation."""
    appointment = await get_appointment(db, appointment_id, now_utc, business_id)
    apply_cancel(appointment, now_utc, reason)
    await db.commit()
    logger.info("Appointment %s cancelled by owner", appointment.id)
    return appointment


async def cancel_by_token(db: AsyncSession, token: str, now_utc: datetime) -> Appointment:
    """Customer cancellation through an emailed link; honours the cancellation window."""
    appointment = await get_by_token(db, token, now_utc)
    if appointment.status == AppointmentStatus.CANCELLED:
        raise LifecycleError(TransitionCode.ALREADY_CANCELLED, "Appointment already cancelled.")

    policy = await get_policy(db, appointment.business_id)
    check_cancellation_window(appointment, policy, now_utc)

    apply_cancel(appointment, now_utc, reason="Cancelled by customer")
    await db.commit()
    logger.info("Appointment %s cancelled by customer", appointment.id)
    return appointment


async def mark_no_show(
    db: AsyncSession,
    appointment_id: UUID,
    now_utc: datetime,
    business_id: Optional[UUID] = None,
) -> Appointment:
    appointment = await get_appointment(db, appointment_id, now_utc, business_id)
    apply_no_show(appointment, now_utc)
    await db.commit()
    logger.info("Appointment %s marked as no-show", appointment.id)
    return appointment


async def delete(
    db: AsyncSession,
    appointment_id: UUID,
    now_utc: datetime,
    business_id: Optional[UUID] = None,
) -> Appointment:
    """Hard delete. Returns the (now detached) row so the caller can notify the customer."""
    appointment = await get_appointment(db, appointment_id, now_utc, business_id)
    ensure_deletable(appointment, now_utc)

    await db.delete(appointment)
    await db.commit()
    logger.info("Appointment %s deleted", appointment_id)
    return appointment
