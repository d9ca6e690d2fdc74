"""Tests for the appointment status state machine."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import LifecycleError, RejectionCode, TransitionCode, ValidationRejection
from app.models.appointment import Appointment, AppointmentOrigin, AppointmentStatus
from app.models.booking_policy import BookingPolicy
from app.services.appointment_lifecycle import (
    apply_cancel,
    apply_confirm,
    apply_no_show,
    auto_complete,
    check_cancellation_window,
    ensure_deletable,
    plan_owner_edit,
    reconcile,
)

NOW = datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc)


def make_appointment(
    status=AppointmentStatus.CONFIRMED,
    starts_in=timedelta(hours=2),
    minutes=60,
    origin=AppointmentOrigin.OWNER,
    token=None,
):
    start = NOW + starts_in
    return Appointment(
        customer_name="Jane Doe",
        customer_email="jane@example.com",
        start_utc=start,
        end_utc=start + timedelta(minutes=minutes),
        duration_minutes=minutes,
        price=40,
        status=status,
        origin=origin,
        confirmation_token=token,
    )


# ============================================================================
# AUTO-COMPLETION
# ============================================================================

def test_ended_confirmed_appointment_completes():
    appt = make_appointment(starts_in=timedelta(hours=-2))
    assert reconcile(appt, NOW) == AppointmentStatus.COMPLETED


def test_appointment_ending_exactly_now_completes():
    appt = make_appointment(starts_in=timedelta(minutes=-60))
    assert reconcile(appt, NOW) == AppointmentStatus.COMPLETED


def test_pending_and_future_appointments_do_not_move():
    assert reconcile(make_appointment(AppointmentStatus.PENDING, starts_in=timedelta(hours=-2)), NOW) is None
    assert reconcile(make_appointment(starts_in=timedelta(hours=2)), NOW) is None


def test_auto_complete_is_idempotent():
    ended = make_appointment(starts_in=timedelta(hours=-3))
    upcoming = make_appointment()

    changed = auto_complete([ended, upcoming], NOW)
    assert changed == [ended]
    assert ended.status == AppointmentStatus.COMPLETED
    assert upcoming.status == AppointmentStatus.CONFIRMED

    assert auto_complete([ended, upcoming], NOW) == []


# ============================================================================
# CONFIRM / CANCEL
# ============================================================================

def test_confirm_consumes_token():
    appt = make_appointment(AppointmentStatus.PENDING, origin=AppointmentOrigin.CUSTOMER, token="tok-1")
    apply_confirm(appt)
    assert appt.status == AppointmentStatus.CONFIRMED
    assert appt.confirmation_token is None
    assert appt.consumed_token == "tok-1"
    assert appt.manage_token == "tok-1"


def test_confirm_refuses_cancelled_and_confirmed():
    with pytest.raises(LifecycleError) as exc_info:
        apply_confirm(make_appointment(AppointmentStatus.CANCELLED))
    assert exc_info.value.code == TransitionCode.ALREADY_CANCELLED

    with pytest.raises(LifecycleError) as exc_info:
        apply_confirm(make_appointment(AppointmentStatus.CONFIRMED))
    assert exc_info.value.code == TransitionCode.INVALID_STATUS


def test_cancel_records_time_and_reason():
    appt = make_appointment(AppointmentStatus.PENDING, token="tok-2")
    apply_cancel(appt, NOW, reason="Sick")
    assert appt.status == AppointmentStatus.CANCELLED
    assert appt.cancelled_utc == NOW
    assert appt.cancellation_reason == "Sick"
    assert appt.confirmation_token is None
    assert appt.consumed_token == "tok-2"


def test_cancel_is_irreversible():
    appt = make_appointment()
    apply_cancel(appt, NOW)
    with pytest.raises(LifecycleError) as exc_info:
        apply_cancel(appt, NOW)
    assert exc_info.value.code == TransitionCode.ALREADY_CANCELLED


def test_cancel_refuses_completed():
    with pytest.raises(LifecycleError) as exc_info:
        apply_cancel(make_appointment(AppointmentStatus.COMPLETED), NOW)
    assert exc_info.value.code == TransitionCode.LOCKED


def test_cancellation_window():
    policy = BookingPolicy(cancellation_window_minutes=180)
    with pytest.raises(ValidationRejection) as exc_info:
        check_cancellation_window(make_appointment(starts_in=timedelta(hours=2)), policy, NOW)
    assert exc_info.value.code == RejectionCode.CANCELLATION_WINDOW

    check_cancellation_window(make_appointment(starts_in=timedelta(hours=4)), policy, NOW)
    check_cancellation_window(make_appointment(starts_in=timedelta(minutes=5)), None, NOW)


# ============================================================================
# NO-SHOW
# ============================================================================

def test_no_show_after_completion():
    appt = make_appointment(AppointmentStatus.COMPLETED, starts_in=timedelta(hours=-2))
    apply_no_show(appt, NOW)
    assert appt.status == AppointmentStatus.NO_SHOW


@pytest.mark.parametrize("status, starts_in, code", [
    (AppointmentStatus.CANCELLED, timedelta(hours=-2), TransitionCode.NO_SHOW_FROM_CANCELLED),
    (AppointmentStatus.PENDING, timedelta(hours=-2), TransitionCode.NO_SHOW_FROM_PENDING),
    (AppointmentStatus.NO_SHOW, timedelta(hours=-2), TransitionCode.ALREADY_NO_SHOW),
    (AppointmentStatus.CONFIRMED, timedelta(hours=2), TransitionCode.NOT_ENDED),
])
def test_no_show_refusals(status, starts_in, code):
    with pytest.raises(LifecycleError) as exc_info:
        apply_no_show(make_appointment(status, starts_in=starts_in), NOW)
    assert exc_info.value.code == code


# ============================================================================
# DELETE / OWNER EDIT
# ============================================================================

def test_delete_rules():
    ensure_deletable(make_appointment(), NOW)

    with pytest.raises(LifecycleError) as exc_info:
        ensure_deletable(make_appointment(AppointmentStatus.COMPLETED, starts_in=timedelta(hours=-2)), NOW)
    assert exc_info.value.code == TransitionCode.LOCKED

    with pytest.raises(LifecycleError) as exc_info:
        ensure_deletable(make_appointment(starts_in=timedelta(minutes=-10)), NOW)
    assert exc_info.value.code == TransitionCode.DELETE_STARTED


def test_owner_edit_of_owner_booking_can_reschedule():
    plan = plan_owner_edit(make_appointment(), AppointmentStatus.CONFIRMED, touches_schedule=True)
    assert plan.reschedule is True
    assert plan.cancels is False


def test_cancelling_edit_never_reschedules():
    plan = plan_owner_edit(make_appointment(), AppointmentStatus.CANCELLED, touches_schedule=True)
    assert plan.cancels is True
    assert plan.reschedule is False


def test_customer_booking_only_accepts_status_changes():
    appt = make_appointment(AppointmentStatus.PENDING, origin=AppointmentOrigin.CUSTOMER)

    plan = plan_owner_edit(appt, AppointmentStatus.CONFIRMED, touches_schedule=False)
    assert plan.reschedule is False

    with pytest.raises(LifecycleError) as exc_info:
        plan_owner_edit(appt, AppointmentStatus.CONFIRMED, touches_schedule=True)
    assert exc_info.value.code == TransitionCode.CUSTOMER_BOOKING_RESTRICTED

    with pytest.raises(LifecycleError) as exc_info:
        plan_owner_edit(appt, AppointmentStatus.CONFIRMED, touches_schedule=False, touches_customer=True)
    assert exc_info.value.code == TransitionCode.CUSTOMER_BOOKING_RESTRICTED


def test_owner_cannot_set_pending_or_edit_locked():
    with pytest.raises(LifecycleError) as exc_info:
        plan_owner_edit(make_appointment(), AppointmentStatus.PENDING, touches_schedule=False)
    assert exc_info.value.code == TransitionCode.INVALID_STATUS

    with pytest.raises(LifecycleError) as exc_info:
        plan_owner_edit(make_appointment(AppointmentStatus.NO_SHOW), AppointmentStatus.CONFIRMED, touches_schedule=False)
    assert exc_info.value.code == TransitionCode.LOCKED
