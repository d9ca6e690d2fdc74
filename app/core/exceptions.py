"""
Exceptions raised by the scheduling engine.

Raised in app/services and translated to HTTP responses in the endpoint layer.
"""

import enum


class RejectionCode(str, enum.Enum):
    """Why a requested time range was refused."""
    END_BEFORE_START = "end_before_start"
    IN_THE_PAST = "in_the_past"
    ADVANCE_NOTICE = "advance_notice"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    TIME_OFF = "time_off"
    APPOINTMENT_OVERLAP = "appointment_overlap"
    BEYOND_BOOKING_HORIZON = "beyond_booking_horizon"
    SLOT_UNAVAILABLE = "slot_unavailable"
    NONEXISTENT_LOCAL_TIME = "nonexistent_local_time"
    CANCELLATION_WINDOW = "cancellation_window"


class TransitionCode(str, enum.Enum):
    """Why a status change was refused."""
    NO_SHOW_FROM_PENDING = "no_show_from_pending"
    NO_SHOW_FROM_CANCELLED = "no_show_from_cancelled"
    ALREADY_NO_SHOW = "already_no_show"
    NOT_ENDED = "not_ended"
    ALREADY_CANCELLED = "already_cancelled"
    LOCKED = "locked"
    CUSTOMER_BOOKING_RESTRICTED = "customer_booking_restricted"
    INVALID_STATUS = "invalid_status"
    INVALID_TOKEN = "invalid_token"
    DELETE_STARTED = "delete_started"


class SchedulingError(Exception):
    """Base exception for all scheduling engine errors."""
    pass


class ValidationRejection(SchedulingError):
    """A user-correctable problem with the requested time. Never retried."""

    def __init__(self, code: RejectionCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class NotFoundError(SchedulingError):
    """A business, service, appointment or policy does not exist."""

    def __init__(self, entity: str, entity_id=None):
        detail = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(detail)
        self.entity = entity
        self.entity_id = entity_id
        self.message = detail


class ConcurrencyConflict(SchedulingError):
    """Lost a race against another booking for the same business. Safe to retry."""

    def __init__(self, message: str = "This time slot is no longer available. Please pick another time."):
        super().__init__(message)
        self.message = message


class LifecycleError(SchedulingError):
    """A status transition that is not allowed from the appointment's current state."""

    def __init__(self, code: TransitionCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
