"""Import all models so they register on Base.metadata."""

from app.models.business import Business
from app.models.service import Service
from app.models.booking_policy import BookingPolicy
from app.models.working_hours import WorkingHours, Weekday
from app.models.time_off import TimeOff
from app.models.appointment import Appointment, AppointmentStatus, AppointmentOrigin

__all__ = [
    "Business",
    "Service",
    "BookingPolicy",
    "WorkingHours",
    "Weekday",
    "TimeOff",
    "Appointment",
    "AppointmentStatus",
    "AppointmentOrigin",
]
