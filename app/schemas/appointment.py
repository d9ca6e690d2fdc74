"""Pydantic schemas for Appointments."""

from datetime import datetime, date, time
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional
from app.models.appointment import AppointmentOrigin, AppointmentStatus

# Field names below shadow the datetime types inside class bodies
LocalDate = date
LocalTime = time


class OwnerAppointmentCreate(BaseModel):
    """Owner books directly; the appointment starts Confirmed."""
    business_id: UUID
    service_id: UUID
    date: LocalDate
    start_time: LocalTime  # business-local
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(None, max_length=50)
    duration_minutes: Optional[int] = Field(None, ge=1, le=1440)  # defaults to the service duration
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)  # defaults to the service price
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def strip_offset(self):
        # start_time is business wall clock; any offset is ignored
        self.start_time = self.start_time.replace(tzinfo=None)
        return self


class AppointmentUpdate(BaseModel):
    """Owner edit. Only status and notes apply to customer bookings."""
    status: AppointmentStatus
    notes: Optional[str] = Field(None, max_length=500)
    service_id: Optional[UUID] = None
    date: Optional[LocalDate] = None
    start_time: Optional[LocalTime] = None
    duration_minutes: Optional[int] = Field(None, ge=1, le=1440)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    customer_name: Optional[str] = Field(None, min_length=1, max_length=200)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def date_and_time_together(self):
        if (self.date is None) != (self.start_time is None):
            raise ValueError("date and start_time must be given together")
        if self.start_time is not None:
            self.start_time = self.start_time.replace(tzinfo=None)
        return self


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)


class AppointmentOut(BaseModel):
    """Schema for returning appointment details."""
    id: UUID
    business_id: UUID
    service_id: Optional[UUID] = None
    service_name: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    start_utc: datetime
    end_utc: datetime
    start_local: Optional[datetime] = None  # business wall clock, no offset
    end_local: Optional[datetime] = None
    duration_minutes: int
    price: Decimal
    notes: Optional[str] = None
    status: AppointmentStatus
    origin: AppointmentOrigin
    cancelled_utc: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_utc: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppointmentListResponse(BaseModel):
    total: int
    appointments: list[AppointmentOut]


class AppointmentStatsOut(BaseModel):
    today_count: int
    next_7_days_count: int
    revenue_week: Decimal
    cancellations_week: int
    open_slots_today: int
    upcoming: list[AppointmentOut]


class PublicBookingCreate(BaseModel):
    """Customer self-service booking."""
    business_id: UUID
    service_id: UUID
    date: LocalDate
    start_time: LocalTime  # one of the slots from /availability/slots
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def strip_offset(self):
        self.start_time = self.start_time.replace(tzinfo=None)
        return self


class PublicBookingOut(BaseModel):
    """What the customer sees. Tokens only travel by email."""
    appointment_id: UUID
    status: AppointmentStatus
    start_local: datetime
    end_local: datetime
    message: str


class TokenActionOut(BaseModel):
    appointment_id: UUID
    status: AppointmentStatus
    already_confirmed: bool = False
    message: str
