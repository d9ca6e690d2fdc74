"""Pydantic schemas for slot listing and slot validation."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, model_validator


class AvailableSlotsResponse(BaseModel):
    """Schema for available slots response."""
    date: date
    service_id: UUID
    slots: list[str]  # ["09:00", "09:30", ...]


class ValidateSlotRequest(BaseModel):
    business_id: UUID
    service_id: UUID
    start_local: datetime  # business wall clock; any offset is ignored
    end_local: Optional[datetime] = None  # defaults to start + service duration
    exclude_appointment_id: Optional[UUID] = None

    @model_validator(mode="after")
    def strip_offsets(self):
        self.start_local = self.start_local.replace(tzinfo=None)
        if self.end_local is not None:
            self.end_local = self.end_local.replace(tzinfo=None)
        return self


class ValidateSlotResponse(BaseModel):
    accepted: bool
    code: Optional[str] = None
    message: Optional[str] = None


class CalendarWindowOut(BaseModel):
    bookable_start_date: date
    bookable_end_date: date
    min_bookable_start: datetime
    slot_interval_minutes: int
