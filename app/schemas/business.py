"""Pydantic schemas for business configuration."""

from datetime import datetime, time
from uuid import UUID
from pydantic import AwareDatetime, BaseModel, Field, field_validator, model_validator
from app.services.intervals import is_valid_timezone


class BusinessCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    owner_user_id: str = Field(..., min_length=1, max_length=450)
    timezone: str = "UTC"  # IANA id, e.g. "Europe/Berlin"
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=300)
    # Mon-Fri 09:00-17:00 and a standard booking policy
    apply_defaults: bool = True

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        v = v.strip()
        if not is_valid_timezone(v):
            raise ValueError(f"Unknown timezone: {v}")
        return v


class BusinessOut(BaseModel):
    id: UUID
    owner_user_id: str
    name: str
    timezone: str
    phone: str | None = None
    address: str | None = None
    is_onboarding_complete: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class WorkingHoursDay(BaseModel):
    """One weekday. 1=Monday .. 7=Sunday."""
    weekday: int = Field(..., ge=1, le=7)
    is_closed: bool = False
    open_time: time | None = None
    close_time: time | None = None

    @model_validator(mode="after")
    def check_window(self):
        if self.is_closed:
            self.open_time = None
            self.close_time = None
            return self
        if self.open_time is None or self.close_time is None:
            raise ValueError("Open days need both open_time and close_time")
        if self.close_time <= self.open_time:
            raise ValueError("close_time must be after open_time")
        return self


class WorkingHoursUpdate(BaseModel):
    days: list[WorkingHoursDay] = Field(..., min_length=1, max_length=7)

    @field_validator("days")
    @classmethod
    def unique_weekdays(cls, v):
        weekdays = [d.weekday for d in v]
        if len(weekdays) != len(set(weekdays)):
            raise ValueError("Each weekday may appear only once")
        return v


class WorkingHoursOut(BaseModel):
    weekday: int
    is_closed: bool
    open_time: time | None = None
    close_time: time | None = None

    class Config:
        from_attributes = True


class BookingPolicyUpdate(BaseModel):
    slot_interval_minutes: int = Field(30, ge=5, le=1440)
    advance_notice_minutes: int = Field(0, ge=0, le=10080)
    cancellation_window_minutes: int = Field(0, ge=0, le=10080)
    max_advance_days: int = Field(60, ge=0, le=365)


class BookingPolicyOut(BaseModel):
    business_id: UUID
    slot_interval_minutes: int
    advance_notice_minutes: int
    cancellation_window_minutes: int
    max_advance_days: int

    class Config:
        from_attributes = True


class TimeOffCreate(BaseModel):
    start_utc: AwareDatetime
    end_utc: AwareDatetime
    reason: str | None = Field(None, max_length=200)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_utc <= self.start_utc:
            raise ValueError("end_utc must be after start_utc")
        return self


class TimeOffOut(BaseModel):
    id: UUID
    business_id: UUID
    start_utc: datetime
    end_utc: datetime
    reason: str | None = None

    class Config:
        from_attributes = True
