"""Slot listing and slot validation endpoints."""

import logging
from datetime import date, timedelta
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.v1.errors import to_http_exception
from app.core.database import get_db
from app.core.exceptions import SchedulingError
from app.models.types import utcnow
from app.schemas.availability import (
    AvailableSlotsResponse,
    CalendarWindowOut,
    ValidateSlotRequest,
    ValidateSlotResponse,
)
from app.services.calendar_resolver import get_business, get_service
from app.services.conflict_validator import validate_slot
from app.services.dashboard import get_calendar_window
from app.services.intervals import format_hhmm, resolve_timezone, to_local, to_utc
from app.services.slot_generator import get_available_slots

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/slots", response_model=AvailableSlotsResponse)
async def list_slots(
    business_id: UUID = Query(...),
    service_id: UUID = Query(...),
    date: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Bookable start times for a service on a business-local date.

    Missing business, service, policy or hours give an empty list, not an error.
    """
    slots = await get_available_slots(db, business_id, service_id, date, utcnow())
    return AvailableSlotsResponse(date=date, service_id=service_id, slots=[format_hhmm(s) for s in slots])


@router.post("/validate", response_model=ValidateSlotResponse)
async def validate(
    payload: ValidateSlotRequest,
    db: AsyncSession = Depends(get_db),
):
    """Check one exact range without booking it."""
    business = await get_business(db, payload.business_id)
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    service = await get_service(db, payload.business_id, payload.service_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")

    tz = resolve_timezone(business.timezone)
    end_local = payload.end_local
    if end_local is None:
        end_utc = to_utc(payload.start_local, tz) + timedelta(minutes=service.duration_minutes)
        end_local = to_local(end_utc, tz)

    result = await validate_slot(
        db,
        business.id,
        tz,
        payload.start_local,
        end_local,
        service,
        utcnow(),
        exclude_appointment_id=payload.exclude_appointment_id,
    )
    return ValidateSlotResponse(
        accepted=result.accepted,
        code=result.code.value if result.code else None,
        message=result.message,
    )


@router.get("/calendar", response_model=CalendarWindowOut)
async def calendar(
    business_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Dates the booking calendar offers and the earliest bookable start."""
    try:
        window = await get_calendar_window(db, business_id, utcnow())
    except SchedulingError as e:
        raise to_http_exception(e)
    return CalendarWindowOut(
        bookable_start_date=window.bookable_start_date,
        bookable_end_date=window.bookable_end_date,
        min_bookable_start=window.min_bookable_start,
        slot_interval_minutes=window.slot_interval_minutes,
    )
