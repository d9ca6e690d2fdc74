"""Business configuration endpoints: hours, policy, time off, services."""

import logging
from datetime import time
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from app.core.database import get_db
from app.models.booking_policy import BookingPolicy
from app.models.business import Business
from app.models.service import Service
from app.models.time_off import TimeOff
from app.models.working_hours import Weekday, WorkingHours
from app.schemas.business import (
    BookingPolicyOut,
    BookingPolicyUpdate,
    BusinessCreate,
    BusinessOut,
    TimeOffCreate,
    TimeOffOut,
    WorkingHoursOut,
    WorkingHoursUpdate,
)
from app.schemas.service import ServiceCreate, ServiceOut, ServiceUpdate

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_OPEN = time(9, 0)
DEFAULT_CLOSE = time(17, 0)
WEEKEND = (Weekday.SATURDAY, Weekday.SUNDAY)


def default_schedule(business_id: UUID) -> tuple[list[WorkingHours], BookingPolicy]:
    """Mon-Fri 09:00-17:00, weekends closed, and a standard policy."""
    hours = [
        WorkingHours(
            business_id=business_id,
            weekday=day.value,
            is_closed=day in WEEKEND,
            open_time=None if day in WEEKEND else DEFAULT_OPEN,
            close_time=None if day in WEEKEND else DEFAULT_CLOSE,
        )
        for day in Weekday
    ]
    policy = BookingPolicy(
        business_id=business_id,
        slot_interval_minutes=30,
        max_advance_days=60,
        advance_notice_minutes=1440,
        cancellation_window_minutes=1440,
    )
    return hours, policy


async def get_business_or_404(db: AsyncSession, business_id: UUID) -> Business:
    result = await db.execute(select(Business).where(Business.id == business_id))
    business = result.scalar_one_or_none()
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    return business


@router.post("/", response_model=BusinessOut, status_code=201)
async def create_business(
    biz: BusinessCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a business, optionally with the default weekly schedule and policy."""
    business = Business(**biz.model_dump(exclude={"apply_defaults"}))
    db.add(business)
    await db.flush()

    if biz.apply_defaults:
        hours, policy = default_schedule(business.id)
        db.add_all(hours)
        db.add(policy)
        business.is_onboarding_complete = True

    await db.commit()
    await db.refresh(business)
    logger.info(f"Business {business.id} created (timezone={business.timezone})")
    return business


@router.get("/{business_id}", response_model=BusinessOut)
async def get_business(
    business_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    return await get_business_or_404(db, business_id)


# ============================================================================
# WORKING HOURS
# ============================================================================

@router.get("/{business_id}/working-hours", response_model=list[WorkingHoursOut])
async def list_working_hours(
    business_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    await get_business_or_404(db, business_id)
    result = await db.execute(
        select(WorkingHours).where(WorkingHours.business_id == business_id).order_by(WorkingHours.weekday)
    )
    return result.scalars().all()


@router.put("/{business_id}/working-hours", response_model=list[WorkingHoursOut])
async def update_working_hours(
    business_id: UUID,
    payload: WorkingHoursUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Upsert the given weekdays; weekdays not in the payload are left alone."""
    await get_business_or_404(db, business_id)

    result = await db.execute(select(WorkingHours).where(WorkingHours.business_id == business_id))
    existing = {wh.weekday: wh for wh in result.scalars().all()}

    for day in payload.days:
        row = existing.get(day.weekday)
        if row is None:
            row = WorkingHours(business_id=business_id, weekday=day.weekday)
            db.add(row)
            existing[day.weekday] = row
        row.is_closed = day.is_closed
        row.open_time = day.open_time
        row.close_time = day.close_time

    await db.commit()
    return sorted(existing.values(), key=lambda wh: wh.weekday)


# ============================================================================
# BOOKING POLICY
# ============================================================================

@router.get("/{business_id}/policy", response_model=BookingPolicyOut)
async def get_policy(
    business_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    await get_business_or_404(db, business_id)
    result = await db.execute(select(BookingPolicy).where(BookingPolicy.business_id == business_id))
    policy = result.scalar_one_or_none()
    if not policy:
        raise HTTPException(status_code=404, detail="Booking policy not found")
    return policy


@router.put("/{business_id}/policy", response_model=BookingPolicyOut)
async def update_policy(
    business_id: UUID,
    payload: BookingPolicyUpdate,
    db: AsyncSession = Depends(get_db),
):
    await get_business_or_404(db, business_id)
    result = await db.execute(select(BookingPolicy).where(BookingPolicy.business_id == business_id))
    policy = result.scalar_one_or_none()
    if policy is None:
        policy = BookingPolicy(business_id=business_id)
        db.add(policy)

    for key, value in payload.model_dump().items():
        setattr(policy, key, value)

    await db.commit()
    await db.refresh(policy)
    return policy


# ============================================================================
# TIME OFF
# ============================================================================

@router.get("/{business_id}/time-off", response_model=list[TimeOffOut])
async def list_time_off(
    business_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    await get_business_or_404(db, business_id)
    result = await db.execute(
        select(TimeOff).where(TimeOff.business_id == business_id).order_by(TimeOff.start_utc)
    )
    return result.scalars().all()


@router.post("/{business_id}/time-off", response_model=TimeOffOut, status_code=201)
async def add_time_off(
    business_id: UUID,
    payload: TimeOffCreate,
    db: AsyncSession = Depends(get_db),
):
    await get_business_or_404(db, business_id)
    time_off = TimeOff(business_id=business_id, **payload.model_dump())
    db.add(time_off)
    await db.commit()
    await db.refresh(time_off)
    return time_off


@router.delete("/{business_id}/time-off/{time_off_id}", status_code=204)
async def delete_time_off(
    business_id: UUID,
    time_off_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(TimeOff).where(TimeOff.id == time_off_id, TimeOff.business_id == business_id)
    )
    time_off = result.scalar_one_or_none()
    if not time_off:
        raise HTTPException(status_code=404, detail="Time off not found")
    await db.delete(time_off)
    await db.commit()


# ============================================================================
# SERVICES
# ============================================================================

@router.get("/{business_id}/services", response_model=list[ServiceOut])
async def list_services(
    business_id: UUID,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
):
    await get_business_or_404(db, business_id)
    query = select(Service).where(Service.business_id == business_id)
    if not include_inactive:
        query = query.where(Service.is_active == True)  # noqa: E712
    result = await db.execute(query.order_by(Service.name))
    return result.scalars().all()


@router.post("/{business_id}/services", response_model=ServiceOut, status_code=201)
async def create_service(
    business_id: UUID,
    payload: ServiceCreate,
    db: AsyncSession = Depends(get_db),
):
    await get_business_or_404(db, business_id)
    service = Service(business_id=business_id, **payload.model_dump())
    db.add(service)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="A service with this name already exists")
    await db.refresh(service)
    return service


@router.patch("/{business_id}/services/{service_id}", response_model=ServiceOut)
async def update_service(
    business_id: UUID,
    service_id: UUID,
    payload: ServiceUpdate,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Service).where(Service.id == service_id, Service.business_id == business_id)
    )
    service = result.scalar_one_or_none()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")

    update_data = payload.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(service, key, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="A service with this name already exists")
    await db.refresh(service)
    return service
