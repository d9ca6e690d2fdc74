"""Owner-side appointment endpoints: list, stats, book, edit, cancel, no-show, delete."""

import logging
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.api.v1.errors import to_http_exception
from app.core.database import get_db
from app.core.exceptions import SchedulingError
from app.models.appointment import Appointment
from app.models.business import Business
from app.models.service import Service
from app.models.types import utcnow
from app.schemas.appointment import (
    AppointmentListResponse,
    AppointmentOut,
    AppointmentStatsOut,
    AppointmentUpdate,
    CancelRequest,
    OwnerAppointmentCreate,
)
from app.services import appointment_lifecycle as lifecycle
from app.services import booking
from app.services.calendar_resolver import get_business
from app.services.dashboard import AppointmentRow, get_stats, list_appointments as query_appointments
from app.services.email_service import email_service
from app.services.intervals import combine, resolve_timezone, to_local

router = APIRouter()
logger = logging.getLogger(__name__)


def row_out(row: AppointmentRow) -> AppointmentOut:
    out = AppointmentOut.model_validate(row.appointment)
    out.service_name = row.service_name
    out.start_local = row.start_local
    out.end_local = row.end_local
    return out


async def appointment_out(db: AsyncSession, appointment: Appointment, business: Business) -> AppointmentOut:
    """Single appointment with its service name and business-local times."""
    tz = resolve_timezone(business.timezone)
    service_name = None
    if appointment.service_id is not None:
        result = await db.execute(select(Service.name).where(Service.id == appointment.service_id))
        service_name = result.scalar_one_or_none()
    return row_out(
        AppointmentRow(
            appointment=appointment,
            service_name=service_name,
            start_local=to_local(appointment.start_utc, tz),
            end_local=to_local(appointment.end_utc, tz),
        )
    )


async def get_business_or_404(db: AsyncSession, business_id: UUID) -> Business:
    business = await get_business(db, business_id)
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    return business


async def notify_cancelled(out: AppointmentOut, business: Business) -> None:
    """Best-effort customer notice; never fails the request."""
    if not out.customer_email:
        return
    try:
        await email_service.send_appointment_cancelled(
            customer_email=out.customer_email,
            business_name=business.name,
            service_name=out.service_name or "Service",
            start_local=out.start_local,
            end_local=out.end_local,
        )
    except Exception as e:
        logger.error(f"Failed to send cancellation email: {e}")


@router.get("/", response_model=AppointmentListResponse)
async def list_appointments(
    business_id: UUID = Query(...),
    date_range: str = Query("all", alias="range", pattern="^(all|today|week|month)$"),
    status: str = Query("all"),
    q: Optional[str] = Query(None, max_length=200),
    db: AsyncSession = Depends(get_db),
):
    """List appointments, oldest first. ``range`` is one of all, today, week (Monday-based) or month."""
    try:
        rows = await query_appointments(db, business_id, utcnow(), date_range, status, q)
    except SchedulingError as e:
        raise to_http_exception(e)
    return AppointmentListResponse(total=len(rows), appointments=[row_out(r) for r in rows])


@router.get("/stats", response_model=AppointmentStatsOut)
async def appointment_stats(
    business_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    try:
        stats = await get_stats(db, business_id, utcnow())
    except SchedulingError as e:
        raise to_http_exception(e)
    return AppointmentStatsOut(
        today_count=stats.today_count,
        next_7_days_count=stats.next_7_days_count,
        revenue_week=stats.revenue_week,
        cancellations_week=stats.cancellations_week,
        open_slots_today=stats.open_slots_today,
        upcoming=[row_out(r) for r in stats.upcoming],
    )


@router.post("/", response_model=AppointmentOut, status_code=201)
async def create_appointment(
    payload: OwnerAppointmentCreate,
    db: AsyncSession = Depends(get_db),
):
    """Book on behalf of a customer. Created Confirmed; the customer is emailed."""
    business = await get_business_or_404(db, payload.business_id)
    try:
        appointment = await booking.book_for_owner(
            db,
            business_id=payload.business_id,
            service_id=payload.service_id,
            start_local=combine(payload.date, payload.start_time),
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            now_utc=utcnow(),
            customer_phone=payload.customer_phone,
            duration_minutes=payload.duration_minutes,
            price=payload.price,
            notes=payload.notes,
        )
    except SchedulingError as e:
        raise to_http_exception(e)

    out = await appointment_out(db, appointment, business)
    try:
        await email_service.send_booking_created(
            customer_email=out.customer_email,
            customer_name=out.customer_name,
            business_name=business.name,
            service_name=out.service_name or "Service",
            start_local=out.start_local,
            end_local=out.end_local,
            start_utc=appointment.start_utc,
            end_utc=appointment.end_utc,
            price=appointment.price,
            token=appointment.manage_token,
        )
    except Exception as e:
        logger.error(f"Failed to send booking email: {e}")
    return out


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment(
    appointment_id: UUID,
    business_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    business = await get_business_or_404(db, business_id)
    try:
        appointment = await lifecycle.get_appointment(db, appointment_id, utcnow(), business_id)
    except SchedulingError as e:
        raise to_http_exception(e)
    return await appointment_out(db, appointment, business)


@router.patch("/{appointment_id}", response_model=AppointmentOut)
async def update_appointment(
    appointment_id: UUID,
    payload: AppointmentUpdate,
    business_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Owner edit. Customer bookings accept only Confirm/Cancel and notes."""
    business = await get_business_or_404(db, business_id)

    changes = payload.model_dump(exclude_unset=True, exclude={"status", "date", "start_time"})
    if payload.date is not None and payload.start_time is not None:
        changes["start_local"] = combine(payload.date, payload.start_time)

    try:
        result = await booking.update_by_owner(db, business_id, appointment_id, payload.status, changes, utcnow())
    except SchedulingError as e:
        raise to_http_exception(e)

    out = await appointment_out(db, result.appointment, business)
    if result.cancelled:
        await notify_cancelled(out, business)
    elif result.schedule_changed and out.customer_email:
        tz = resolve_timezone(business.timezone)
        try:
            await email_service.send_appointment_changed(
                customer_email=out.customer_email,
                customer_name=out.customer_name,
                business_name=business.name,
                service_name=out.service_name or "Service",
                start_local=out.start_local,
                end_local=out.end_local,
                price=out.price,
                previous_start_local=to_local(result.previous_start_utc, tz),
                previous_end_local=to_local(result.previous_end_utc, tz),
                previous_price=result.previous_price,
            )
        except Exception as e:
            logger.error(f"Failed to send appointment update email: {e}")
    return out


@router.put("/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel_appointment(
    appointment_id: UUID,
    business_id: UUID = Query(...),
    payload: Optional[CancelRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending or confirmed appointment. Irreversible."""
    business = await get_business_or_404(db, business_id)
    try:
        appointment = await lifecycle.cancel(
            db, appointment_id, utcnow(), business_id, reason=payload.reason if payload else None
        )
    except SchedulingError as e:
        raise to_http_exception(e)

    out = await appointment_out(db, appointment, business)
    await notify_cancelled(out, business)
    return out


@router.put("/{appointment_id}/no-show", response_model=AppointmentOut)
async def mark_no_show(
    appointment_id: UUID,
    business_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Only completed appointments (already ended) can become No-Show."""
    business = await get_business_or_404(db, business_id)
    try:
        appointment = await lifecycle.mark_no_show(db, appointment_id, utcnow(), business_id)
    except SchedulingError as e:
        raise to_http_exception(e)
    return await appointment_out(db, appointment, business)


@router.delete("/{appointment_id}", status_code=204)
async def delete_appointment(
    appointment_id: UUID,
    business_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Hard delete a future pending/confirmed appointment; the customer gets a cancellation email."""
    business = await get_business_or_404(db, business_id)
    try:
        appointment = await lifecycle.get_appointment(db, appointment_id, utcnow(), business_id)
        out = await appointment_out(db, appointment, business)
        await lifecycle.delete(db, appointment_id, utcnow(), business_id)
    except SchedulingError as e:
        raise to_http_exception(e)

    await notify_cancelled(out, business)
