"""Customer self-service: book, confirm by emailed link, cancel by emailed link."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.v1.errors import to_http_exception
from app.core.database import get_db
from app.core.exceptions import SchedulingError
from app.models.types import utcnow
from app.schemas.appointment import PublicBookingCreate, PublicBookingOut, TokenActionOut
from app.services import appointment_lifecycle as lifecycle
from app.services import booking
from app.services.calendar_resolver import get_business, get_service
from app.services.email_service import email_service
from app.services.intervals import resolve_timezone, to_local

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/bookings", response_model=PublicBookingOut, status_code=201)
async def create_booking(
    payload: PublicBookingCreate,
    db: AsyncSession = Depends(get_db),
):
    """Book one of the listed slots. The booking stays Pending until the emailed link is used."""
    business = await get_business(db, payload.business_id)
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")

    try:
        appointment = await booking.book_for_customer(
            db,
            business_id=payload.business_id,
            service_id=payload.service_id,
            day=payload.date,
            start_time=payload.start_time,
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            now_utc=utcnow(),
            customer_phone=payload.customer_phone,
            notes=payload.notes,
        )
    except SchedulingError as e:
        raise to_http_exception(e)

    tz = resolve_timezone(business.timezone)
    start_local = to_local(appointment.start_utc, tz)
    end_local = to_local(appointment.end_utc, tz)
    service = await get_service(db, payload.business_id, payload.service_id)

    try:
        await email_service.send_booking_confirmation_request(
            customer_email=appointment.customer_email,
            customer_name=appointment.customer_name,
            business_name=business.name,
            service_name=service.name if service else "Service",
            start_local=start_local,
            end_local=end_local,
            token=appointment.confirmation_token,
        )
    except Exception as e:
        logger.error(f"Failed to send confirmation request email: {e}")

    return PublicBookingOut(
        appointment_id=appointment.id,
        status=appointment.status,
        start_local=start_local,
        end_local=end_local,
        message="Booking received. Please check your email to confirm it.",
    )


@router.get("/bookings/confirm/{token}", response_model=TokenActionOut)
async def confirm_booking(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """Consume a confirmation link. Reusing a link reports "already confirmed"."""
    try:
        outcome = await lifecycle.confirm_by_token(db, token, utcnow())
    except SchedulingError as e:
        raise to_http_exception(e)

    message = "Your appointment was already confirmed." if outcome.already_confirmed else "Your appointment is confirmed."
    return TokenActionOut(
        appointment_id=outcome.appointment.id,
        status=outcome.appointment.status,
        already_confirmed=outcome.already_confirmed,
        message=message,
    )


# GET as well so the emailed link works when clicked
@router.api_route("/bookings/cancel/{token}", methods=["GET", "POST"], response_model=TokenActionOut)
async def cancel_booking(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """Cancel through the emailed link, subject to the business cancellation window."""
    try:
        appointment = await lifecycle.cancel_by_token(db, token, utcnow())
    except SchedulingError as e:
        raise to_http_exception(e)

    return TokenActionOut(
        appointment_id=appointment.id,
        status=appointment.status,
        message="Your appointment has been cancelled.",
    )
