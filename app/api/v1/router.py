from fastapi import APIRouter
from app.api.v1.endpoints import appointments, availability, businesses, public_bookings

api_router = APIRouter()
api_router.include_router(businesses.router, prefix="/businesses", tags=["businesses"])
api_router.include_router(availability.router, prefix="/availability", tags=["availability"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(public_bookings.router, prefix="/public", tags=["public"])
