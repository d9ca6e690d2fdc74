"""Pydantic schemas for Services."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    duration_minutes: int = Field(..., ge=1, le=1440)
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    buffer_before: int = Field(0, ge=0, le=1440)
    buffer_after: int = Field(0, ge=0, le=1440)
    is_active: bool = True


class ServiceUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    duration_minutes: Optional[int] = Field(None, ge=1, le=1440)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    buffer_before: Optional[int] = Field(None, ge=0, le=1440)
    buffer_after: Optional[int] = Field(None, ge=0, le=1440)
    is_active: Optional[bool] = None


class ServiceOut(BaseModel):
    id: UUID
    business_id: UUID
    name: str
    duration_minutes: int
    formatted_duration: str
    price: Decimal
    buffer_before: int
    buffer_after: int
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
