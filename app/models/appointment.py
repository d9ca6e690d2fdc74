"""Appointment model for the booking engine."""

from sqlalchemy import Column, String, Integer, Numeric, ForeignKey, Enum as SQLEnum, Text, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum
from app.core.database import Base
from app.models.types import UTCDateTime, utcnow


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentOrigin(str, enum.Enum):
    """Who created the booking."""
    CUSTOMER = "customer"
    OWNER = "owner"


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("end_utc > start_utc", name="ck_appointments_range"),
        CheckConstraint("duration_minutes BETWEEN 1 AND 1440", name="ck_appointments_duration"),
        Index("ix_appointments_business_start", "business_id", "start_utc"),
        Index("ix_appointments_service_start", "service_id", "start_utc"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    # Historical record survives service deletion
    service_id = Column(UUID(as_uuid=True), ForeignKey("services.id", ondelete="SET NULL"), nullable=True)

    # Customer info
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(200), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    # Appointment details
    start_utc = Column(UTCDateTime, nullable=False)
    end_utc = Column(UTCDateTime, nullable=False)  # start_utc + duration_minutes
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)  # may differ from the service price
    notes = Column(String(500), nullable=True)

    status = Column(SQLEnum(AppointmentStatus), default=AppointmentStatus.PENDING, nullable=False, index=True)
    origin = Column(SQLEnum(AppointmentOrigin), default=AppointmentOrigin.CUSTOMER, nullable=False)

    # Single-use link token; set only while a customer booking awaits confirmation
    confirmation_token = Column(String(64), unique=True, nullable=True, index=True)
    # The token after it was consumed, so a reused link reads as "already confirmed"
    consumed_token = Column(String(64), unique=True, nullable=True, index=True)

    cancelled_utc = Column(UTCDateTime, nullable=True)
    cancellation_reason = Column(String(200), nullable=True)
    created_utc = Column(UTCDateTime, default=utcnow, nullable=False)

    # Relationships
    business = relationship("Business", back_populates="appointments")
    service = relationship("Service")

    def __repr__(self):
        return f"<Appointment(id={self.id}, status={self.status}, start_utc={self.start_utc})>"

    @property
    def is_customer_booking(self) -> bool:
        return self.origin == AppointmentOrigin.CUSTOMER

    @property
    def manage_token(self) -> str | None:
        """Token a customer uses in links, before or after confirming."""
        return self.confirmation_token or self.consumed_token
