"""Business model.

A business owns its services, weekly working hours, booking policy and time
off. All wall-clock values on those rows are read in the business timezone;
every instant is stored as UTC.
"""

from sqlalchemy import Column, String, Boolean
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
from app.core.database import Base
from app.models.types import UTCDateTime, utcnow


class Business(Base):
    __tablename__ = "businesses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_user_id = Column(String(450), nullable=False, index=True)  # external identity reference
    name = Column(String(200), nullable=False)
    timezone = Column(String(100), nullable=False, default="UTC")  # IANA id, e.g. "Europe/Berlin"
    phone = Column(String(50), nullable=True)
    address = Column(String(300), nullable=True)
    is_onboarding_complete = Column(Boolean, default=False, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    # Relationships (business owns their lifecycle)
    services = relationship("Service", back_populates="business", cascade="all, delete-orphan")
    working_hours = relationship("WorkingHours", back_populates="business", cascade="all, delete-orphan")
    booking_policy = relationship("BookingPolicy", back_populates="business", uselist=False, cascade="all, delete-orphan")
    time_off = relationship("TimeOff", back_populates="business", cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="business", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Business(id={self.id}, name={self.name}, timezone={self.timezone})>"
