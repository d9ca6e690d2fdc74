"""Service model - what a business sells and how long it blocks the calendar."""

from sqlalchemy import Column, String, Numeric, Integer, ForeignKey, Boolean, CheckConstraint, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
from app.core.database import Base
from app.models.types import UTCDateTime, utcnow


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (
        UniqueConstraint("business_id", "name", name="uq_services_business_name"),
        CheckConstraint("duration_minutes BETWEEN 1 AND 1440", name="ck_services_duration"),
        CheckConstraint("buffer_before BETWEEN 0 AND 1440", name="ck_services_buffer_before"),
        CheckConstraint("buffer_after BETWEEN 0 AND 1440", name="ck_services_buffer_after"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(200), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    # Padding around an appointment during which nothing else may start or end
    buffer_before = Column(Integer, nullable=False, default=0)
    buffer_after = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    business = relationship("Business", back_populates="services")

    def __repr__(self):
        return f"<Service(id={self.id}, name={self.name}, duration={self.duration_minutes})>"

    @property
    def formatted_duration(self) -> str:
        """Return human-readable duration string"""
        hours = self.duration_minutes // 60
        minutes = self.duration_minutes % 60

        if hours > 0 and minutes > 0:
            return f"{hours}h {minutes}m"
        elif hours > 0:
            return f"{hours}h"
        else:
            return f"{minutes}m"
