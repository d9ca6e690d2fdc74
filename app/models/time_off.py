"""Business-declared unavailable intervals."""

import uuid
from sqlalchemy import Column, String, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.types import UTCDateTime, utcnow


class TimeOff(Base):
    __tablename__ = "time_off"
    __table_args__ = (
        CheckConstraint("end_utc > start_utc", name="ck_time_off_range"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    start_utc = Column(UTCDateTime, nullable=False, index=True)  # [start_utc, end_utc)
    end_utc = Column(UTCDateTime, nullable=False)
    reason = Column(String(200), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    business = relationship("Business", back_populates="time_off")
