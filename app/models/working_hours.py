"""Weekly working hours, one row per (business, ISO weekday)."""

import enum
import uuid
from sqlalchemy import Column, Integer, Boolean, Time, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.core.database import Base


class Weekday(int, enum.Enum):
    """ISO weekday numbering: Monday=1 .. Sunday=7."""
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7


class WorkingHours(Base):
    __tablename__ = "working_hours"
    __table_args__ = (
        UniqueConstraint("business_id", "weekday", name="uq_working_hours_business_weekday"),
        CheckConstraint("weekday BETWEEN 1 AND 7", name="ck_working_hours_weekday"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)  # 1=Monday, 7=Sunday
    is_closed = Column(Boolean, default=False, nullable=False)
    open_time = Column(Time, nullable=True)  # business-local, only when open
    close_time = Column(Time, nullable=True)

    business = relationship("Business", back_populates="working_hours")

    @property
    def is_open(self) -> bool:
        """Open with a complete, well-formed window."""
        return (
            not self.is_closed
            and self.open_time is not None
            and self.close_time is not None
            and self.close_time > self.open_time
        )
