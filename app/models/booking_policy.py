"""Per-business booking policy."""

from sqlalchemy import Column, Integer, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.core.database import Base


class BookingPolicy(Base):
    __tablename__ = "booking_policies"
    __table_args__ = (
        CheckConstraint("slot_interval_minutes BETWEEN 5 AND 1440", name="ck_policy_slot_interval"),
        CheckConstraint("advance_notice_minutes BETWEEN 0 AND 10080", name="ck_policy_advance_notice"),
        CheckConstraint("cancellation_window_minutes BETWEEN 0 AND 10080", name="ck_policy_cancellation_window"),
        CheckConstraint("max_advance_days BETWEEN 0 AND 365", name="ck_policy_max_advance_days"),
    )

    # One policy per business
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), primary_key=True)

    slot_interval_minutes = Column(Integer, nullable=False, default=30)  # cadence of candidate start times
    advance_notice_minutes = Column(Integer, nullable=False, default=0)  # minimum lead time before a slot
    cancellation_window_minutes = Column(Integer, nullable=False, default=0)
    max_advance_days = Column(Integer, nullable=False, default=60)  # latest bookable date, from today

    business = relationship("Business", back_populates="booking_policy")
