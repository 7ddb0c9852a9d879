"""Trainer Availability Slot - One committed hour range on a trainer's day"""
from sqlalchemy import (
    Column,
    Integer,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from gymapp.core.database import Base


class TrainerAvailabilitySlot(Base):
    __tablename__ = "trainer_availability_slots"

    id = Column(Integer, primary_key=True)

    trainer_id = Column(
        Integer, ForeignKey("trainers.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Booking that committed the slot
    booking_id = Column(
        Integer, ForeignKey("trainer_bookings.id", ondelete="SET NULL"), nullable=True, index=True
    )

    slot_date = Column(Date, nullable=False)
    start_hour = Column(Integer, nullable=False)
    end_hour = Column(Integer, nullable=False)  # exclusive

    # Released slots stay as history with is_booked = False
    is_booked = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    trainer = relationship("Trainer", back_populates="availability_slots")

    __table_args__ = (
        CheckConstraint("start_hour >= 0 AND start_hour < end_hour AND end_hour <= 24", name="ck_slot_hours"),
        Index("ix_trainer_slot_trainer_date", "trainer_id", "slot_date"),
    )

    def __repr__(self):
        return f"<TrainerAvailabilitySlot(trainer_id={self.trainer_id}, date={self.slot_date}, {self.start_hour}-{self.end_hour}, booked={self.is_booked})>"
