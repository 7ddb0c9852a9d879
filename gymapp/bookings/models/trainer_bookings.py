"""Trainer Booking Model - Personal sessions with a trainer"""
from sqlalchemy import Column, Integer, String, Date, ForeignKey, Index
from sqlalchemy.orm import relationship

from gymapp.core.database import Base
from gymapp.bookings.models.base import BookingMixin, BookingKind


class TrainerBooking(BookingMixin, Base):
    """Reservation of a trainer's hours on a given day"""
    __tablename__ = "trainer_bookings"

    kind = BookingKind.trainer

    # Kept nullable so history survives trainer deletion
    trainer_id = Column(
        Integer, ForeignKey("trainers.id", ondelete="SET NULL"), nullable=True, index=True
    )

    session_date = Column(Date, nullable=False)
    start_hour = Column(Integer, nullable=False, default=9)
    duration = Column(Integer, nullable=False, default=1)  # hours

    # Display string, e.g. "9:00 - 10:00"
    time = Column(String(20), nullable=False)
    session_type = Column(String(50), nullable=False, default="personal")

    # Trainer display name at booking time, never re-derived
    trainer_name_snapshot = Column(String(200), nullable=True)

    trainer = relationship("Trainer", back_populates="bookings")

    __table_args__ = (
        Index("ix_trainer_booking_user_date", "user_id", "session_date"),
        Index("ix_trainer_booking_trainer_date", "trainer_id", "session_date"),
    )

    def __repr__(self):
        return f"<TrainerBooking(id={self.id}, trainer_id={self.trainer_id}, status={self.status})>"
