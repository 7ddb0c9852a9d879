"""Gym Booking Model - Self-guided gym sessions by workout type"""
from sqlalchemy import Column, Integer, String, Date, Index

from gymapp.core.database import Base
from gymapp.bookings.models.base import BookingMixin, BookingKind


class GymBooking(BookingMixin, Base):
    """Reservation of a gym time window for one workout type"""
    __tablename__ = "gym_bookings"

    kind = BookingKind.gym

    booking_date = Column(Date, nullable=False)

    # "HH:MM", zero padded so string comparison orders correctly
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)

    duration = Column(Integer, nullable=False)  # hours

    # General, Cardio, Strength, Yoga, HIIT, CrossFit
    workout_type = Column(String(20), nullable=False)

    __table_args__ = (
        Index("ix_gym_booking_user_date", "user_id", "booking_date"),
    )

    def __repr__(self):
        return f"<GymBooking(id={self.id}, user_id={self.user_id}, workout_type={self.workout_type}, status={self.status})>"
