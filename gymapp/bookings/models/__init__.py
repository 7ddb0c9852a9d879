from .base import (
    BookingMixin,
    BookingStatus,
    PaymentStatus,
    PaymentMethod,
    BookingKind,
    CLOSED_BOOKING_STATUSES,
)
from .gym_bookings import GymBooking
from .trainer_bookings import TrainerBooking
