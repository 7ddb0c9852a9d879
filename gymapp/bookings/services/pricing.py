"""Booking price policy and amount resolution"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, NamedTuple, Optional

from gymapp.bookings.models.base import BookingKind

GYM_DEFAULT_AMOUNT = Decimal("500")
TRAINER_DEFAULT_AMOUNT = Decimal("1000")

DEFAULT_AMOUNTS = {
    BookingKind.gym: GYM_DEFAULT_AMOUNT,
    BookingKind.trainer: TRAINER_DEFAULT_AMOUNT,
}


class WorkoutPricing(NamedTuple):
    base_rate: Decimal  # per hour
    capacity: int  # informational, not enforced


WORKOUT_PRICING = {
    "Cardio": WorkoutPricing(Decimal("150"), 5),
    "Strength": WorkoutPricing(Decimal("130"), 8),
    "CrossFit": WorkoutPricing(Decimal("180"), 6),
    "HIIT": WorkoutPricing(Decimal("180"), 6),
    "Yoga": WorkoutPricing(Decimal("120"), 12),
}
DEFAULT_WORKOUT_PRICING = WorkoutPricing(Decimal("100"), 15)


def workout_pricing(workout_type: str) -> WorkoutPricing:
    return WORKOUT_PRICING.get(workout_type, DEFAULT_WORKOUT_PRICING)


def gym_session_amount(workout_type: str, duration: int) -> Decimal:
    return workout_pricing(workout_type).base_rate * duration


def coerce_amount(value: Any) -> Optional[Decimal]:
    """
    Parse a stored price that may be a number, a numeric string or missing.

    Zero, negative and unparsable values count as unresolved (None).
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None

    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def resolve_amount(
    kind: BookingKind,
    amount: Any = None,
    total_price: Any = None,
    price: Any = None,
    rate: Any = None,
    duration: Any = None,
) -> Decimal:
    """
    Resolve the price of a booking.

    Order: explicit amount, legacy total price, price, rate x duration, then
    the domain default for the booking kind.
    """
    for candidate in (amount, total_price, price):
        resolved = coerce_amount(candidate)
        if resolved is not None:
            return resolved

    hourly = coerce_amount(rate)
    hours = coerce_amount(duration)
    if hourly is not None and hours is not None:
        return hourly * hours

    return DEFAULT_AMOUNTS[BookingKind(kind)]


def to_minor_units(amount: Decimal) -> int:
    """Gateway amounts are in minor units (paisa)"""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def booking_amount(booking) -> Decimal:
    """Resolved price of a stored gym or trainer booking"""
    return resolve_amount(
        booking.kind,
        amount=booking.amount,
        total_price=booking.total_price,
        price=booking.price,
    )
