"""Gym Booking CRUD - Creating and listing self-guided gym sessions"""
from typing import List, Tuple

from sqlalchemy import and_, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core.database import db_operation
from gymapp.core.exceptions import ConflictError, ValidationError
from gymapp.core.logging_utils import log_business_event
from gymapp.core.notifier import notify_operators
from gymapp.bookings.models import BookingStatus, PaymentStatus, GymBooking
from gymapp.bookings.schemas.bookings import GymBookingCreate
from gymapp.bookings.services.pricing import gym_session_amount


@db_operation
async def create_gym_booking(
    session: AsyncSession,
    user_id: str,
    booking_data: GymBookingCreate,
) -> GymBooking:
    """
    Book a gym session.

    Validates:
    - End time is after start time
    - The user has no open booking of the same workout type overlapping the window
    """
    start_time = booking_data.start_time
    end_time = booking_data.end_time
    workout_type = booking_data.workout_type.value

    # "HH:MM" strings order the same way as clock times
    if end_time <= start_time:
        raise ValidationError(
            "End time must be after start time",
            details={"start_time": start_time, "end_time": end_time},
        )

    conflict_query = (
        select(GymBooking)
        .where(
            and_(
                GymBooking.user_id == user_id,
                GymBooking.booking_date == booking_data.booking_date,
                GymBooking.workout_type == workout_type,
                GymBooking.status != BookingStatus.cancelled.value,
                GymBooking.start_time < end_time,
                GymBooking.end_time > start_time,
            )
        )
        .limit(1)
    )
    conflict_result = await session.execute(conflict_query)
    conflict = conflict_result.scalar_one_or_none()

    if conflict:
        raise ConflictError(
            f"You already have a {workout_type} session booked at this time",
            details={
                "booking_id": conflict.id,
                "start_time": conflict.start_time,
                "end_time": conflict.end_time,
            },
        )

    booking = GymBooking(
        user_id=user_id,
        booking_date=booking_data.booking_date,
        start_time=start_time,
        end_time=end_time,
        duration=booking_data.duration,
        workout_type=workout_type,
        amount=gym_session_amount(workout_type, booking_data.duration),
        payment_method=booking_data.payment_method.value,
        payment_status=PaymentStatus.pending.value,
        status=BookingStatus.pending.value,
        notes=booking_data.notes,
    )
    session.add(booking)
    await session.commit()
    await session.refresh(booking)

    log_business_event(
        "booking_created",
        "gym_booking",
        booking.id,
        {"user_id": user_id, "workout_type": workout_type, "amount": str(booking.amount)},
    )
    notify_operators(
        f"🏋️ New gym booking #{booking.id}\n"
        f"{workout_type} on {booking.booking_date.isoformat()} {start_time}-{end_time}\n"
        f"Amount: {booking.amount}"
    )

    return booking


@db_operation
async def get_user_gym_bookings(
    session: AsyncSession, user_id: str
) -> Tuple[List[GymBooking], int]:
    """User's gym bookings, newest first"""
    total = (
        await session.execute(
            select(func.count(GymBooking.id)).where(GymBooking.user_id == user_id)
        )
    ).scalar() or 0

    result = await session.execute(
        select(GymBooking)
        .where(GymBooking.user_id == user_id)
        .order_by(GymBooking.created_at.desc(), GymBooking.id.desc())
    )
    return list(result.scalars().all()), total
