"""Trainer Booking CRUD - Booking trainer hours against the availability ledger"""
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core.database import db_operation
from gymapp.core.exceptions import ConflictError
from gymapp.core.logging_utils import log_business_event
from gymapp.core.notifier import notify_operators
from gymapp.bookings.models import BookingKind, BookingStatus, PaymentStatus, TrainerBooking
from gymapp.bookings.schemas.bookings import TrainerBookingCreate
from gymapp.bookings.services.pricing import resolve_amount
from gymapp.trainers.crud.availability import (
    commit_slot,
    get_booked_slots,
    get_trainer,
    is_window_available,
)


def session_time_display(start_hour: int, duration: int) -> str:
    return f"{start_hour}:00 - {start_hour + duration}:00"


@db_operation
async def create_trainer_booking(
    session: AsyncSession,
    user_id: str,
    trainer_id: int,
    booking_data: TrainerBookingCreate,
    today: Optional[date] = None,
) -> TrainerBooking:
    """
    Book a trainer for [start_hour, start_hour + duration) on session_date.

    The trainer row stays locked from the availability check until the booking
    and its slot are committed together.
    """
    trainer = await get_trainer(session, trainer_id, for_update=True)

    day = booking_data.session_date
    start_hour = booking_data.start_hour
    duration = booking_data.duration

    booked_slots = await get_booked_slots(session, trainer.id, day)
    if not is_window_available(trainer, booked_slots, day, start_hour, duration):
        raise ConflictError(
            "Trainer is not available at the requested time",
            details={
                "trainer_id": trainer.id,
                "session_date": day.isoformat(),
                "start_hour": start_hour,
                "duration": duration,
            },
            status_code=400,
        )

    booking = TrainerBooking(
        user_id=user_id,
        trainer_id=trainer.id,
        session_date=day,
        start_hour=start_hour,
        duration=duration,
        time=session_time_display(start_hour, duration),
        session_type=booking_data.session_type,
        amount=resolve_amount(BookingKind.trainer, rate=trainer.rate, duration=duration),
        payment_method=booking_data.payment_method.value,
        payment_status=PaymentStatus.pending.value,
        status=BookingStatus.pending.value,
        notes=booking_data.notes,
        trainer_name_snapshot=trainer.display_name,
    )
    session.add(booking)
    await session.flush()

    await commit_slot(session, trainer, day, start_hour, duration, booking_id=booking.id, today=today)

    await session.commit()
    await session.refresh(booking)

    log_business_event(
        "booking_created",
        "trainer_booking",
        booking.id,
        {
            "user_id": user_id,
            "trainer_id": trainer.id,
            "session_date": day.isoformat(),
            "amount": str(booking.amount),
        },
    )
    notify_operators(
        f"🧑‍🏫 New trainer booking #{booking.id}\n"
        f"{booking.trainer_name_snapshot} on {day.isoformat()} {booking.time}\n"
        f"Amount: {booking.amount}"
    )

    return booking


@db_operation
async def get_user_trainer_bookings(
    session: AsyncSession, user_id: str
) -> Tuple[List[TrainerBooking], int]:
    """User's trainer bookings, newest first"""
    total = (
        await session.execute(
            select(func.count(TrainerBooking.id)).where(TrainerBooking.user_id == user_id)
        )
    ).scalar() or 0

    result = await session.execute(
        select(TrainerBooking)
        .where(TrainerBooking.user_id == user_id)
        .order_by(TrainerBooking.created_at.desc(), TrainerBooking.id.desc())
    )
    return list(result.scalars().all()), total
