from typing import List, Optional

from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core.database import db_operation
from gymapp.bookings.models import BookingKind, GymBooking, TrainerBooking
from gymapp.bookings.services.pricing import resolve_amount
from gymapp.trainers.models import Trainer
from gymapp.transactions.schemas.transactions import TransactionItem

DEFAULT_TRAINER_NAME = "Fitness Coach"


def trainer_display_name(trainer: Optional[Trainer], snapshot: Optional[str]) -> str:
    """Live first + last name, then live name, then the booking's snapshot"""
    if trainer is not None:
        if trainer.first_name and trainer.last_name:
            return f"{trainer.first_name} {trainer.last_name}"
        if trainer.name:
            return trainer.name
    return snapshot or DEFAULT_TRAINER_NAME


def gym_transaction(booking: GymBooking) -> TransactionItem:
    amount = resolve_amount(
        BookingKind.gym,
        amount=booking.amount,
        total_price=booking.total_price,
        price=booking.price,
    )
    return TransactionItem(
        id=booking.id,
        description=f"Gym Session: {booking.workout_type}",
        type=BookingKind.gym.value,
        date=booking.booking_date,
        amount=float(amount),
        payment_method=booking.payment_method,
        payment_status=booking.payment_status,
        status=booking.status,
        created_at=booking.created_at,
    )


def trainer_transaction(booking: TrainerBooking, trainer: Optional[Trainer]) -> TransactionItem:
    amount = resolve_amount(
        BookingKind.trainer,
        amount=booking.amount,
        total_price=booking.total_price,
        price=booking.price,
        rate=trainer.rate if trainer is not None else None,
        duration=booking.duration,
    )
    name = trainer_display_name(trainer, booking.trainer_name_snapshot)
    return TransactionItem(
        id=booking.id,
        description=f"Training session with {name}",
        type=BookingKind.trainer.value,
        date=booking.session_date,
        amount=float(amount),
        payment_method=booking.payment_method,
        payment_status=booking.payment_status,
        status=booking.status,
        created_at=booking.created_at,
    )


@db_operation
async def get_user_transactions(session: AsyncSession, user_id: str) -> List[TransactionItem]:
    """Gym and trainer bookings of a user as one list, newest first"""
    gym_result = await session.execute(
        select(GymBooking).where(GymBooking.user_id == user_id)
    )
    transactions = [gym_transaction(booking) for booking in gym_result.scalars().all()]

    trainer_result = await session.execute(
        select(TrainerBooking, Trainer)
        .outerjoin(Trainer, TrainerBooking.trainer_id == Trainer.id)
        .where(TrainerBooking.user_id == user_id)
    )
    transactions.extend(
        trainer_transaction(booking, trainer) for booking, trainer in trainer_result.all()
    )

    transactions.sort(
        key=lambda t: t.created_at.timestamp() if t.created_at else 0, reverse=True
    )
    return transactions
