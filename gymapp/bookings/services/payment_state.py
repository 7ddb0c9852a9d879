"""
Payment sub-state machine of the booking aggregate.

Every transition is a single conditional UPDATE, so duplicate or concurrent
deliveries of the same gateway event converge on one state change. Trainer
earnings move only when the UPDATE actually matched a row.
"""
import logging
from typing import Any, Dict, Iterable, Optional, Union

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.bookings.models import (
    BookingKind,
    BookingStatus,
    PaymentStatus,
    CLOSED_BOOKING_STATUSES,
    GymBooking,
    TrainerBooking,
)
from gymapp.bookings.services.pricing import booking_amount
from gymapp.core.logging_utils import log_business_event
from gymapp.trainers.models import Trainer

logger = logging.getLogger(__name__)

Booking = Union[GymBooking, TrainerBooking]

# Payment states each target may be reached from
TRANSITION_SOURCES = {
    PaymentStatus.completed: (
        PaymentStatus.pending,
        PaymentStatus.initiated,
        PaymentStatus.failed,
    ),
    PaymentStatus.failed: (
        PaymentStatus.pending,
        PaymentStatus.initiated,
    ),
    PaymentStatus.refunded: (
        PaymentStatus.pending,
        PaymentStatus.initiated,
        PaymentStatus.failed,
        PaymentStatus.completed,
    ),
}


def is_closed(booking: Booking) -> bool:
    return booking.status in CLOSED_BOOKING_STATUSES


async def conditional_update(
    session: AsyncSession,
    model,
    booking_id: int,
    values: Dict[str, Any],
    payment_sources: Optional[Iterable[PaymentStatus]] = None,
    exclude_payment: Optional[PaymentStatus] = None,
) -> bool:
    """
    UPDATE one open booking row; True when the row matched.

    Closed bookings (cancelled, completed) never match.
    """
    stmt = update(model).where(
        model.id == booking_id,
        model.status.notin_(CLOSED_BOOKING_STATUSES),
    )
    if payment_sources is not None:
        stmt = stmt.where(model.payment_status.in_([s.value for s in payment_sources]))
    if exclude_payment is not None:
        stmt = stmt.where(model.payment_status != exclude_payment.value)

    result = await session.execute(
        stmt.values(**values).execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def adjust_trainer_earnings(session: AsyncSession, booking: Booking, credit: bool) -> None:
    """Credit or debit (floored at zero) the booking amount on its trainer"""
    if booking.kind != BookingKind.trainer or booking.trainer_id is None:
        return

    amount = booking_amount(booking)

    if credit:
        new_earnings = Trainer.earnings + amount
    else:
        new_earnings = case(
            (Trainer.earnings > amount, Trainer.earnings - amount),
            else_=0,
        )

    await session.execute(
        update(Trainer)
        .where(Trainer.id == booking.trainer_id)
        .values(earnings=new_earnings)
        .execution_options(synchronize_session=False)
    )

    logger.info(
        f"Trainer earnings {'credited' if credit else 'debited'}",
        extra={"trainer_id": booking.trainer_id, "booking_id": booking.id, "amount": str(amount)},
    )


async def transition_payment(
    session: AsyncSession,
    booking: Booking,
    target: PaymentStatus,
    transaction_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Move a booking's payment to completed, failed or refunded.

    Returns True when this call changed the row, False for a no-op (already
    in the target state, not reachable from the current state, or the booking
    is closed). Commits and refreshes the booking either way.
    """
    model = type(booking)
    target = PaymentStatus(target)

    values: Dict[str, Any] = {"payment_status": target.value}
    if transaction_id:
        values["transaction_id"] = transaction_id
    if payload is not None:
        values["payment_details"] = payload

    if target == PaymentStatus.completed:
        values["status"] = case(
            (model.status == BookingStatus.pending.value, BookingStatus.confirmed.value),
            else_=model.status,
        )
        applied = await conditional_update(
            session, model, booking.id, values, TRANSITION_SOURCES[target]
        )
        if applied:
            await adjust_trainer_earnings(session, booking, credit=True)

    elif target == PaymentStatus.refunded:
        # Completed payments first, so earnings are debited only once
        applied = await conditional_update(
            session, model, booking.id, values, (PaymentStatus.completed,)
        )
        if applied:
            await adjust_trainer_earnings(session, booking, credit=False)
        else:
            applied = await conditional_update(
                session,
                model,
                booking.id,
                values,
                (PaymentStatus.pending, PaymentStatus.initiated, PaymentStatus.failed),
            )

    elif target == PaymentStatus.failed:
        applied = await conditional_update(
            session, model, booking.id, values, TRANSITION_SOURCES[target]
        )

    else:
        raise ValueError(f"Unsupported payment transition target: {target.value}")

    await session.commit()
    await session.refresh(booking)

    if applied:
        log_business_event(
            f"payment_{target.value}",
            f"{booking.kind.value}_booking",
            booking.id,
            {"transaction_id": transaction_id, "status": booking.status},
        )
    else:
        logger.info(
            f"Payment transition to {target.value} was a no-op",
            extra={
                "booking_id": booking.id,
                "booking_kind": booking.kind.value,
                "payment_status": booking.payment_status,
                "status": booking.status,
            },
        )

    return applied
