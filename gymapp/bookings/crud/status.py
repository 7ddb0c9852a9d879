"""Booking lifecycle - status changes and deletion for both booking kinds"""
from typing import Any, Dict, Optional, Union
from datetime import date

from sqlalchemy import case
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core.database import db_operation
from gymapp.core.dependencies import is_admin
from gymapp.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from gymapp.core.logging_utils import log_business_event
from gymapp.bookings.models import (
    BookingKind,
    BookingStatus,
    PaymentStatus,
    GymBooking,
    TrainerBooking,
)
from gymapp.bookings.services.payment_state import (
    TRANSITION_SOURCES,
    adjust_trainer_earnings,
    conditional_update,
    is_closed,
)
from gymapp.trainers.crud.availability import release_booking_slots

Booking = Union[GymBooking, TrainerBooking]

BOOKING_MODELS = {
    BookingKind.gym: GymBooking,
    BookingKind.trainer: TrainerBooking,
}


def booking_model(kind: BookingKind):
    return BOOKING_MODELS[BookingKind(kind)]


async def get_booking(session: AsyncSession, kind: BookingKind, booking_id: int) -> Booking:
    model = booking_model(kind)
    result = await session.execute(select(model).where(model.id == booking_id))
    booking = result.scalar_one_or_none()

    if not booking:
        raise NotFoundError("Booking", str(booking_id))

    return booking


async def get_owned_booking(
    session: AsyncSession,
    kind: BookingKind,
    booking_id: int,
    user: Dict[str, Any],
    allow_admin: bool = True,
) -> Booking:
    """
    Load a booking the caller may act on.

    Bookings of other users are reported as missing rather than forbidden.
    """
    booking = await get_booking(session, kind, booking_id)

    if booking.user_id != str(user["id"]) and not (allow_admin and is_admin(user)):
        raise NotFoundError("Booking", str(booking_id))

    return booking


@db_operation
async def update_booking_status(
    session: AsyncSession,
    kind: BookingKind,
    booking_id: int,
    new_status: BookingStatus,
    user: Dict[str, Any],
    today: Optional[date] = None,
) -> Booking:
    """
    Change a booking's lifecycle status.

    Owners may only cancel; admins may set any status. Closed bookings are
    never changed. Completing a booking settles its payment.
    """
    booking = await get_owned_booking(session, kind, booking_id, user)
    new_status = BookingStatus(new_status)
    admin = is_admin(user)

    if not admin and new_status != BookingStatus.cancelled:
        raise AuthorizationError("You can only cancel your own bookings")

    if is_closed(booking):
        raise ConflictError(
            f"Booking is already {booking.status}",
            details={"booking_id": booking.id, "status": booking.status},
        )

    model = type(booking)
    settled = False

    if new_status == BookingStatus.completed:
        if booking.payment_status == PaymentStatus.refunded.value:
            raise ConflictError(
                "Cannot complete a booking whose payment was refunded",
                details={"booking_id": booking.id, "payment_status": booking.payment_status},
            )

        # Completed bookings always carry a completed payment
        settled = await conditional_update(
            session,
            model,
            booking.id,
            {"status": new_status.value, "payment_status": PaymentStatus.completed.value},
            payment_sources=TRANSITION_SOURCES[PaymentStatus.completed],
        )
        applied = settled or await conditional_update(
            session,
            model,
            booking.id,
            {"status": new_status.value},
            payment_sources=(PaymentStatus.completed,),
        )
    elif new_status == BookingStatus.pending:
        applied = await conditional_update(
            session,
            model,
            booking.id,
            {
                "status": case(
                    (
                        model.payment_status == PaymentStatus.completed.value,
                        BookingStatus.confirmed.value,
                    ),
                    else_=BookingStatus.pending.value,
                )
            },
        )
    else:
        applied = await conditional_update(
            session, model, booking.id, {"status": new_status.value}
        )

    if not applied:
        await session.rollback()
        raise ConflictError(
            "Booking was changed by another request",
            details={"booking_id": booking.id},
        )

    if settled:
        await adjust_trainer_earnings(session, booking, credit=True)

    if new_status == BookingStatus.cancelled and booking.kind == BookingKind.trainer:
        await release_booking_slots(session, booking.id, today=today)

    await session.commit()
    await session.refresh(booking)

    log_business_event(
        f"booking_{new_status.value}",
        f"{booking.kind.value}_booking",
        booking.id,
        {"by": user["id"], "admin": admin, "payment_settled": settled},
    )

    return booking


@db_operation
async def delete_booking(
    session: AsyncSession,
    kind: BookingKind,
    booking_id: int,
    user: Dict[str, Any],
    today: Optional[date] = None,
) -> None:
    """Owners may delete only cancelled or completed bookings; admins any"""
    booking = await get_owned_booking(session, kind, booking_id, user)

    if not is_admin(user) and not is_closed(booking):
        raise AuthorizationError(
            "Only cancelled or completed bookings can be deleted",
            details={"booking_id": booking.id, "status": booking.status},
        )

    if booking.kind == BookingKind.trainer:
        await release_booking_slots(session, booking.id, today=today)

    await session.delete(booking)
    await session.commit()

    log_business_event(
        "booking_deleted",
        f"{booking.kind.value}_booking",
        booking_id,
        {"by": user["id"]},
    )
