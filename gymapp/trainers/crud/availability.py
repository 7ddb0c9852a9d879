"""Trainer Availability Ledger - booked hour ranges per trainer and day

Slots are committed inside the caller's transaction; nothing here commits.
Callers that book must hold the trainer row lock (see get_trainer) between
the availability check and the commit.
"""
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core.database import db_operation
from gymapp.core.exceptions import NotFoundError
from gymapp.core.logging_utils import log_business_event
from gymapp.trainers.models.trainers import Trainer, TrainerAvailability
from gymapp.trainers.models.availability import TrainerAvailabilitySlot
from gymapp.trainers.schemas.trainers import (
    BookedSlot,
    HourAvailability,
    TrainerDayAvailability,
    WorkingHours,
)


def hours_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open ranges; touching boundaries do not overlap"""
    return start_a < end_b and end_a > start_b


def is_window_available(
    trainer: Trainer,
    slots: Iterable[TrainerAvailabilitySlot],
    day: date,
    start_hour: int,
    duration: int,
) -> bool:
    """Pure availability check against an already loaded set of slots"""
    end_hour = start_hour + duration

    if start_hour < trainer.working_hours_start or end_hour > trainer.working_hours_end:
        return False

    for slot in slots:
        if (
            slot.is_booked
            and slot.slot_date == day
            and hours_overlap(start_hour, end_hour, slot.start_hour, slot.end_hour)
        ):
            return False

    return True


def is_fully_booked(
    trainer: Trainer, slots: Iterable[TrainerAvailabilitySlot], day: date
) -> bool:
    slots = list(slots)
    return not any(
        is_window_available(trainer, slots, day, hour, 1)
        for hour in range(trainer.working_hours_start, trainer.working_hours_end)
    )


async def get_trainer(
    session: AsyncSession, trainer_id: int, for_update: bool = False
) -> Trainer:
    """
    Load a trainer or raise NotFoundError.

    With for_update the row stays locked until the transaction ends, which
    serializes concurrent bookings of the same trainer across instances.
    """
    query = select(Trainer).where(Trainer.id == trainer_id)
    if for_update:
        query = query.with_for_update()

    result = await session.execute(query)
    trainer = result.scalar_one_or_none()

    if not trainer:
        raise NotFoundError("Trainer", str(trainer_id))

    return trainer


async def get_booked_slots(
    session: AsyncSession, trainer_id: int, day: date
) -> List[TrainerAvailabilitySlot]:
    query = (
        select(TrainerAvailabilitySlot)
        .where(
            and_(
                TrainerAvailabilitySlot.trainer_id == trainer_id,
                TrainerAvailabilitySlot.slot_date == day,
                TrainerAvailabilitySlot.is_booked.is_(True),
            )
        )
        .order_by(TrainerAvailabilitySlot.start_hour.asc())
    )
    result = await session.execute(query)
    return list(result.scalars().all())


@db_operation
async def is_available(
    session: AsyncSession,
    trainer_id: int,
    day: date,
    start_hour: int,
    duration: int,
) -> bool:
    """Whether [start_hour, start_hour + duration) is free on the trainer's day"""
    trainer = await get_trainer(session, trainer_id)
    slots = await get_booked_slots(session, trainer_id, day)
    return is_window_available(trainer, slots, day, start_hour, duration)


async def commit_slot(
    session: AsyncSession,
    trainer: Trainer,
    day: date,
    start_hour: int,
    duration: int,
    booking_id: Optional[int] = None,
    today: Optional[date] = None,
) -> TrainerAvailabilitySlot:
    """
    Append a booked slot. Does not check for overlap; call is_window_available
    first under the trainer lock.
    """
    slot = TrainerAvailabilitySlot(
        trainer_id=trainer.id,
        booking_id=booking_id,
        slot_date=day,
        start_hour=start_hour,
        end_hour=start_hour + duration,
        is_booked=True,
    )
    session.add(slot)
    await session.flush()

    today = today or date.today()
    if day == today:
        slots = await get_booked_slots(session, trainer.id, day)
        if is_fully_booked(trainer, slots, day):
            trainer.availability = TrainerAvailability.booked.value
            await session.flush()
            log_business_event(
                "trainer_fully_booked", "trainer", trainer.id, {"date": day.isoformat()}
            )

    return slot


async def release_booking_slots(
    session: AsyncSession,
    booking_id: int,
    today: Optional[date] = None,
) -> int:
    """
    Mark the slots committed by a booking as free again. Rows are kept.

    Returns the number of released slots.
    """
    result = await session.execute(
        select(TrainerAvailabilitySlot).where(
            and_(
                TrainerAvailabilitySlot.booking_id == booking_id,
                TrainerAvailabilitySlot.is_booked.is_(True),
            )
        )
    )
    slots = list(result.scalars().all())

    for slot in slots:
        slot.is_booked = False
    await session.flush()

    today = today or date.today()
    for trainer_id in {slot.trainer_id for slot in slots if slot.slot_date == today}:
        trainer = await session.get(Trainer, trainer_id)
        if trainer is None or trainer.availability != TrainerAvailability.booked.value:
            continue
        remaining = await get_booked_slots(session, trainer_id, today)
        if not is_fully_booked(trainer, remaining, today):
            trainer.availability = TrainerAvailability.available.value
    await session.flush()

    return len(slots)


@db_operation
async def get_day_availability(
    session: AsyncSession, trainer_id: int, day: date
) -> TrainerDayAvailability:
    """Hour-by-hour view of a trainer's working day"""
    trainer = await get_trainer(session, trainer_id)
    slots = await get_booked_slots(session, trainer_id, day)

    hours = [
        HourAvailability(
            hour=hour,
            time_display=f"{hour}:00 - {hour + 1}:00",
            available=is_window_available(trainer, slots, day, hour, 1),
        )
        for hour in range(trainer.working_hours_start, trainer.working_hours_end)
    ]

    return TrainerDayAvailability(
        trainer_id=trainer.id,
        trainer_name=trainer.display_name,
        date=day,
        working_hours=WorkingHours(
            start=trainer.working_hours_start, end=trainer.working_hours_end
        ),
        booked_slots=[
            BookedSlot(start_hour=slot.start_hour, end_hour=slot.end_hour)
            for slot in slots
        ],
        availability=hours,
        overall_availability=trainer.availability,
    )
