from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core.database import db_operation
from gymapp.core.exceptions import ConflictError
from gymapp.core.logging_utils import log_business_event
from gymapp.trainers.crud.availability import get_trainer
from gymapp.trainers.models.trainers import Trainer
from gymapp.trainers.schemas.trainers import TrainerCreate


@db_operation
async def create_trainer(session: AsyncSession, trainer_data: TrainerCreate) -> Trainer:
    data = trainer_data.model_dump()
    data["availability"] = trainer_data.availability.value

    trainer = Trainer(**data)
    session.add(trainer)

    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError(f"Trainer with email '{trainer_data.email}' already exists")

    await session.refresh(trainer)

    log_business_event("trainer_created", "trainer", trainer.id, {"email": trainer.email})
    return trainer


@db_operation
async def get_trainers(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 50,
    specialization: Optional[str] = None,
) -> Tuple[List[Trainer], int]:
    query = select(Trainer)
    count_query = select(func.count(Trainer.id))

    if specialization:
        query = query.where(Trainer.specialization == specialization)
        count_query = count_query.where(Trainer.specialization == specialization)

    total = (await session.execute(count_query)).scalar() or 0

    result = await session.execute(
        query.order_by(Trainer.name.asc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


@db_operation
async def get_trainer_by_id(session: AsyncSession, trainer_id: int) -> Trainer:
    return await get_trainer(session, trainer_id)


@db_operation
async def delete_trainer(session: AsyncSession, trainer_id: int) -> None:
    """Slots cascade; bookings keep their trainer name snapshot"""
    trainer = await get_trainer(session, trainer_id)
    await session.delete(trainer)
    await session.commit()

    log_business_event("trainer_deleted", "trainer", trainer_id)
