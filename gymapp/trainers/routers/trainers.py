"""Trainers Router - Trainer directory, availability and booking"""
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core.database import get_session
from gymapp.core.dependencies import get_current_user, require_admin
from gymapp.bookings.crud.trainer_bookings import create_trainer_booking
from gymapp.bookings.schemas.bookings import TrainerBookingCreate, TrainerBookingRead
from gymapp.trainers.crud.availability import get_day_availability
from gymapp.trainers.crud.trainers import (
    create_trainer,
    delete_trainer,
    get_trainer_by_id,
    get_trainers,
)
from gymapp.trainers.schemas.trainers import (
    TrainerCreate,
    TrainerDayAvailability,
    TrainerListResponse,
    TrainerRead,
)

router = APIRouter(prefix="/trainers", tags=["Trainers"])


@router.get("", response_model=TrainerListResponse)
async def list_trainers(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    specialization: Optional[str] = Query(None, description="Filter by specialization"),
    db: AsyncSession = Depends(get_session),
):
    """All trainers, alphabetically"""
    trainers, total = await get_trainers(db, skip, limit, specialization)
    return TrainerListResponse(trainers=trainers, total=total)


@router.post("", response_model=TrainerRead, status_code=status.HTTP_201_CREATED)
async def add_trainer(
    trainer_data: TrainerCreate,
    current_user: Dict[str, Any] = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Add a trainer (admin only)"""
    return await create_trainer(db, trainer_data)


@router.get("/{trainer_id}", response_model=TrainerRead)
async def get_trainer_details(
    trainer_id: int,
    db: AsyncSession = Depends(get_session),
):
    return await get_trainer_by_id(db, trainer_id)


@router.delete("/{trainer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_trainer(
    trainer_id: int,
    current_user: Dict[str, Any] = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Delete a trainer (admin only).

    Existing bookings are kept and still show the trainer's name.
    """
    await delete_trainer(db, trainer_id)


@router.get("/{trainer_id}/availability", response_model=TrainerDayAvailability)
async def get_trainer_availability(
    trainer_id: int,
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    db: AsyncSession = Depends(get_session),
):
    """
    Hour-by-hour availability across the trainer's working hours.
    """
    return await get_day_availability(db, trainer_id, day or date.today())


@router.post(
    "/{trainer_id}/book",
    response_model=TrainerBookingRead,
    status_code=status.HTTP_201_CREATED,
)
async def book_trainer(
    trainer_id: int,
    booking_data: TrainerBookingCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Book a trainer.

    The price is the trainer's hourly rate times the duration. Returns 400 when
    the trainer is outside working hours or already booked in that window.
    """
    return await create_trainer_booking(db, current_user["id"], trainer_id, booking_data)
