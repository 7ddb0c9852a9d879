"""Bookings Router - Gym bookings plus status changes and deletion for both kinds"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core.database import get_session
from gymapp.core.dependencies import get_current_user
from gymapp.bookings.models import BookingKind
from gymapp.bookings.crud.gym_bookings import create_gym_booking, get_user_gym_bookings
from gymapp.bookings.crud.trainer_bookings import get_user_trainer_bookings
from gymapp.bookings.crud.status import delete_booking, update_booking_status
from gymapp.bookings.schemas.bookings import (
    BookingStatusUpdate,
    DeleteBookingResponse,
    GymBookingCreate,
    GymBookingListResponse,
    GymBookingRead,
    TrainerBookingListResponse,
    TrainerBookingRead,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

READ_SCHEMAS = {
    BookingKind.gym: GymBookingRead,
    BookingKind.trainer: TrainerBookingRead,
}


@router.post("/gym", response_model=GymBookingRead, status_code=status.HTTP_201_CREATED)
async def book_gym_session(
    booking_data: GymBookingCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Book a gym session.

    The price is the workout's hourly rate times the duration. Returns 409 when
    you already hold an overlapping booking of the same workout type that day.
    """
    return await create_gym_booking(db, current_user["id"], booking_data)


@router.get("/gym", response_model=GymBookingListResponse)
async def get_my_gym_bookings(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Your gym bookings, newest first"""
    bookings, total = await get_user_gym_bookings(db, current_user["id"])
    return GymBookingListResponse(bookings=bookings, total=total)


@router.get("/trainer", response_model=TrainerBookingListResponse)
async def get_my_trainer_bookings(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Your trainer bookings, newest first"""
    bookings, total = await get_user_trainer_bookings(db, current_user["id"])
    return TrainerBookingListResponse(bookings=bookings, total=total)


@router.patch("/{booking_type}/{booking_id}/status")
async def change_booking_status(
    status_update: BookingStatusUpdate,
    booking_type: BookingKind = Path(..., description="gym or trainer"),
    booking_id: int = Path(..., ge=1),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Change a booking's status.

    Owners may only cancel. Admins may set any status; completing a booking
    also marks its payment completed. Cancelled and completed bookings cannot
    be changed.
    """
    booking = await update_booking_status(
        db, booking_type, booking_id, status_update.status.value, current_user
    )
    return READ_SCHEMAS[booking_type].model_validate(booking)


@router.delete("/{booking_type}/{booking_id}", response_model=DeleteBookingResponse)
async def remove_booking(
    booking_type: BookingKind = Path(..., description="gym or trainer"),
    booking_id: int = Path(..., ge=1),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Delete a cancelled or completed booking (admins: any booking)"""
    await delete_booking(db, booking_type, booking_id, current_user)
    return DeleteBookingResponse(message="Booking deleted successfully")
