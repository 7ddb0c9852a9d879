"""Booking Schemas - Gym and trainer bookings"""
import datetime as dt
import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class BookingStatusEnum(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"


class PaymentStatusEnum(str, Enum):
    pending = "pending"
    initiated = "initiated"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


class PaymentMethodEnum(str, Enum):
    cash = "cash"
    gateway = "gateway"
    card = "card"


class WorkoutTypeEnum(str, Enum):
    general = "General"
    cardio = "Cardio"
    strength = "Strength"
    yoga = "Yoga"
    hiit = "HIIT"
    crossfit = "CrossFit"


# Values older clients still send
LEGACY_PAYMENT_METHODS = {
    "khalti": PaymentMethodEnum.gateway.value,
    "credit_card": PaymentMethodEnum.card.value,
}

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def normalize_payment_method(value):
    if isinstance(value, str):
        value = value.strip().lower()
        return LEGACY_PAYMENT_METHODS.get(value, value)
    return value


def normalize_time(value: str) -> str:
    """Zero-pad "9:05" to "09:05"; "9:5" is rejected"""
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError("Time must be in HH:MM format")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError("Time must be a valid 24-hour clock time")

    return f"{hours:02d}:{minutes:02d}"


def parse_calendar_date(value):
    """Accept plain dates and ISO datetime strings; only the day matters"""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return dt.datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return value


# === Gym bookings ===

class GymBookingCreate(BaseModel):
    """Request to book a gym session"""
    booking_date: dt.date
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    duration: int = Field(..., ge=1, le=24, description="Hours")
    workout_type: WorkoutTypeEnum
    payment_method: PaymentMethodEnum = PaymentMethodEnum.cash
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, v):
        return normalize_time(v)

    @field_validator("booking_date", mode="before")
    @classmethod
    def parse_booking_date(cls, v):
        return parse_calendar_date(v)

    @field_validator("payment_method", mode="before")
    @classmethod
    def accept_legacy_payment_method(cls, v):
        return normalize_payment_method(v)

    class Config:
        json_schema_extra = {
            "example": {
                "booking_date": "2024-05-01",
                "start_time": "09:00",
                "end_time": "10:00",
                "duration": 1,
                "workout_type": "Cardio",
                "payment_method": "cash",
            }
        }


class GymBookingRead(BaseModel):
    id: int
    user_id: str
    booking_date: dt.date
    start_time: str
    end_time: str
    duration: int
    workout_type: str
    amount: Optional[float] = None
    payment_method: PaymentMethodEnum
    payment_status: PaymentStatusEnum
    status: BookingStatusEnum
    gateway_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class GymBookingListResponse(BaseModel):
    bookings: List[GymBookingRead]
    total: int


# === Trainer bookings ===

class TrainerBookingCreate(BaseModel):
    """Request to book a trainer; the trainer comes from the path"""
    session_date: dt.date
    duration: int = Field(..., ge=1, le=24, description="Hours")
    start_hour: int = Field(9, ge=0, le=23)
    session_type: str = Field("personal", min_length=1, max_length=50)
    payment_method: PaymentMethodEnum = PaymentMethodEnum.cash
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("session_date", mode="before")
    @classmethod
    def parse_session_date(cls, v):
        return parse_calendar_date(v)

    @field_validator("payment_method", mode="before")
    @classmethod
    def accept_legacy_payment_method(cls, v):
        return normalize_payment_method(v)

    class Config:
        json_schema_extra = {
            "example": {
                "session_date": "2024-06-01",
                "start_hour": 13,
                "duration": 1,
                "session_type": "personal",
                "payment_method": "gateway",
            }
        }


class TrainerBookingRead(BaseModel):
    id: int
    user_id: str
    trainer_id: Optional[int] = None
    trainer_name: Optional[str] = Field(None, validation_alias="trainer_name_snapshot")
    session_date: dt.date
    start_hour: int
    duration: int
    time: str
    session_type: str
    amount: Optional[float] = None
    payment_method: PaymentMethodEnum
    payment_status: PaymentStatusEnum
    status: BookingStatusEnum
    gateway_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class TrainerBookingListResponse(BaseModel):
    bookings: List[TrainerBookingRead]
    total: int


# === Status updates ===

class BookingStatusUpdate(BaseModel):
    status: BookingStatusEnum


class DeleteBookingResponse(BaseModel):
    success: bool = True
    message: str
