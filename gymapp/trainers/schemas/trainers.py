"""Trainer Schemas"""
import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class TrainerAvailabilityEnum(str, Enum):
    available = "available"
    booked = "booked"
    not_available = "not available"


class TrainerCreate(BaseModel):
    """Admin request to add a trainer"""
    name: str = Field(..., min_length=1, max_length=200)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    specialization: str = Field(..., min_length=1, max_length=100)
    bio: Optional[str] = None
    rate: Decimal = Field(..., ge=0, description="Hourly rate")
    availability: TrainerAvailabilityEnum = TrainerAvailabilityEnum.available
    working_hours_start: int = Field(9, ge=0, le=23)
    working_hours_end: int = Field(17, ge=1, le=24)

    @model_validator(mode="after")
    def check_working_hours(self):
        if self.working_hours_end <= self.working_hours_start:
            raise ValueError("working_hours_end must be after working_hours_start")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Alex Morgan",
                "first_name": "Alex",
                "last_name": "Morgan",
                "email": "alex@example.com",
                "specialization": "Strength",
                "rate": 1200,
                "working_hours_start": 9,
                "working_hours_end": 17,
            }
        }


class TrainerRead(BaseModel):
    id: int
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    specialization: str
    bio: Optional[str] = None
    rate: float
    availability: TrainerAvailabilityEnum
    working_hours_start: int
    working_hours_end: int
    earnings: float
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class TrainerListResponse(BaseModel):
    trainers: List[TrainerRead]
    total: int


class WorkingHours(BaseModel):
    start: int
    end: int


class BookedSlot(BaseModel):
    start_hour: int
    end_hour: int


class HourAvailability(BaseModel):
    hour: int
    time_display: str
    available: bool


class TrainerDayAvailability(BaseModel):
    """One trainer's working day split into hours"""
    trainer_id: int
    trainer_name: str
    date: dt.date
    working_hours: WorkingHours
    booked_slots: List[BookedSlot]
    availability: List[HourAvailability]
    overall_availability: TrainerAvailabilityEnum
