from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Numeric,
    DateTime,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from gymapp.core.database import Base


class TrainerAvailability(str, Enum):
    """Coarse display flag; the slot ledger is the source of truth"""
    available = "available"
    booked = "booked"
    not_available = "not available"


class Trainer(Base):
    __tablename__ = "trainers"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=False, unique=True)
    specialization = Column(String(100), nullable=False)
    bio = Column(Text, nullable=True)

    # Hourly rate in base currency
    rate = Column(Numeric(10, 2), nullable=False, default=0)

    availability = Column(
        String(20), nullable=False, default=TrainerAvailability.available.value
    )

    # Working day, 24h clock, end exclusive
    working_hours_start = Column(Integer, nullable=False, default=9)
    working_hours_end = Column(Integer, nullable=False, default=17)

    # Lifetime earnings from settled bookings
    earnings = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    availability_slots = relationship(
        "TrainerAvailabilitySlot",
        back_populates="trainer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    bookings = relationship("TrainerBooking", back_populates="trainer", passive_deletes=True)

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.name

    def __repr__(self):
        return f"<Trainer(id={self.id}, name={self.name}, availability={self.availability})>"
