"""Shared booking columns and enums for gym and trainer bookings"""
from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Numeric,
    DateTime,
    JSON,
)
from sqlalchemy.sql import func


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"


class PaymentStatus(str, Enum):
    pending = "pending"
    initiated = "initiated"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


class PaymentMethod(str, Enum):
    cash = "cash"
    gateway = "gateway"
    card = "card"


class BookingKind(str, Enum):
    gym = "gym"
    trainer = "trainer"


# A booking in one of these states only changes by deletion
CLOSED_BOOKING_STATUSES = (BookingStatus.cancelled.value, BookingStatus.completed.value)


class BookingMixin:
    """Booking aggregate columns common to both booking kinds"""

    id = Column(Integer, primary_key=True, index=True)

    # Owner reference from the identity service, immutable
    user_id = Column(String(64), nullable=False, index=True)

    # Price. total_price/price only exist on imported legacy rows
    amount = Column(Numeric(10, 2), nullable=True)
    total_price = Column(Numeric(10, 2), nullable=True)
    price = Column(Numeric(10, 2), nullable=True)

    payment_method = Column(String(20), nullable=False, default=PaymentMethod.cash.value)
    payment_status = Column(
        String(20), nullable=False, default=PaymentStatus.pending.value, index=True
    )
    status = Column(String(20), nullable=False, default=BookingStatus.pending.value, index=True)

    # Gateway correlation key (pidx), set on initiation
    gateway_reference = Column(String(128), nullable=True, unique=True, index=True)
    # Hosted payment page for the reference, reused until it expires
    payment_url = Column(String(500), nullable=True)
    payment_expires_at = Column(DateTime(timezone=True), nullable=True)
    transaction_id = Column(String(128), nullable=True)
    payment_details = Column(JSON, nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
