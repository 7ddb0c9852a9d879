"""Transaction Schemas - Unified payment history across booking kinds"""
import datetime as dt
from typing import Optional

from pydantic import BaseModel

from gymapp.bookings.schemas.bookings import (
    BookingStatusEnum,
    PaymentMethodEnum,
    PaymentStatusEnum,
)
from gymapp.payments.schemas.payments import BookingTypeEnum


class TransactionItem(BaseModel):
    """One booking seen as a payment record"""
    id: int
    description: str
    type: BookingTypeEnum
    date: dt.date

    # Always resolved, never 0
    amount: float

    payment_method: PaymentMethodEnum
    payment_status: PaymentStatusEnum
    status: BookingStatusEnum
    created_at: Optional[dt.datetime] = None
