"""Payment Schemas - Gateway initiation, verification and webhooks"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from gymapp.bookings.schemas.bookings import (
    BookingStatusEnum,
    PaymentMethodEnum,
    PaymentStatusEnum,
)


class BookingTypeEnum(str, Enum):
    gym = "gym"
    trainer = "trainer"


class CustomerInfo(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)


class InitiatePaymentRequest(BaseModel):
    """Request to start a gateway payment; the amount always comes from the booking"""
    booking_id: int
    booking_type: BookingTypeEnum
    return_url: Optional[str] = Field(None, max_length=500)
    customer_info: Optional[CustomerInfo] = None

    class Config:
        json_schema_extra = {
            "example": {
                "booking_id": 1,
                "booking_type": "gym",
                "return_url": "http://localhost:5173/dashboard/payment-confirmation",
            }
        }


class InitiatePaymentResponse(BaseModel):
    success: bool = True
    message: str = "Payment initiated successfully"
    booking_id: int
    booking_type: BookingTypeEnum
    gateway_reference: str
    payment_url: Optional[str] = None
    expires_at: Optional[str] = None
    amount: float
    amount_minor: int
    reused: bool = False


class VerifyPaymentRequest(BaseModel):
    """Gateway reference (pidx) returned at initiation"""
    pidx: str = Field(..., min_length=1, max_length=128)


class PaymentBookingState(BaseModel):
    booking_id: int
    booking_type: BookingTypeEnum
    status: BookingStatusEnum
    payment_status: PaymentStatusEnum
    payment_method: PaymentMethodEnum
    transaction_id: Optional[str] = None
    amount: Optional[float] = None


class VerifyPaymentResponse(BaseModel):
    success: bool
    message: str
    gateway_status: Optional[str] = None
    booking: Optional[PaymentBookingState] = None


class WebhookPayload(BaseModel):
    """Inbound gateway notification; unknown fields are kept as payment details"""
    model_config = ConfigDict(extra="allow")

    pidx: Optional[str] = None
    status: Optional[str] = None
    transaction_id: Optional[str] = None
    purchase_order_id: Optional[str] = None


class WebhookAck(BaseModel):
    received: bool = True


class DirectConfirmRequest(BaseModel):
    """Client-reported payment result, accepted only where enabled"""
    booking_id: int
    booking_type: BookingTypeEnum
    status: str = Field(..., min_length=1, max_length=50, description="Gateway status, e.g. Completed")
    transaction_id: Optional[str] = Field(None, max_length=128)


class PaymentStatusResponse(PaymentBookingState):
    gateway_reference: Optional[str] = None


# === Gateway client results ===

class GatewayInitiation(BaseModel):
    gateway_reference: str
    payment_url: Optional[str] = None
    expires_at: Optional[str] = None


class GatewayLookup(BaseModel):
    gateway_reference: str
    status: Optional[str] = None
    transaction_id: Optional[str] = None
    total_amount: Optional[int] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class ProductLine(BaseModel):
    identity: str
    name: str
    total_price: int
    quantity: int = 1
    unit_price: int


class GatewayInitiationRequest(BaseModel):
    """Payload sent to the gateway's initiate endpoint, amounts in minor units"""
    return_url: str
    website_url: str
    amount: int
    purchase_order_id: str
    purchase_order_name: str
    customer_info: Optional[Dict[str, Any]] = None
    product_details: List[ProductLine]
    amount_breakdown: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
