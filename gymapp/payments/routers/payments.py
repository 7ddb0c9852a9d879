"""Payments Router - Gateway payments for gym and trainer bookings"""
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core import config
from gymapp.core.database import get_session
from gymapp.core.dependencies import get_current_user
from gymapp.bookings.models import BookingKind
from gymapp.payments.schemas.payments import (
    DirectConfirmRequest,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentStatusResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAck,
)
from gymapp.payments.services.gateway import PaymentGateway, get_payment_gateway
from gymapp.payments.services.reconciliation import (
    PAYMENT_CONFIRMATION_PATH,
    direct_confirm,
    get_payment_status,
    handle_webhook,
    initiate_payment,
    verify_payment,
)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/initiate", response_model=InitiatePaymentResponse)
async def initiate_booking_payment(
    payment_request: InitiatePaymentRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_session),
):
    """
    Start a gateway payment for one of your bookings.

    The amount is taken from the booking. Returns the gateway reference (pidx)
    and the hosted payment page to redirect to.
    """
    return await initiate_payment(db, gateway, current_user, payment_request)


@router.post(
    "/verify",
    response_model=VerifyPaymentResponse,
    responses={
        202: {"model": VerifyPaymentResponse, "description": "Payment still pending"},
        400: {"model": VerifyPaymentResponse, "description": "Payment failed"},
    },
)
async def verify_booking_payment(
    verify_request: VerifyPaymentRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_session),
):
    """
    Verify a payment by asking the gateway.

    200 when completed or refunded, 202 while pending, 400 when it failed.
    """
    status_code, result = await verify_payment(db, gateway, verify_request.pidx)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    x_payment_signature: Optional[str] = Header(None, alias="X-Payment-Signature"),
    db: AsyncSession = Depends(get_session),
):
    """
    Gateway notification endpoint.

    Always acknowledged; problems are logged and tracked, never returned.
    """
    body = await request.body()
    await handle_webhook(db, body, x_payment_signature)
    return WebhookAck()


@router.post("/confirm", response_model=VerifyPaymentResponse)
async def confirm_booking_payment(
    confirm_request: DirectConfirmRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Apply a client-reported payment result.

    Disabled unless PAYMENT_DIRECT_CONFIRM_ENABLED is set.
    """
    return await direct_confirm(db, current_user, confirm_request)


@router.get("/status/{booking_type}/{booking_id}", response_model=PaymentStatusResponse)
async def get_booking_payment_status(
    booking_type: BookingKind,
    booking_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await get_payment_status(db, current_user, booking_type, booking_id)


@router.get("/return", include_in_schema=False)
async def payment_return(request: Request):
    """Send the user back from the gateway to the frontend confirmation page"""
    if request.query_params.get("pidx"):
        query = urlencode(list(request.query_params.multi_items()))
        return RedirectResponse(
            f"{config.FRONTEND_BASE_URL}{PAYMENT_CONFIRMATION_PATH}?{query}",
            status_code=status.HTTP_302_FOUND,
        )
    return RedirectResponse(
        f"{config.FRONTEND_BASE_URL}/dashboard", status_code=status.HTTP_302_FOUND
    )
