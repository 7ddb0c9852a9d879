"""
Payment reconciliation - every payment channel converges on apply_gateway_status

Channels: initiation (starts a gateway payment), verify-by-lookup (asks the
gateway), webhook (gateway pushes) and direct confirm (client reports, only
where enabled).
"""
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple, Optional, Tuple, Union

from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymapp.core import config
from gymapp.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from gymapp.core.logging_utils import error_tracker, log_business_event
from gymapp.core.notifier import notify_operators
from gymapp.bookings.models import (
    BookingKind,
    PaymentMethod,
    PaymentStatus,
    GymBooking,
    TrainerBooking,
)
from gymapp.bookings.crud.status import get_owned_booking
from gymapp.bookings.services.payment_state import (
    conditional_update,
    is_closed,
    transition_payment,
)
from gymapp.bookings.services.pricing import booking_amount, to_minor_units
from gymapp.payments.schemas.payments import (
    DirectConfirmRequest,
    GatewayInitiationRequest,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentBookingState,
    PaymentStatusResponse,
    ProductLine,
    VerifyPaymentResponse,
)
from gymapp.payments.services.gateway import PaymentGateway
from gymapp.trainers.models import Trainer

logger = logging.getLogger(__name__)

Booking = Union[GymBooking, TrainerBooking]

PAYMENT_CONFIRMATION_PATH = "/dashboard/payment-confirmation"
SIGNATURE_HEADER = "X-Payment-Signature"

GATEWAY_STATUS_MAP = {
    "completed": PaymentStatus.completed,
    "pending": None,
    "initiated": None,
    "refunded": PaymentStatus.refunded,
    "partially refunded": PaymentStatus.refunded,
}


class ReconciliationResult(NamedTuple):
    booking: Booking
    target: Optional[PaymentStatus]  # None when the gateway status changes nothing
    applied: bool


def map_gateway_status(gateway_status: Optional[str]) -> Optional[PaymentStatus]:
    """
    Map a gateway status to the payment state it leads to.

    Pending and initiated map to None (no change); unknown statuses such as
    Expired or User canceled are failures. A missing status changes nothing.
    """
    if not gateway_status or not gateway_status.strip():
        return None

    key = " ".join(gateway_status.replace("_", " ").lower().split())
    if key in GATEWAY_STATUS_MAP:
        return GATEWAY_STATUS_MAP[key]
    return PaymentStatus.failed


def booking_state(booking: Booking) -> PaymentBookingState:
    return PaymentBookingState(
        booking_id=booking.id,
        booking_type=booking.kind.value,
        status=booking.status,
        payment_status=booking.payment_status,
        payment_method=booking.payment_method,
        transaction_id=booking.transaction_id,
        amount=float(booking_amount(booking)),
    )


async def find_booking_by_reference(session: AsyncSession, gateway_reference: str) -> Optional[Booking]:
    """Gym bookings first, then trainer bookings"""
    for model in (GymBooking, TrainerBooking):
        result = await session.execute(
            select(model).where(model.gateway_reference == gateway_reference)
        )
        booking = result.scalar_one_or_none()
        if booking:
            return booking
    return None


async def apply_gateway_status(
    session: AsyncSession,
    booking: Booking,
    gateway_status: Optional[str],
    transaction_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
    source: str = "gateway",
) -> ReconciliationResult:
    target = map_gateway_status(gateway_status)

    if target is None:
        logger.info(
            f"Gateway status {gateway_status!r} leaves booking unchanged",
            extra={"booking_id": booking.id, "booking_kind": booking.kind.value, "source": source},
        )
        return ReconciliationResult(booking, None, False)

    if is_closed(booking):
        logger.warning(
            f"Payment event for {booking.status} booking ignored",
            extra={
                "booking_id": booking.id,
                "booking_kind": booking.kind.value,
                "gateway_status": gateway_status,
                "source": source,
            },
        )
        error_tracker.track_error(
            "PaymentEventOnClosedBooking",
            f"{gateway_status} for {booking.kind.value} booking {booking.id} ({booking.status})",
            {"booking_id": booking.id, "source": source, "transaction_id": transaction_id},
        )
        return ReconciliationResult(booking, target, False)

    applied = await transition_payment(session, booking, target, transaction_id, payload)

    if applied and target == PaymentStatus.completed:
        notify_operators(
            f"💰 Payment completed for {booking.kind.value} booking #{booking.id}\n"
            f"Amount: {booking_amount(booking)}\n"
            f"Transaction: {transaction_id or '-'}"
        )

    return ReconciliationResult(booking, target, applied)


def parse_gateway_time(value: Optional[str]) -> Optional[datetime]:
    """ISO timestamp from the gateway, in UTC; None when absent or unreadable"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning(f"Unreadable gateway timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def has_live_payment_page(booking: Booking, now: Optional[datetime] = None) -> bool:
    """An initiated payment whose hosted page has not expired yet"""
    if booking.payment_status != PaymentStatus.initiated.value:
        return False
    if not (booking.gateway_reference and booking.payment_url and booking.payment_expires_at):
        return False

    expires_at = booking.payment_expires_at
    # SQLite hands back naive datetimes; values are stored in UTC
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at > (now or datetime.now(timezone.utc))


def purchase_order_id(booking: Booking) -> str:
    # Ids are per table, so the kind keeps order ids unique
    return f"{booking.kind.value}-{booking.id}"


async def purchase_order_name(session: AsyncSession, booking: Booking) -> str:
    if booking.kind == BookingKind.gym:
        return f"Gym Session: {booking.workout_type}"

    trainer = await session.get(Trainer, booking.trainer_id) if booking.trainer_id else None
    name = trainer.display_name if trainer else booking.trainer_name_snapshot
    return f"Trainer Session with {name or 'Trainer'}"


async def initiate_payment(
    session: AsyncSession,
    gateway: PaymentGateway,
    user: Dict[str, Any],
    request: InitiatePaymentRequest,
) -> InitiatePaymentResponse:
    """
    Start a gateway payment for one of the caller's bookings.

    The amount is the booking's own resolved price, never a client value.
    While an earlier payment page is still open its reference is handed back,
    so a payment made on that page still matches the booking.
    """
    kind = BookingKind(request.booking_type.value)
    booking = await get_owned_booking(session, kind, request.booking_id, user, allow_admin=False)

    if booking.payment_status == PaymentStatus.completed.value:
        raise ConflictError(
            "Payment has already been completed for this booking",
            details={"booking_id": booking.id},
            status_code=400,
        )

    if is_closed(booking):
        raise ConflictError(
            f"Cannot pay for a {booking.status} booking",
            details={"booking_id": booking.id, "status": booking.status},
            status_code=400,
        )

    amount = booking_amount(booking)
    amount_minor = to_minor_units(amount)

    if has_live_payment_page(booking):
        logger.info(
            "Reusing open payment page",
            extra={"booking_id": booking.id, "gateway_reference": booking.gateway_reference},
        )
        return InitiatePaymentResponse(
            booking_id=booking.id,
            booking_type=kind.value,
            gateway_reference=booking.gateway_reference,
            payment_url=booking.payment_url,
            expires_at=booking.payment_expires_at.isoformat(),
            amount=float(amount),
            amount_minor=amount_minor,
            reused=True,
        )

    order_id = purchase_order_id(booking)
    order_name = await purchase_order_name(session, booking)

    gateway_request = GatewayInitiationRequest(
        return_url=request.return_url or f"{config.FRONTEND_BASE_URL}{PAYMENT_CONFIRMATION_PATH}",
        website_url=config.FRONTEND_BASE_URL,
        amount=amount_minor,
        purchase_order_id=order_id,
        purchase_order_name=order_name,
        customer_info=(
            request.customer_info.model_dump(exclude_none=True)
            if request.customer_info
            else None
        ),
        product_details=[
            ProductLine(
                identity=order_id,
                name=order_name,
                total_price=amount_minor,
                quantity=1,
                unit_price=amount_minor,
            )
        ],
        amount_breakdown=[
            {
                "label": "Gym Session Fee" if kind == BookingKind.gym else "Trainer Session Fee",
                "amount": amount_minor,
            }
        ],
        metadata={"booking_type": kind.value, "user_id": str(user["id"])},
    )

    initiation = await gateway.initiate(gateway_request)

    applied = await conditional_update(
        session,
        type(booking),
        booking.id,
        {
            "payment_method": PaymentMethod.gateway.value,
            "payment_status": PaymentStatus.initiated.value,
            "gateway_reference": initiation.gateway_reference,
            "payment_url": initiation.payment_url,
            "payment_expires_at": parse_gateway_time(initiation.expires_at),
        },
        exclude_payment=PaymentStatus.completed,
    )
    await session.commit()
    await session.refresh(booking)

    if not applied:
        raise ConflictError(
            "Booking payment state changed while initiating payment",
            details={"booking_id": booking.id, "payment_status": booking.payment_status},
        )

    log_business_event(
        "payment_initiated",
        f"{kind.value}_booking",
        booking.id,
        {"gateway_reference": initiation.gateway_reference, "amount": str(amount)},
    )

    return InitiatePaymentResponse(
        booking_id=booking.id,
        booking_type=kind.value,
        gateway_reference=initiation.gateway_reference,
        payment_url=initiation.payment_url,
        expires_at=initiation.expires_at,
        amount=float(amount),
        amount_minor=amount_minor,
    )


async def verify_payment(
    session: AsyncSession,
    gateway: PaymentGateway,
    gateway_reference: str,
) -> Tuple[int, VerifyPaymentResponse]:
    """
    Ask the gateway for the reference's status and apply it.

    Returns the HTTP status to answer with: 200 for completed or refunded,
    202 while the payment is pending, 400 when it failed. An event that does
    not apply answers 200 with the booking's unchanged state.
    """
    booking = await find_booking_by_reference(session, gateway_reference)
    if not booking:
        raise NotFoundError("Booking", gateway_reference)

    lookup = await gateway.lookup(gateway_reference)
    result = await apply_gateway_status(
        session,
        booking,
        lookup.status,
        lookup.transaction_id,
        lookup.raw,
        source="lookup",
    )

    if result.target is None:
        return 202, VerifyPaymentResponse(
            success=False,
            message="Payment is pending",
            gateway_status=lookup.status,
            booking=booking_state(booking),
        )

    if booking.payment_status == PaymentStatus.failed.value == result.target.value:
        return 400, VerifyPaymentResponse(
            success=False,
            message=f"Payment {lookup.status}",
            gateway_status=lookup.status,
            booking=booking_state(booking),
        )

    if booking.payment_status != result.target.value:
        # The gateway event did not apply (e.g. Expired after a completed payment)
        return 200, VerifyPaymentResponse(
            success=False,
            message=f"Payment status unchanged: {booking.payment_status}",
            gateway_status=lookup.status,
            booking=booking_state(booking),
        )

    return 200, VerifyPaymentResponse(
        success=True,
        message=(
            "Payment verified successfully"
            if result.target == PaymentStatus.completed
            else "Payment refunded"
        ),
        gateway_status=lookup.status,
        booking=booking_state(booking),
    )


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """HMAC-SHA256 of the raw body, hex encoded, optionally prefixed with "sha256=" """
    if not signature:
        return False

    signature = signature.strip().lower()
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]

    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def _track_webhook_problem(error_type: str, message: str, context: Dict[str, Any] = None) -> None:
    logger.warning(f"Webhook not applied: {message}", extra=context or {})
    error_tracker.track_error(error_type, message, context)


async def handle_webhook(
    session: AsyncSession,
    body: bytes,
    signature: Optional[str] = None,
) -> None:
    """
    Apply a gateway notification. Never raises: the gateway always gets an
    acknowledgement and problems are logged and tracked instead.
    """
    try:
        secret = config.PAYMENT_WEBHOOK_SECRET
        if secret and not verify_webhook_signature(body, signature, secret):
            _track_webhook_problem("WebhookSignatureInvalid", "invalid or missing signature")
            return

        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            _track_webhook_problem("WebhookPayloadInvalid", "body is not valid JSON")
            return

        if not isinstance(payload, dict):
            _track_webhook_problem("WebhookPayloadInvalid", "body is not a JSON object")
            return

        reference = payload.get("pidx")
        if not reference:
            _track_webhook_problem("WebhookPayloadInvalid", "missing payment reference")
            return

        booking = await find_booking_by_reference(session, str(reference))
        if not booking:
            _track_webhook_problem(
                "WebhookUnknownReference",
                f"no booking for reference {reference}",
                {"gateway_reference": reference},
            )
            return

        await apply_gateway_status(
            session,
            booking,
            payload.get("status"),
            payload.get("transaction_id"),
            payload,
            source="webhook",
        )

    except Exception as e:
        logger.exception(f"Webhook processing failed: {str(e)}")
        error_tracker.track_error(
            "WebhookProcessingError", str(e), {"exception_type": type(e).__name__}
        )
        await session.rollback()


async def direct_confirm(
    session: AsyncSession,
    user: Dict[str, Any],
    request: DirectConfirmRequest,
) -> VerifyPaymentResponse:
    """Client-reported payment result, run through the same state machine"""
    if not config.PAYMENT_DIRECT_CONFIRM_ENABLED:
        raise AuthorizationError("Direct payment confirmation is disabled")

    kind = BookingKind(request.booking_type.value)
    booking = await get_owned_booking(session, kind, request.booking_id, user)

    result = await apply_gateway_status(
        session,
        booking,
        request.status,
        request.transaction_id,
        {
            "source": "direct_confirm",
            "status": request.status,
            "transaction_id": request.transaction_id,
            "confirmed_by": str(user["id"]),
        },
        source="direct_confirm",
    )

    return VerifyPaymentResponse(
        success=result.applied,
        message="Payment status updated" if result.applied else "Payment status unchanged",
        gateway_status=request.status,
        booking=booking_state(booking),
    )


async def get_payment_status(
    session: AsyncSession,
    user: Dict[str, Any],
    kind: BookingKind,
    booking_id: int,
) -> PaymentStatusResponse:
    booking = await get_owned_booking(session, kind, booking_id, user)
    state = booking_state(booking)
    return PaymentStatusResponse(**state.model_dump(), gateway_reference=booking.gateway_reference)
