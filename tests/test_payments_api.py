import hashlib
import hmac
import json
from datetime import datetime, timezone
from decimal import Decimal

from gymapp.core import config
from gymapp.core.exceptions import UpstreamError
from gymapp.core.logging_utils import error_tracker
from gymapp.bookings.models import GymBooking, TrainerBooking
from gymapp.trainers.models import Trainer

PAYMENTS_URL = "/api/v1/payments"


async def initiate(client, headers, booking_id, booking_type="gym", **extra):
    return await client.post(
        f"{PAYMENTS_URL}/initiate",
        json={"booking_id": booking_id, "booking_type": booking_type, **extra},
        headers=headers,
    )


async def test_initiate_uses_the_booking_amount(client, user_headers, make_gym_booking, fake_gateway, fetch):
    booking = await make_gym_booking(amount=Decimal("150"))

    response = await initiate(client, user_headers, booking.id)

    assert response.status_code == 200
    data = response.json()
    assert data["gateway_reference"] == "pidx-1"
    assert data["payment_url"] == "https://pay.test/pidx-1"
    assert data["amount"] == 150.0
    assert data["amount_minor"] == 15000

    sent = fake_gateway.initiated[0]
    assert sent.amount == 15000
    assert sent.purchase_order_id == f"gym-{booking.id}"
    assert sent.purchase_order_name == "Gym Session: Cardio"
    assert sent.return_url == f"{config.FRONTEND_BASE_URL}/dashboard/payment-confirmation"
    assert sent.product_details[0].unit_price == 15000

    stored = await fetch(GymBooking, booking.id)
    assert stored.payment_status == "initiated"
    assert stored.payment_method == "gateway"
    assert stored.gateway_reference == "pidx-1"


async def test_initiate_trainer_booking_names_the_trainer(
    client, user_headers, make_trainer, make_trainer_booking, fake_gateway
):
    trainer = await make_trainer(first_name=None, last_name=None, name="Coach Kim")
    booking = await make_trainer_booking(trainer)

    response = await initiate(
        client, user_headers, booking.id, "trainer", return_url="https://app.test/back"
    )

    assert response.status_code == 200
    assert fake_gateway.initiated[0].purchase_order_name == "Trainer Session with Coach Kim"
    assert fake_gateway.initiated[0].return_url == "https://app.test/back"


async def test_initiate_rejects_completed_payment(client, user_headers, make_gym_booking):
    booking = await make_gym_booking(payment_status="completed", status="confirmed")

    response = await initiate(client, user_headers, booking.id)

    assert response.status_code == 400
    assert response.json()["error"] == "CONFLICT"


async def test_initiate_rejects_cancelled_booking(client, user_headers, make_gym_booking):
    booking = await make_gym_booking(status="cancelled")

    response = await initiate(client, user_headers, booking.id)

    assert response.status_code == 400


async def test_initiate_for_someone_elses_booking(client, other_headers, make_gym_booking):
    booking = await make_gym_booking(user_id="user-1")

    response = await initiate(client, other_headers, booking.id)

    assert response.status_code == 404


async def test_second_initiate_reuses_the_open_payment_page(
    client, user_headers, make_gym_booking, fake_gateway, fetch
):
    booking = await make_gym_booking()

    first = await initiate(client, user_headers, booking.id)
    again = await initiate(client, user_headers, booking.id)

    assert again.status_code == 200
    assert again.json()["gateway_reference"] == first.json()["gateway_reference"] == "pidx-1"
    assert again.json()["payment_url"] == "https://pay.test/pidx-1"
    assert again.json()["reused"] is True
    assert len(fake_gateway.initiated) == 1

    # Paying on the first page still settles the booking
    await client.post(f"{PAYMENTS_URL}/webhook", json={"pidx": "pidx-1", "status": "Completed"})
    assert (await fetch(GymBooking, booking.id)).payment_status == "completed"


async def test_expired_payment_page_gets_a_new_reference(
    client, user_headers, make_gym_booking, fake_gateway, fetch
):
    booking = await make_gym_booking(
        payment_status="initiated",
        gateway_reference="pidx-old",
        payment_url="https://pay.test/pidx-old",
        payment_expires_at=datetime(2020, 1, 1, tzinfo=timezone.utc),
    )

    response = await initiate(client, user_headers, booking.id)

    assert response.json()["gateway_reference"] == "pidx-1"
    assert response.json()["reused"] is False
    assert len(fake_gateway.initiated) == 1
    assert (await fetch(GymBooking, booking.id)).gateway_reference == "pidx-1"


async def test_verify_pending_then_completed(client, user_headers, make_gym_booking, fake_gateway, fetch):
    booking = await make_gym_booking()
    await initiate(client, user_headers, booking.id)

    pending = await client.post(f"{PAYMENTS_URL}/verify", json={"pidx": "pidx-1"}, headers=user_headers)
    assert pending.status_code == 202
    assert (await fetch(GymBooking, booking.id)).payment_status == "initiated"

    fake_gateway.statuses["pidx-1"] = "Completed"
    completed = await client.post(f"{PAYMENTS_URL}/verify", json={"pidx": "pidx-1"}, headers=user_headers)

    assert completed.status_code == 200
    data = completed.json()
    assert data["success"] is True
    assert data["booking"]["payment_status"] == "completed"
    assert data["booking"]["status"] == "confirmed"
    assert data["booking"]["transaction_id"] == "txn-pidx-1"


async def test_verify_expired_payment_fails(client, user_headers, make_gym_booking, fake_gateway):
    booking = await make_gym_booking()
    await initiate(client, user_headers, booking.id)
    fake_gateway.statuses["pidx-1"] = "Expired"

    response = await client.post(f"{PAYMENTS_URL}/verify", json={"pidx": "pidx-1"}, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["booking"]["payment_status"] == "failed"


async def test_verify_stale_failure_after_completion_reports_completed(
    client, user_headers, make_gym_booking, fake_gateway, fetch
):
    booking = await make_gym_booking(
        payment_status="completed", status="confirmed", gateway_reference="pidx-done"
    )
    fake_gateway.statuses["pidx-done"] = "Expired"

    response = await client.post(f"{PAYMENTS_URL}/verify", json={"pidx": "pidx-done"}, headers=user_headers)

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["booking"]["payment_status"] == "completed"
    assert (await fetch(GymBooking, booking.id)).payment_status == "completed"


async def test_verify_unknown_reference(client, user_headers):
    response = await client.post(f"{PAYMENTS_URL}/verify", json={"pidx": "nope"}, headers=user_headers)

    assert response.status_code == 404


async def test_verify_gateway_timeout_changes_nothing(
    client, user_headers, make_gym_booking, fake_gateway, fetch
):
    booking = await make_gym_booking()
    await initiate(client, user_headers, booking.id)
    fake_gateway.lookup_error = UpstreamError("payment_gateway", "Payment gateway timed out", status_code=504)

    response = await client.post(f"{PAYMENTS_URL}/verify", json={"pidx": "pidx-1"}, headers=user_headers)

    assert response.status_code == 504
    assert response.json()["error"] == "UPSTREAM_ERROR"
    assert (await fetch(GymBooking, booking.id)).payment_status == "initiated"


async def test_webhook_always_acknowledges(client):
    unknown = await client.post(f"{PAYMENTS_URL}/webhook", json={"pidx": "ghost", "status": "Completed"})
    no_reference = await client.post(f"{PAYMENTS_URL}/webhook", json={"status": "Completed"})
    garbage = await client.post(
        f"{PAYMENTS_URL}/webhook", content=b"not json", headers={"Content-Type": "application/json"}
    )

    for response in (unknown, no_reference, garbage):
        assert response.status_code == 200
        assert response.json() == {"received": True}

    counts = error_tracker.get_stats()["error_counts"]
    assert counts["WebhookUnknownReference"] == 1
    assert counts["WebhookPayloadInvalid"] == 2


async def test_webhook_refund_scenario(client, make_trainer, make_trainer_booking, fetch):
    trainer = await make_trainer()
    booking = await make_trainer_booking(
        trainer, amount=Decimal("1000"), payment_status="initiated", gateway_reference="pidx-t"
    )
    completed = {"pidx": "pidx-t", "status": "Completed", "transaction_id": "txn-t"}

    await client.post(f"{PAYMENTS_URL}/webhook", json=completed)
    await client.post(f"{PAYMENTS_URL}/webhook", json=completed)

    stored = await fetch(TrainerBooking, booking.id)
    assert stored.payment_status == "completed"
    assert stored.status == "confirmed"
    assert (await fetch(Trainer, trainer.id)).earnings == Decimal("1000")

    refund = await client.post(f"{PAYMENTS_URL}/webhook", json={"pidx": "pidx-t", "status": "Refunded"})

    assert refund.status_code == 200
    stored = await fetch(TrainerBooking, booking.id)
    assert stored.payment_status == "refunded"
    assert stored.status == "confirmed"
    assert (await fetch(Trainer, trainer.id)).earnings == Decimal("0")


async def test_webhook_signature_checked_when_secret_set(client, make_gym_booking, fetch, monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_WEBHOOK_SECRET", "hook-secret")
    booking = await make_gym_booking(payment_status="initiated", gateway_reference="pidx-s")
    body = json.dumps({"pidx": "pidx-s", "status": "Completed"}).encode()

    forged = await client.post(
        f"{PAYMENTS_URL}/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Payment-Signature": "bad"},
    )
    assert forged.status_code == 200
    assert (await fetch(GymBooking, booking.id)).payment_status == "initiated"
    assert error_tracker.get_stats()["error_counts"]["WebhookSignatureInvalid"] == 1

    signature = hmac.new(b"hook-secret", body, hashlib.sha256).hexdigest()
    signed = await client.post(
        f"{PAYMENTS_URL}/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Payment-Signature": signature},
    )
    assert signed.status_code == 200
    assert (await fetch(GymBooking, booking.id)).payment_status == "completed"


async def test_direct_confirm_disabled(client, user_headers, make_gym_booking, monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_DIRECT_CONFIRM_ENABLED", False)
    booking = await make_gym_booking()

    response = await client.post(
        f"{PAYMENTS_URL}/confirm",
        json={"booking_id": booking.id, "booking_type": "gym", "status": "Completed"},
        headers=user_headers,
    )

    assert response.status_code == 403


async def test_direct_confirm_uses_the_state_machine(
    client, user_headers, other_headers, make_gym_booking, monkeypatch, fetch
):
    monkeypatch.setattr(config, "PAYMENT_DIRECT_CONFIRM_ENABLED", True)
    booking = await make_gym_booking()
    body = {"booking_id": booking.id, "booking_type": "gym", "status": "Completed", "transaction_id": "t-1"}

    stranger = await client.post(f"{PAYMENTS_URL}/confirm", json=body, headers=other_headers)
    first = await client.post(f"{PAYMENTS_URL}/confirm", json=body, headers=user_headers)
    again = await client.post(f"{PAYMENTS_URL}/confirm", json=body, headers=user_headers)

    assert stranger.status_code == 404
    assert first.status_code == 200
    assert first.json()["success"] is True
    assert again.json()["success"] is False

    stored = await fetch(GymBooking, booking.id)
    assert stored.payment_status == "completed"
    assert stored.status == "confirmed"
    assert stored.transaction_id == "t-1"


async def test_payment_status(client, user_headers, other_headers, admin_headers, make_gym_booking):
    booking = await make_gym_booking(payment_status="initiated", gateway_reference="pidx-q")
    url = f"{PAYMENTS_URL}/status/gym/{booking.id}"

    own = await client.get(url, headers=user_headers)
    stranger = await client.get(url, headers=other_headers)
    admin = await client.get(url, headers=admin_headers)

    assert own.status_code == 200
    assert own.json()["payment_status"] == "initiated"
    assert own.json()["gateway_reference"] == "pidx-q"
    assert own.json()["amount"] == 150.0
    assert stranger.status_code == 404
    assert admin.status_code == 200


async def test_gateway_return_redirects_to_frontend(client):
    response = await client.get(f"{PAYMENTS_URL}/return", params={"pidx": "abc", "status": "Completed"})

    assert response.status_code == 302
    assert response.headers["location"] == (
        f"{config.FRONTEND_BASE_URL}/dashboard/payment-confirmation?pidx=abc&status=Completed"
    )

    plain = await client.get(f"{PAYMENTS_URL}/return")
    assert plain.headers["location"] == f"{config.FRONTEND_BASE_URL}/dashboard"
