from decimal import Decimal

from gymapp.bookings.models import GymBooking, TrainerBooking
from gymapp.trainers.models import Trainer, TrainerAvailabilitySlot
from gymapp.trainers.crud.availability import get_booked_slots


def status_url(booking_type, booking_id):
    return f"/api/v1/bookings/{booking_type}/{booking_id}/status"


async def test_owner_can_cancel(client, user_headers, make_gym_booking):
    booking = await make_gym_booking()

    response = await client.patch(status_url("gym", booking.id), json={"status": "cancelled"}, headers=user_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


async def test_owner_cannot_confirm(client, user_headers, make_gym_booking):
    booking = await make_gym_booking()

    response = await client.patch(status_url("gym", booking.id), json={"status": "confirmed"}, headers=user_headers)

    assert response.status_code == 403


async def test_other_users_booking_is_not_found(client, other_headers, make_gym_booking):
    booking = await make_gym_booking(user_id="user-1")

    response = await client.patch(status_url("gym", booking.id), json={"status": "cancelled"}, headers=other_headers)

    assert response.status_code == 404


async def test_admin_completion_settles_payment_and_credits_trainer(
    client, admin_headers, make_trainer, make_trainer_booking, fetch
):
    trainer = await make_trainer()
    booking = await make_trainer_booking(trainer, amount=Decimal("500"))

    response = await client.patch(
        status_url("trainer", booking.id), json={"status": "completed"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["payment_status"] == "completed"
    assert (await fetch(Trainer, trainer.id)).earnings == Decimal("500")


async def test_completing_an_already_paid_booking_credits_nothing_more(
    client, admin_headers, make_trainer, make_trainer_booking, fetch
):
    trainer = await make_trainer(earnings=Decimal("500"))
    booking = await make_trainer_booking(
        trainer, amount=Decimal("500"), payment_status="completed", status="confirmed"
    )

    response = await client.patch(
        status_url("trainer", booking.id), json={"status": "completed"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert (await fetch(Trainer, trainer.id)).earnings == Decimal("500")


async def test_completing_a_refunded_booking_is_rejected(
    client, admin_headers, make_trainer, make_trainer_booking, fetch
):
    trainer = await make_trainer()
    booking = await make_trainer_booking(
        trainer, amount=Decimal("500"), payment_status="refunded", status="confirmed"
    )

    response = await client.patch(
        status_url("trainer", booking.id), json={"status": "completed"}, headers=admin_headers
    )

    assert response.status_code == 409
    stored = await fetch(TrainerBooking, booking.id)
    assert stored.payment_status == "refunded"
    assert stored.status == "confirmed"
    assert (await fetch(Trainer, trainer.id)).earnings == Decimal("0")


async def test_closed_bookings_cannot_change(client, admin_headers, make_gym_booking):
    cancelled = await make_gym_booking(status="cancelled")
    completed = await make_gym_booking(status="completed", payment_status="completed", workout_type="Yoga")

    reopen = await client.patch(status_url("gym", cancelled.id), json={"status": "pending"}, headers=admin_headers)
    recancel = await client.patch(status_url("gym", completed.id), json={"status": "cancelled"}, headers=admin_headers)

    assert reopen.status_code == 409
    assert recancel.status_code == 409


async def test_pending_with_paid_booking_stays_confirmed(client, admin_headers, make_gym_booking):
    booking = await make_gym_booking(status="confirmed", payment_status="completed")

    response = await client.patch(status_url("gym", booking.id), json={"status": "pending"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"


async def test_cancelling_trainer_booking_releases_slot(
    client, session, user_headers, make_trainer, make_trainer_booking, fetch
):
    trainer = await make_trainer()
    booking = await make_trainer_booking(trainer, start_hour=10, duration=1)
    slot = TrainerAvailabilitySlot(
        trainer_id=trainer.id,
        booking_id=booking.id,
        slot_date=booking.session_date,
        start_hour=10,
        end_hour=11,
    )
    session.add(slot)
    await session.commit()

    await client.patch(status_url("trainer", booking.id), json={"status": "cancelled"}, headers=user_headers)

    released = await fetch(TrainerAvailabilitySlot, slot.id)
    assert released.is_booked is False
    assert await get_booked_slots(session, trainer.id, booking.session_date) == []


async def test_owner_deletes_only_closed_bookings(client, user_headers, make_gym_booking, fetch):
    open_booking = await make_gym_booking()
    cancelled = await make_gym_booking(status="cancelled", workout_type="Yoga")

    refused = await client.delete(f"/api/v1/bookings/gym/{open_booking.id}", headers=user_headers)
    deleted = await client.delete(f"/api/v1/bookings/gym/{cancelled.id}", headers=user_headers)

    assert refused.status_code == 403
    assert deleted.status_code == 200
    assert await fetch(GymBooking, cancelled.id) is None
    assert await fetch(GymBooking, open_booking.id) is not None


async def test_admin_deletes_any_booking(client, admin_headers, make_trainer, make_trainer_booking, fetch):
    trainer = await make_trainer()
    booking = await make_trainer_booking(trainer)

    response = await client.delete(f"/api/v1/bookings/trainer/{booking.id}", headers=admin_headers)

    assert response.status_code == 200
    assert await fetch(TrainerBooking, booking.id) is None
