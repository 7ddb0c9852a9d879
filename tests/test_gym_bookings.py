GYM_URL = "/api/v1/bookings/gym"


def gym_payload(**overrides):
    payload = {
        "booking_date": "2024-05-01",
        "start_time": "09:00",
        "end_time": "10:00",
        "duration": 1,
        "workout_type": "Cardio",
    }
    payload.update(overrides)
    return payload


async def test_create_gym_booking(client, user_headers):
    response = await client.post(
        GYM_URL, json=gym_payload(start_time="9:00", duration=2, end_time="11:00"), headers=user_headers
    )

    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == "user-1"
    assert data["start_time"] == "09:00"
    assert data["amount"] == 300.0
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["payment_method"] == "cash"


async def test_gateway_method_still_starts_pending(client, user_headers):
    response = await client.post(GYM_URL, json=gym_payload(payment_method="khalti"), headers=user_headers)

    assert response.status_code == 201
    assert response.json()["payment_method"] == "gateway"
    assert response.json()["payment_status"] == "pending"


async def test_overlapping_same_workout_conflicts(client, user_headers):
    first = await client.post(GYM_URL, json=gym_payload(), headers=user_headers)
    assert first.status_code == 201

    second = await client.post(
        GYM_URL, json=gym_payload(start_time="09:30", end_time="10:30"), headers=user_headers
    )

    assert second.status_code == 409
    assert second.json()["error"] == "CONFLICT"
    assert second.json()["details"]["booking_id"] == first.json()["id"]


async def test_adjacent_or_different_workout_is_allowed(client, user_headers):
    await client.post(GYM_URL, json=gym_payload(), headers=user_headers)

    adjacent = await client.post(
        GYM_URL, json=gym_payload(start_time="10:00", end_time="11:00"), headers=user_headers
    )
    other_type = await client.post(GYM_URL, json=gym_payload(workout_type="Yoga"), headers=user_headers)

    assert adjacent.status_code == 201
    assert other_type.status_code == 201
    assert other_type.json()["amount"] == 120.0


async def test_other_users_do_not_conflict(client, user_headers, other_headers):
    await client.post(GYM_URL, json=gym_payload(), headers=user_headers)
    response = await client.post(GYM_URL, json=gym_payload(), headers=other_headers)

    assert response.status_code == 201


async def test_cancelled_booking_frees_the_window(client, user_headers):
    first = await client.post(GYM_URL, json=gym_payload(), headers=user_headers)
    cancel = await client.patch(
        f"{GYM_URL}/{first.json()['id']}/status", json={"status": "cancelled"}, headers=user_headers
    )
    assert cancel.status_code == 200

    again = await client.post(GYM_URL, json=gym_payload(), headers=user_headers)
    assert again.status_code == 201


async def test_end_before_start_is_rejected(client, user_headers):
    response = await client.post(
        GYM_URL, json=gym_payload(start_time="10:00", end_time="09:00"), headers=user_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_missing_fields_are_rejected(client, user_headers):
    payload = gym_payload()
    del payload["workout_type"]

    response = await client.post(GYM_URL, json=payload, headers=user_headers)

    assert response.status_code == 422


async def test_requires_authentication(client):
    response = await client.post(GYM_URL, json=gym_payload())

    assert response.status_code == 401


async def test_list_returns_only_own_bookings(client, user_headers, other_headers):
    await client.post(GYM_URL, json=gym_payload(), headers=user_headers)
    await client.post(GYM_URL, json=gym_payload(workout_type="Yoga"), headers=user_headers)
    await client.post(GYM_URL, json=gym_payload(), headers=other_headers)

    response = await client.get(GYM_URL, headers=user_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {b["workout_type"] for b in data["bookings"]} == {"Cardio", "Yoga"}
