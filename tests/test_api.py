"""End-to-end tests through the HTTP API."""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from coordinator.config import settings

API = "/api/v1"


def upcoming_monday() -> date:
    """A Monday at least a week out, so every slot is in the future."""
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) + 7)


def booking_body(provider_id, on_date: date, time: str, **overrides) -> dict:
    body = {
        "provider_id": str(provider_id),
        "date": on_date.isoformat(),
        "time": time,
        "reason": "Family concerns",
        "description": "  Would like to talk  ",
        "requester_id_number": "02000000001",
        "section": "STEM-101",
        "contact_phone": "0917-123-4567",
        "has_consent": True,
    }
    body.update(overrides)
    return body


async def publish(client: AsyncClient, headers: dict, provider_id, on_date: date, times: list[str]):
    response = await client.put(
        f"{API}/providers/{provider_id}/availability/{on_date.isoformat()}",
        json={"times": times},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get(f"{API}/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data

    assert (await client.get(f"{API}/ping")).json() == {"message": "pong"}


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient) -> None:
    response = await client.get(f"{API}/appointments/")
    assert response.status_code in (401, 403)

    response = await client.get(
        f"{API}/appointments/", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_booking_lifecycle(client: AsyncClient, counselors, students, auth_headers) -> None:
    x, y, a = counselors["x"], counselors["y"], students["a"]
    monday = upcoming_monday()

    day = await publish(client, auth_headers(x), x.id, monday, ["09:00", "10:20"])
    assert day["has_open_slot"] is True
    await publish(client, auth_headers(y), y.id, monday, ["10:00"])

    providers = await client.get(f"{API}/providers", headers=auth_headers(a))
    assert {p["name"] for p in providers.json()} == {
        "Ms. Dana Reyes",
        "Mr. Paolo Santos",
        "Ms. Irene Tan",
    }

    created = await client.post(
        f"{API}/appointments/",
        json=booking_body(x.id, monday, "09:00"),
        headers=auth_headers(a),
    )
    assert created.status_code == 201, created.text
    appointment = created.json()
    assert appointment["status"] == "pending"
    assert appointment["description"] == "Would like to talk"

    second = await client.post(
        f"{API}/appointments/",
        json=booking_body(y.id, monday, "10:00"),
        headers=auth_headers(a),
    )
    assert second.status_code == 409
    assert second.json()["error"] == "ConflictException"
    assert "Only one appointment per day" in second.json()["message"]

    availability = await client.get(
        f"{API}/providers/{x.id}/availability", headers=auth_headers(a)
    )
    slots = availability.json()[0]["slots"]
    assert {"time": "09:00", "booked": True} in slots

    confirmed = await client.patch(
        f"{API}/appointments/{appointment['id']}/status",
        json={"status": "confirmed"},
        headers=auth_headers(x),
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"

    wrong = await client.patch(
        f"{API}/appointments/{appointment['id']}/status",
        json={"status": "pending"},
        headers=auth_headers(x),
    )
    assert wrong.status_code == 412

    forbidden = await client.get(
        f"{API}/appointments/{appointment['id']}", headers=auth_headers(students["b"])
    )
    assert forbidden.status_code == 403

    schedule = await client.get(
        f"{API}/providers/{x.id}/schedule/{monday.isoformat()}", headers=auth_headers(x)
    )
    assert [item["time"] for item in schedule.json()["items"]] == ["09:00"]

    synced = await client.get(f"{API}/appointments/sync", headers=auth_headers(a))
    assert synced.status_code == 200
    assert synced.json()["cursor"] is not None

    inbox = await client.get(f"{API}/notifications", headers=auth_headers(a))
    assert inbox.json()["unread"] == 1


@pytest.mark.asyncio
async def test_booking_validation(client: AsyncClient, counselors, students, auth_headers) -> None:
    monday = upcoming_monday()

    no_consent = await client.post(
        f"{API}/appointments/",
        json=booking_body(counselors["x"].id, monday, "09:00", has_consent=False),
        headers=auth_headers(students["a"]),
    )
    assert no_consent.status_code == 422

    bad_time = await client.post(
        f"{API}/appointments/",
        json=booking_body(counselors["x"].id, monday, "9am"),
        headers=auth_headers(students["a"]),
    )
    assert bad_time.status_code == 422

    weekend = await client.put(
        f"{API}/providers/{counselors['x'].id}/availability/{(monday - timedelta(days=1)).isoformat()}",
        json={"times": ["09:00"]},
        headers=auth_headers(counselors["x"]),
    )
    assert weekend.status_code == 400

    not_mine = await client.put(
        f"{API}/providers/{counselors['x'].id}/availability/{monday.isoformat()}",
        json={"times": ["09:00"]},
        headers=auth_headers(counselors["y"]),
    )
    assert not_mine.status_code == 403


@pytest.mark.asyncio
async def test_transfer_over_http(client: AsyncClient, counselors, students, auth_headers) -> None:
    x, z, a = counselors["x"], counselors["z"], students["a"]
    monday = upcoming_monday()
    await publish(client, auth_headers(x), x.id, monday, ["09:00"])
    created = await client.post(
        f"{API}/appointments/", json=booking_body(x.id, monday, "09:00"), headers=auth_headers(a)
    )
    appointment_id = created.json()["id"]

    requested = await client.post(
        f"{API}/appointments/{appointment_id}/transfer",
        json={"target_provider_id": str(z.id)},
        headers=auth_headers(x),
    )
    assert requested.status_code == 200
    assert requested.json()["transfer_target_provider_id"] == str(z.id)

    await client.post(
        f"{API}/appointments/{appointment_id}/transfer/target-response",
        json={"accept": True},
        headers=auth_headers(z),
    )
    done = await client.post(
        f"{API}/appointments/{appointment_id}/transfer/requester-response",
        json={"accept": True},
        headers=auth_headers(a),
    )
    assert done.status_code == 200
    assert done.json()["provider_id"] == str(z.id)
    assert done.json()["status"] == "confirmed"

    again = await client.delete(
        f"{API}/appointments/{appointment_id}/transfer", headers=auth_headers(z)
    )
    assert again.status_code == 412


@pytest.mark.asyncio
async def test_reschedule_decline_over_http(client: AsyncClient, counselors, students, auth_headers) -> None:
    x, a = counselors["x"], students["a"]
    monday = upcoming_monday()
    await publish(client, auth_headers(x), x.id, monday, ["09:00"])
    created = await client.post(
        f"{API}/appointments/", json=booking_body(x.id, monday, "09:00"), headers=auth_headers(a)
    )
    appointment_id = created.json()["id"]

    proposed = await client.post(
        f"{API}/appointments/{appointment_id}/reschedule",
        json={"date": (monday + timedelta(days=1)).isoformat(), "time": "14:00"},
        headers=auth_headers(x),
    )
    assert proposed.status_code == 200
    assert proposed.json()["proposed_time"] == "14:00"

    declined = await client.post(
        f"{API}/appointments/{appointment_id}/reschedule/response",
        json={"accept": False},
        headers=auth_headers(a),
    )
    assert declined.status_code == 200
    assert declined.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_gate_over_http(client: AsyncClient, counselors, students, auth_headers, redis_mock) -> None:
    x, a = counselors["x"], students["a"]
    monday = upcoming_monday()
    await publish(client, auth_headers(x), x.id, monday, ["09:00"])
    created = await client.post(
        f"{API}/appointments/", json=booking_body(x.id, monday, "09:00"), headers=auth_headers(a)
    )
    appointment_id = created.json()["id"]
    await client.patch(
        f"{API}/appointments/{appointment_id}/status",
        json={"status": "confirmed"},
        headers=auth_headers(x),
    )

    device = {"X-Gate-Secret": settings.gate_device_secret}

    rejected = await client.post(
        f"{API}/gate/appointments/{appointment_id}/entry-request",
        json={"verifier_name": "Guard Ramos"},
        headers={"X-Gate-Secret": "wrong"},
    )
    assert rejected.status_code == 401

    requested = await client.post(
        f"{API}/gate/appointments/{appointment_id}/entry-request",
        json={"verifier_name": "Guard Ramos"},
        headers=device,
    )
    assert requested.status_code == 200
    assert requested.json()["awaiting_entry_decision"] is True

    # the session is days away, far outside the entry window
    early = await client.post(
        f"{API}/gate/appointments/{appointment_id}/decision",
        json={"allowed": True},
        headers=auth_headers(x),
    )
    assert early.status_code == 425

    unknown = await client.post(
        f"{API}/gate/scan",
        json={"identity_token": "badge-a", "verifier_name": "Guard Ramos", "device_id": "gate-1"},
        headers=device,
    )
    assert unknown.status_code == 404

    redis_mock.get.return_value = str(settings.gate_scan_rate_limit_per_minute)
    throttled = await client.post(
        f"{API}/gate/scan",
        json={"identity_token": "badge-a", "verifier_name": "Guard Ramos", "device_id": "gate-1"},
        headers=device,
    )
    assert throttled.status_code == 429


@pytest.mark.asyncio
async def test_notification_endpoints(client: AsyncClient, counselors, students, auth_headers) -> None:
    x, a = counselors["x"], students["a"]
    monday = upcoming_monday()
    await publish(client, auth_headers(x), x.id, monday, ["09:00"])
    await client.post(
        f"{API}/appointments/", json=booking_body(x.id, monday, "09:00"), headers=auth_headers(a)
    )

    inbox = await client.get(f"{API}/notifications", headers=auth_headers(x))
    data = inbox.json()
    assert data["total"] == 1
    notification_id = data["items"][0]["id"]

    read = await client.patch(
        f"{API}/notifications/{notification_id}/read", headers=auth_headers(x)
    )
    assert read.status_code == 200
    assert read.json()["is_read"] is True

    missing = await client.patch(
        f"{API}/notifications/{notification_id}/read", headers=auth_headers(a)
    )
    assert missing.status_code == 404

    bulk = await client.post(f"{API}/notifications/read-all", headers=auth_headers(x))
    assert bulk.json() == {"updated": 0}

    reminders = await client.post(f"{API}/notifications/reminders", headers=auth_headers(a))
    assert reminders.json() == {"created": 0}
