"""
Tests for booking, availability and recurrence endpoints.
"""

import pytest
from httpx import AsyncClient

from room_booking.api.deps import get_dispatcher
from room_booking.main import app
from room_booking.services.notification_service import NotificationDispatcher
from conftest import ADMIN_HEADERS, OTHER_USER_HEADERS, USER_HEADERS

SLOT = {"start_time": "2024-01-01T10:00:00+00:00", "end_time": "2024-01-01T11:00:00+00:00"}


async def _admin_book(client: AsyncClient, room_id=1, **overrides):
    payload = {"event_title": "Board Meeting", "user_id": "user-1", "room_id": room_id, **SLOT}
    payload.update(overrides)
    return await client.post("/api/v1/bookings/", json=payload, headers=ADMIN_HEADERS)


@pytest.mark.asyncio
async def test_create_booking_request(client: AsyncClient, users):
    """Standard users get an unassigned PENDING request."""
    response = await client.post(
        "/api/v1/bookings/",
        json={"event_title": "Study Group", "room_id": 1, **SLOT},
        headers=USER_HEADERS,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["user_id"] == "user-1"
    assert data["room_id"] is None


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient):
    response = await client.post("/api/v1/bookings/", json={"event_title": "Study Group", **SLOT})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_booking_naive_datetime(client: AsyncClient, users):
    response = await client.post(
        "/api/v1/bookings/",
        json={"event_title": "Study Group", "start_time": "2024-01-01T10:00:00", "end_time": "2024-01-01T11:00:00"},
        headers=USER_HEADERS,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_booking_end_before_start(client: AsyncClient, users):
    response = await client.post(
        "/api/v1/bookings/",
        json={
            "event_title": "Study Group",
            "start_time": "2024-01-01T11:00:00+00:00",
            "end_time": "2024-01-01T10:00:00+00:00",
        },
        headers=USER_HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "validation"


@pytest.mark.asyncio
async def test_admin_booking_conflict(client: AsyncClient, users, rooms):
    """Overlapping assignment on the same room returns 409 with the conflicts."""
    first = await _admin_book(client)
    assert first.status_code == 201
    assert first.json()["status"] == "CONFIRMED"

    second = await _admin_book(client, start_time="2024-01-01T10:30:00+00:00", end_time="2024-01-01T12:00:00+00:00")
    assert second.status_code == 409
    body = second.json()
    assert body["kind"] == "conflict"
    assert body["detail"].startswith("This room is already booked")
    assert [c["id"] for c in body["conflicts"]] == [first.json()["id"]]
    assert body["conflicts"][0]["user"]["email"] == "user1@example.com"


@pytest.mark.asyncio
async def test_back_to_back_bookings_allowed(client: AsyncClient, users, rooms):
    assert (await _admin_book(client)).status_code == 201
    response = await _admin_book(client, start_time="2024-01-01T11:00:00+00:00", end_time="2024-01-01T12:00:00+00:00")
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_booking_unknown_room(client: AsyncClient, users, rooms):
    response = await _admin_book(client, room_id=99)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_available_rooms(client: AsyncClient, users, rooms):
    await _admin_book(client, room_id=1)

    response = await client.get(
        "/api/v1/rooms/available",
        params={**SLOT, "include_unavailable": "true"},
        headers=USER_HEADERS,
    )
    assert response.status_code == 200
    data = response.json()
    assert [r["name"] for r in data["available"]] == ["Seminar Room"]
    assert data["total_available"] == 1
    assert data["total_unavailable"] == 1
    conflict = data["unavailable"][0]["conflicts"][0]
    assert conflict["event_title"] == "Booked"
    assert conflict["user"] is None


@pytest.mark.asyncio
async def test_available_rooms_inactive_admin_only(client: AsyncClient, users, rooms):
    params = {**SLOT, "include_inactive": "true"}

    as_user = await client.get("/api/v1/rooms/available", params=params, headers=USER_HEADERS)
    as_admin = await client.get("/api/v1/rooms/available", params=params, headers=ADMIN_HEADERS)

    assert "Old Lab" not in [r["name"] for r in as_user.json()["available"]]
    assert "Old Lab" in [r["name"] for r in as_admin.json()["available"]]


@pytest.mark.asyncio
async def test_available_venues(client: AsyncClient, users, venues):
    response = await client.get("/api/v1/venues/available", params=SLOT, headers=USER_HEADERS)
    assert response.status_code == 200
    assert response.json()["available"][0]["name"] == "Town Hall - Main Chamber"


@pytest.mark.asyncio
async def test_recurrence_preview(client: AsyncClient):
    response = await client.post(
        "/api/v1/recurrence/preview",
        json={
            "pattern": {"frequency": "WEEKLY", "days_of_week": ["MON", "WED"], "max_occurrences": 4},
            **SLOT,
        },
        headers=USER_HEADERS,
    )
    assert response.status_code == 200
    starts = [o["start_time"][:10] for o in response.json()["occurrences"]]
    assert starts == ["2024-01-01", "2024-01-03", "2024-01-08", "2024-01-10"]


@pytest.mark.asyncio
async def test_recurrence_preview_invalid_pattern(client: AsyncClient):
    response = await client.post(
        "/api/v1/recurrence/preview",
        json={"pattern": {"frequency": "DAILY", "max_occurrences": 53}, **SLOT},
        headers=USER_HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["field"] == "max_occurrences"


@pytest.mark.asyncio
async def test_recurring_availability(client: AsyncClient, users, rooms):
    await _admin_book(client, start_time="2024-01-02T10:00:00+00:00", end_time="2024-01-02T11:00:00+00:00")

    response = await client.post(
        "/api/v1/bookings/recurring/availability",
        json={"pattern": {"frequency": "DAILY", "max_occurrences": 3}, "room_id": 1, **SLOT},
        headers=USER_HEADERS,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total_available"] == 2
    assert data["total_conflicting"] == 1
    assert data["conflicting_occurrences"][0]["occurrence_number"] == 2
    assert data["conflicting_occurrences"][0]["conflicts"][0]["event_title"] == "Booked"


@pytest.mark.asyncio
async def test_create_recurring_series_and_fetch(client: AsyncClient, users, rooms):
    response = await client.post(
        "/api/v1/bookings/recurring",
        json={
            "event_title": "Weekly Seminar",
            "user_id": "user-1",
            "room_id": 2,
            "pattern": {"frequency": "WEEKLY", "days_of_week": ["MON", "WED"], "max_occurrences": 4},
            **SLOT,
        },
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201
    data = response.json()
    parent_id = data["parent_booking"]["id"]
    assert data["parent_booking"]["occurrence_number"] == 1
    assert [c["parent_booking_id"] for c in data["child_bookings"]] == [parent_id] * 3
    assert data["pattern"]["days_of_week"] == ["MON", "WED"]

    child_id = data["child_bookings"][-1]["id"]
    series = await client.get(f"/api/v1/bookings/{child_id}/series", headers=USER_HEADERS)
    assert series.status_code == 200
    assert series.json()["parent_booking_id"] == parent_id
    assert series.json()["total"] == 4

    forbidden = await client.get(f"/api/v1/bookings/{child_id}/series", headers=OTHER_USER_HEADERS)
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_recurring_series_conflict_creates_nothing(client: AsyncClient, users, rooms):
    await _admin_book(client, start_time="2024-01-03T10:00:00+00:00", end_time="2024-01-03T11:00:00+00:00")

    response = await client.post(
        "/api/v1/bookings/recurring",
        json={
            "event_title": "Daily Standup",
            "room_id": 1,
            "pattern": {"frequency": "DAILY", "max_occurrences": 5},
            **SLOT,
        },
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "1 of 5 occurrences conflict with existing bookings"

    check = await client.get(
        "/api/v1/rooms/available",
        params={"start_time": "2024-01-01T10:00:00+00:00", "end_time": "2024-01-01T11:00:00+00:00"},
        headers=ADMIN_HEADERS,
    )
    assert "Lecture Hall" in [r["name"] for r in check.json()["available"]]


@pytest.mark.asyncio
async def test_series_not_found(client: AsyncClient, users):
    response = await client.get("/api/v1/bookings/999/series", headers=USER_HEADERS)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_booking_assigns_room(client: AsyncClient, users, rooms):
    created = await client.post(
        "/api/v1/bookings/",
        json={"event_title": "Study Group", **SLOT},
        headers=USER_HEADERS,
    )
    booking_id = created.json()["id"]

    response = await client.put(
        f"/api/v1/bookings/{booking_id}",
        json={"room_id": 2, "status": "CONFIRMED"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["room_id"] == 2
    assert response.json()["status"] == "CONFIRMED"


@pytest.mark.asyncio
async def test_owner_cannot_change_status(client: AsyncClient, users, rooms):
    created = await _admin_book(client)

    response = await client.put(
        f"/api/v1/bookings/{created.json()['id']}",
        json={"status": "CANCELLED"},
        headers=USER_HEADERS,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_owner_reschedules_pending_request(client: AsyncClient, users, rooms):
    created = await client.post(
        "/api/v1/bookings/",
        json={"event_title": "Study Group", **SLOT},
        headers=USER_HEADERS,
    )

    response = await client.put(
        f"/api/v1/bookings/{created.json()['id']}",
        json={
            "event_title": "Study Group (moved)",
            "start_time": "2024-01-02T14:00:00+00:00",
            "end_time": "2024-01-02T15:00:00+00:00",
        },
        headers=USER_HEADERS,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["event_title"] == "Study Group (moved)"
    assert data["start_time"].startswith("2024-01-02T14:00:00")
    assert data["status"] == "PENDING"


@pytest.mark.asyncio
async def test_other_user_cannot_edit_request(client: AsyncClient, users, rooms):
    created = await client.post(
        "/api/v1/bookings/",
        json={"event_title": "Study Group", **SLOT},
        headers=USER_HEADERS,
    )

    response = await client.put(
        f"/api/v1/bookings/{created.json()['id']}",
        json={"event_title": "Hijacked"},
        headers=OTHER_USER_HEADERS,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_owner_reschedule_into_clash(client: AsyncClient, users, rooms):
    # Assigned but not yet confirmed, so the owner may still move it
    held = await _admin_book(client, status="PENDING")
    await _admin_book(
        client,
        user_id="user-2",
        start_time="2024-01-01T12:00:00+00:00",
        end_time="2024-01-01T13:00:00+00:00",
    )

    response = await client.put(
        f"/api/v1/bookings/{held.json()['id']}",
        json={"start_time": "2024-01-01T11:30:00+00:00", "end_time": "2024-01-01T12:30:00+00:00"},
        headers=USER_HEADERS,
    )
    assert response.status_code == 409

    unchanged = await client.get(f"/api/v1/bookings/{held.json()['id']}/series", headers=USER_HEADERS)
    assert unchanged.json()["bookings"][0]["start_time"].startswith("2024-01-01T10:00:00")


@pytest.mark.asyncio
async def test_reschedule_overlapping_own_slot(client: AsyncClient, users, rooms):
    held = await _admin_book(client, status="PENDING")

    response = await client.put(
        f"/api/v1/bookings/{held.json()['id']}",
        json={"start_time": "2024-01-01T10:30:00+00:00", "end_time": "2024-01-01T11:30:00+00:00"},
        headers=USER_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["end_time"].startswith("2024-01-01T11:30:00")


class TransactionAwareDispatcher(NotificationDispatcher):
    """Notes whether the request's session still had a transaction open."""

    def __init__(self, session):
        self.session = session
        self.calls = []

    async def send(self, user, subject, body):
        self.calls.append((user.id, self.session.in_transaction()))


@pytest.mark.asyncio
async def test_notifications_sent_after_commit(client: AsyncClient, db_session, users, rooms):
    dispatcher = TransactionAwareDispatcher(db_session)
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    created = await client.post(
        "/api/v1/bookings/",
        json={"event_title": "Study Group", **SLOT},
        headers=USER_HEADERS,
    )

    response = await client.put(
        f"/api/v1/bookings/{created.json()['id']}",
        json={"room_id": 1, "status": "CONFIRMED"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    assert dispatcher.calls == [("user-1", False)]


@pytest.mark.asyncio
async def test_reject_requires_reason(client: AsyncClient, users, rooms):
    created = await _admin_book(client)

    response = await client.put(
        f"/api/v1/bookings/{created.json()['id']}",
        json={"status": "REJECTED"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_bulk_update_and_delete(client: AsyncClient, users, rooms):
    first = (await _admin_book(client, status="PENDING")).json()["id"]
    second = (
        await _admin_book(client, room_id=2, status="PENDING")
    ).json()["id"]

    updated = await client.put(
        "/api/v1/bookings/bulk",
        json={"updates": [
            {"id": first, "data": {"status": "CONFIRMED"}},
            {"id": second, "data": {"status": "REJECTED", "rejection_reason": "Room closed"}},
        ]},
        headers=ADMIN_HEADERS,
    )
    assert updated.status_code == 200
    assert [b["status"] for b in updated.json()["bookings"]] == ["CONFIRMED", "REJECTED"]

    deleted = await client.request(
        "DELETE",
        "/api/v1/bookings/bulk",
        json={"booking_ids": [first, second]},
        headers=ADMIN_HEADERS,
    )
    assert deleted.status_code == 200
    assert deleted.json()["deleted"] == 2


@pytest.mark.asyncio
async def test_bulk_delete_missing_ids(client: AsyncClient, users):
    response = await client.request(
        "DELETE",
        "/api/v1/bookings/bulk",
        json={"booking_ids": [12345]},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 404
    assert response.json()["missing_ids"] == [12345]


@pytest.mark.asyncio
async def test_cancel_booking_frees_slot(client: AsyncClient, users, rooms):
    booking_id = (await _admin_book(client)).json()["id"]

    denied = await client.delete(f"/api/v1/bookings/{booking_id}", headers=OTHER_USER_HEADERS)
    assert denied.status_code == 403

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=USER_HEADERS)
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"

    again = await client.delete(f"/api/v1/bookings/{booking_id}", headers=USER_HEADERS)
    assert again.status_code == 400

    rebook = await _admin_book(client)
    assert rebook.status_code == 201


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
