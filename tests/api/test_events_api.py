import pytest
from datetime import datetime, timedelta

from wellness_booking.models import BookingType


@pytest.mark.asyncio
async def test_availability_is_public(client, content_store, make_user, make_booking):
    event = content_store.add_event(capacity=2)
    await make_booking(await make_user(), event, seats=2)

    response = await client.get(f"/api/v1/events/{event.id}/availability")

    assert response.status_code == 200
    data = response.json()
    assert data["eventId"] == event.id
    assert data["capacity"] == 2
    assert data["allocatedSeats"] == 2
    assert data["availableSpots"] == 0
    assert data["isSoldOut"] is True
    assert data["hasWaitlist"] is False
    assert data["userWaitlistPosition"] is None
    assert "X-Trace-ID" in response.headers


@pytest.mark.asyncio
async def test_availability_includes_callers_waitlist_position(client, db, seat_service, content_store, make_user, make_booking, auth_headers):
    event = content_store.add_event(capacity=1)
    await make_booking(await make_user(), event)
    first, second = await make_user(), await make_user()
    await seat_service.add_to_waitlist(db, event.id, first)
    await seat_service.add_to_waitlist(db, event.id, second)

    response = await client.get(f"/api/v1/events/{event.id}/availability", headers=auth_headers(second))

    data = response.json()
    assert data["hasWaitlist"] is True
    assert data["waitlistCount"] == 2
    assert data["userWaitlistPosition"] == 2


@pytest.mark.asyncio
async def test_availability_for_unknown_event(client):
    response = await client.get("/api/v1/events/no-such-event/availability")

    assert response.status_code == 404
    assert response.json()["error"].startswith("Evento no encontrado")


@pytest.mark.asyncio
async def test_cancel_booking_requires_authentication(client, content_store):
    event = content_store.add_event()

    response = await client.patch(f"/api/v1/events/{event.id}/cancel-booking", json={"bookingId": "x"})

    assert response.status_code == 401
    assert response.json() == {"error": "No autorizado"}


@pytest.mark.asyncio
async def test_cancel_booking_requires_booking_id(client, content_store, make_user, auth_headers):
    event = content_store.add_event()
    user = await make_user()

    response = await client.patch(
        f"/api/v1/events/{event.id}/cancel-booking", json={}, headers=auth_headers(user)
    )

    assert response.status_code == 400
    assert "bookingId" in response.json()["error"]


@pytest.mark.asyncio
async def test_cancel_booking_rejects_unknown_or_mismatched_booking(client, content_store, make_user, make_booking, auth_headers):
    event = content_store.add_event(event_id="evt-a")
    other_event = content_store.add_event(event_id="evt-b")
    user = await make_user()
    booking = await make_booking(user, other_event)
    session = await make_booking(user, booking_type=BookingType.SESSION)
    headers = auth_headers(user)

    missing = await client.patch(
        f"/api/v1/events/{event.id}/cancel-booking", json={"bookingId": "missing"}, headers=headers
    )
    mismatched = await client.patch(
        f"/api/v1/events/{event.id}/cancel-booking", json={"bookingId": booking.id}, headers=headers
    )
    not_an_event = await client.patch(
        f"/api/v1/events/{session.resource_id}/cancel-booking", json={"bookingId": session.id}, headers=headers
    )

    assert missing.status_code == 404
    assert mismatched.status_code == 400
    assert mismatched.json() == {"error": "La reserva no corresponde a este evento"}
    assert not_an_event.status_code == 400


@pytest.mark.asyncio
async def test_cancel_booking_releases_seat(client, db, seat_service, content_store, mailer, make_user, make_booking, auth_headers):
    event = content_store.add_event(capacity=1)
    owner, waiter = await make_user(), await make_user()
    booking = await make_booking(owner, event)
    await seat_service.add_to_waitlist(db, event.id, waiter)

    response = await client.patch(
        f"/api/v1/events/{event.id}/cancel-booking",
        json={"bookingId": booking.id, "reason": "Viaje"},
        headers=auth_headers(owner),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["seatsReleased"] == 1
    assert data["booking"]["id"] == booking.id
    assert data["booking"]["status"] == "CANCELLED"
    assert data["booking"]["cancellation_reason"] == "Viaje"
    assert data["message"].startswith("Reserva cancelada. 1 cupo(s)")
    assert "waitlist_offer" in mailer.templates()

    again = await client.patch(
        f"/api/v1/events/{event.id}/cancel-booking",
        json={"bookingId": booking.id},
        headers=auth_headers(owner),
    )
    assert again.status_code == 400
    assert again.json() == {"error": "La reserva ya está cancelada"}


@pytest.mark.asyncio
async def test_cancel_someone_elses_booking_is_forbidden(client, content_store, make_user, make_booking, auth_headers):
    event = content_store.add_event()
    owner, intruder = await make_user(), await make_user()
    booking = await make_booking(owner, event)

    response = await client.patch(
        f"/api/v1/events/{event.id}/cancel-booking",
        json={"bookingId": booking.id},
        headers=auth_headers(intruder),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_too_close_to_start(client, content_store, make_user, make_booking, auth_headers):
    event = content_store.add_event()
    owner = await make_user()
    booking = await make_booking(owner, event, scheduled_at=datetime.utcnow() + timedelta(hours=23))

    response = await client.patch(
        f"/api/v1/events/{event.id}/cancel-booking",
        json={"bookingId": booking.id},
        headers=auth_headers(owner),
    )

    assert response.status_code == 400
    assert "24 horas" in response.json()["error"]
