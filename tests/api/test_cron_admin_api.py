import pytest
from datetime import datetime, timedelta

from wellness_booking.core.config import settings
from wellness_booking.models import UserRole, WaitlistStatus

SWEEP_URL = "/api/v1/cron/expire-waitlist-offers"


@pytest.fixture
def production(monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")


@pytest.mark.asyncio
async def test_cron_rejects_wrong_or_missing_token(client, production):
    wrong = await client.post(SWEEP_URL, headers={"Authorization": "Bearer nope"})
    missing = await client.post(SWEEP_URL)

    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Unauthorized"}
    assert missing.status_code == 401


@pytest.mark.asyncio
async def test_cron_without_configured_secret_is_a_server_error(client, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    monkeypatch.setattr(settings, "CRON_SECRET", None)

    response = await client.post(SWEEP_URL, headers={"Authorization": "Bearer anything"})

    assert response.status_code == 500
    assert response.json() == {"error": "Server configuration error"}


@pytest.mark.asyncio
async def test_cron_get_only_allowed_in_development(client, production, monkeypatch):
    response = await client.get(SWEEP_URL, headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 405

    monkeypatch.setattr(settings, "ENVIRONMENT", "development")
    monkeypatch.setattr(settings, "CRON_SECRET", None)
    response = await client.get(SWEEP_URL)
    assert response.status_code == 200
    assert response.json()["results"] == {"expiredOffers": 0, "remindersSent": 0}


@pytest.mark.asyncio
async def test_cron_sweep_expires_overdue_offers(client, production, content_store, make_user, make_entry):
    event = content_store.add_event(capacity=1)
    user = await make_user()
    await make_entry(
        user, event.id, 1,
        status=WaitlistStatus.OFFER_PENDING,
        offer_expires_at=datetime.utcnow() - timedelta(minutes=5),
    )

    response = await client.post(SWEEP_URL, headers={"Authorization": "Bearer s3cret"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["results"] == {"expiredOffers": 1, "remindersSent": 0}
    assert data["duration"].endswith("ms")
    assert data["timestamp"].endswith("Z")


@pytest.mark.asyncio
async def test_cron_expire_credits(client, production):
    response = await client.post("/api/v1/cron/expire-credits", headers={"Authorization": "Bearer s3cret"})

    assert response.status_code == 200
    assert response.json()["expired"] == 0


@pytest.mark.asyncio
async def test_admin_cancel_requires_admin(client, content_store, make_user, make_booking, auth_headers):
    event = content_store.add_event()
    member = await make_user()
    booking = await make_booking(member, event)

    response = await client.post(f"/api/v1/admin/bookings/{booking.id}/cancel", headers=auth_headers(member))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_cancel_ignores_lead_time_and_is_audited(client, content_store, make_user, make_booking, auth_headers, mailer):
    event = content_store.add_event()
    member = await make_user()
    admin = await make_user(role=UserRole.ADMIN)
    booking = await make_booking(member, event, scheduled_at=datetime.utcnow() + timedelta(hours=2))
    headers = auth_headers(admin)

    response = await client.post(
        f"/api/v1/admin/bookings/{booking.id}/cancel",
        json={"reason": "Instructora enferma", "skipEmail": True},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["booking"]["status"] == "CANCELLED"
    assert data["seatsReleased"] == 1
    assert data["creditRefunded"] is False
    assert "cancellation" not in mailer.templates()

    history = await client.get(f"/api/v1/admin/audit/booking/{booking.id}", headers=headers)
    logs = history.json()
    assert len(logs) == 1
    assert logs[0]["actorEmail"] == admin.email
    assert logs[0]["reason"] == "Instructora enferma"

    again = await client.post(f"/api/v1/admin/bookings/{booking.id}/cancel", headers=headers)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_admin_bulk_cancel_and_waitlist_stats(client, content_store, make_user, make_booking, make_entry, auth_headers):
    event = content_store.add_event(capacity=2)
    admin = await make_user(role=UserRole.ADMIN)
    first = await make_booking(await make_user(), event)
    await make_entry(await make_user(), event.id, 1)
    headers = auth_headers(admin)

    bulk = await client.post(
        "/api/v1/admin/bookings/cancel-bulk",
        json={"bookingIds": [first.id, "missing"], "skipEmail": True},
        headers=headers,
    )
    assert bulk.status_code == 200
    assert bulk.json()["successful"] == [first.id]
    assert bulk.json()["failed"][0]["id"] == "missing"

    stats = await client.get(f"/api/v1/admin/events/{event.id}/waitlist-stats", headers=headers)
    assert stats.json()["offerPending"] == 1
    assert stats.json()["total"] == 1


@pytest.mark.asyncio
async def test_admin_audit_list_pages_with_total(client, content_store, make_user, make_booking, auth_headers):
    event = content_store.add_event(capacity=3)
    admin = await make_user(role=UserRole.ADMIN)
    bookings = [await make_booking(await make_user(), event) for _ in range(2)]
    headers = auth_headers(admin)
    await client.post(
        "/api/v1/admin/bookings/cancel-bulk",
        json={"bookingIds": [b.id for b in bookings], "skipEmail": True},
        headers=headers,
    )

    page = await client.get(
        "/api/v1/admin/audit", params={"entityType": "booking", "limit": 1}, headers=headers
    )
    other_actor = await client.get("/api/v1/admin/audit", params={"actorId": "nobody"}, headers=headers)

    assert page.status_code == 200
    assert page.json()["total"] == 2
    assert len(page.json()["logs"]) == 1
    assert page.json()["logs"][0]["action"] == "cancel"
    assert page.json()["logs"][0]["entityId"] in {b.id for b in bookings}
    assert other_actor.json() == {"logs": [], "total": 0}

@pytest.mark.asyncio
async def test_health_and_metrics(client):
    health = await client.get("/health")
    metrics = await client.get("/metrics")

    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text
