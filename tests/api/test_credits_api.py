import pytest
from datetime import datetime, timedelta

from wellness_booking.models import CreditReason, CreditsLedger


@pytest.mark.asyncio
async def test_balance_and_history_for_caller(client, db, make_user, auth_headers):
    user = await make_user()
    db.add(CreditsLedger(user_id=user.id, amount=4, reason=CreditReason.MONTHLY_GRANT,
                         expires_at=datetime.utcnow() + timedelta(days=3)))
    await db.commit()
    headers = auth_headers(user)

    balance = await client.get("/api/v1/credits/balance", headers=headers)
    history = await client.get("/api/v1/credits/history", params={"limit": 10}, headers=headers)

    assert balance.status_code == 200
    assert balance.json()["available"] == 4
    assert balance.json()["pending"] == 4
    assert balance.json()["nextExpirationAmount"] == 4
    entries = history.json()["entries"]
    assert len(entries) == 1
    assert entries[0]["reason"] == "MONTHLY_GRANT"


@pytest.mark.asyncio
async def test_credits_require_valid_token(client):
    missing = await client.get("/api/v1/credits/balance")
    garbage = await client.get("/api/v1/credits/balance", headers={"Authorization": "Bearer not-a-jwt"})

    assert missing.status_code == 401
    assert garbage.status_code == 401
