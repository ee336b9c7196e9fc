import pytest
from datetime import datetime, timedelta

from wellness_booking.models import BookingType, CreditReason, CreditsLedger
from wellness_booking.services import CreditsService


@pytest.fixture
def grant(db):
    async def _grant(user, amount, expires_in_days=None, reason=CreditReason.MONTHLY_GRANT, created_days_ago=0):
        now = datetime.utcnow()
        entry = CreditsLedger(
            user_id=user.id,
            amount=amount,
            reason=reason,
            expires_at=now + timedelta(days=expires_in_days) if expires_in_days is not None else None,
            created_at=now - timedelta(days=created_days_ago),
        )
        db.add(entry)
        await db.commit()
        return entry
    return _grant


@pytest.mark.asyncio
async def test_balance_consumes_oldest_grant_first(db, make_user, make_booking, grant):
    user = await make_user()
    await grant(user, 2, expires_in_days=3, created_days_ago=27)
    await grant(user, 4, expires_in_days=30, created_days_ago=1)
    booking = await make_booking(user, booking_type=BookingType.SESSION)
    await CreditsService.redeem_credit(db, user.id, booking.id)
    await db.commit()

    balance = await CreditsService.get_balance(db, user.id)

    assert balance.available == 5
    assert balance.total == 5
    # one credit left in the older grant, which expires within the week
    assert balance.pending == 1
    assert balance.next_expiration_amount == 1
    assert balance.next_expiration_date is not None


@pytest.mark.asyncio
async def test_expired_grants_are_ignored(db, make_user, grant):
    user = await make_user()
    await grant(user, 3, expires_in_days=-1, created_days_ago=31)
    await grant(user, 1)

    balance = await CreditsService.get_balance(db, user.id)

    assert balance.available == 1
    assert balance.pending == 0
    assert await CreditsService.expire_credits(db) == 1


@pytest.mark.asyncio
async def test_redeem_requires_balance_and_ownership(db, make_user, make_booking, grant):
    owner, other = await make_user(), await make_user()
    booking = await make_booking(owner, booking_type=BookingType.SESSION)

    empty = await CreditsService.redeem_credit(db, owner.id, booking.id)
    assert empty.success is False
    assert empty.error == "No hay créditos disponibles"

    await grant(owner, 2)
    await grant(other, 2)
    foreign = await CreditsService.redeem_credit(db, other.id, booking.id)
    assert foreign.success is False

    first = await CreditsService.redeem_credit(db, owner.id, booking.id)
    await db.commit()
    again = await CreditsService.redeem_credit(db, owner.id, booking.id)

    assert first.success is True
    assert again.success is False
    assert await CreditsService.was_paid_with_credit(db, booking.id) is True


@pytest.mark.asyncio
async def test_refund_only_for_redeemed_bookings_and_only_once(db, make_user, make_booking, grant):
    user = await make_user()
    await grant(user, 1)
    paid_with_card = await make_booking(user, booking_type=BookingType.SESSION)
    paid_with_credit = await make_booking(user, booking_type=BookingType.SESSION)

    nothing = await CreditsService.refund_credit(db, user.id, paid_with_card.id)
    assert nothing.refunded is False

    await CreditsService.redeem_credit(db, user.id, paid_with_credit.id)
    await db.commit()
    assert (await CreditsService.get_balance(db, user.id)).available == 0

    now = datetime.utcnow()
    first = await CreditsService.refund_credit(db, user.id, paid_with_credit.id, now=now)
    await db.commit()
    second = await CreditsService.refund_credit(db, user.id, paid_with_credit.id, now=now)

    assert first.refunded is True
    assert second.refunded is False
    history = await CreditsService.get_history(db, user.id)
    refunds = [e for e in history if e.reason == CreditReason.REFUND]
    assert len(refunds) == 1
    assert refunds[0].expires_at == now + timedelta(days=30)
    assert (await CreditsService.get_balance(db, user.id)).available == 1


@pytest.mark.asyncio
async def test_negative_admin_adjustment_reduces_balance(db, make_user, grant):
    user = await make_user()
    admin = await make_user()
    await grant(user, 3, expires_in_days=30)

    entry = await CreditsService.admin_adjust_credits(
        db, user.id, amount=-2, notes="Corrección manual", admin_user_id=admin.id
    )
    await db.commit()

    assert entry.created_by == admin.id
    assert (await CreditsService.get_balance(db, user.id)).available == 1
