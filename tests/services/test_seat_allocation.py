import pytest
from datetime import datetime, timedelta
from sqlalchemy import select, func

from wellness_booking.models import (
    BookingStatus,
    SeatAllocation,
    SeatAllocationStatus,
    WaitlistStatus,
)
from wellness_booking.services import (
    EventNotFoundError,
    SeatsUnavailableError,
)


async def active_seats(db, event_id):
    result = await db.execute(
        select(func.coalesce(func.sum(SeatAllocation.seats), 0)).where(
            SeatAllocation.event_id == event_id,
            SeatAllocation.status == SeatAllocationStatus.ACTIVE,
        )
    )
    return result.scalar()


@pytest.mark.asyncio
async def test_availability_counts_allocations_and_active_waitlist(db, seat_service, content_store, make_user, make_booking, make_entry):
    """Availability sums ACTIVE seats and counts WAITING/OFFER_PENDING entries only"""
    event = content_store.add_event(capacity=5)
    alice, bob, carol, dan = [await make_user() for _ in range(4)]

    await make_booking(alice, event, seats=2)
    released = await make_booking(bob, event, seats=1)
    await seat_service.release_seats(db, released.id)

    await make_entry(carol, event.id, position=1)
    await make_entry(dan, event.id, position=2, status=WaitlistStatus.DECLINED)

    availability = await seat_service.get_event_availability(db, event.id)

    assert availability.capacity == 5
    assert availability.allocated_seats == 2
    assert availability.available_spots == 3
    assert availability.waitlist_count == 1


@pytest.mark.asyncio
async def test_availability_unlimited_capacity(db, seat_service, content_store, make_user, make_booking):
    event = content_store.add_event(capacity=None)
    await make_booking(await make_user(), event, seats=3)

    availability = await seat_service.get_event_availability(db, event.id)

    assert availability.capacity is None
    assert availability.allocated_seats == 3
    assert availability.available_spots is None
    assert await seat_service.get_available_spots(db, event.id) is None
    assert await seat_service.has_available_spots(db, event.id, 50) is True


@pytest.mark.asyncio
async def test_unknown_event_raises(db, seat_service):
    with pytest.raises(EventNotFoundError):
        await seat_service.get_event_availability(db, "missing")


@pytest.mark.asyncio
async def test_allocate_seats_never_exceeds_capacity(db, seat_service, content_store, make_user, make_booking):
    event = content_store.add_event(capacity=2)
    first = await make_booking(await make_user(), event, seats=2, allocate=False)
    second = await make_booking(await make_user(), event, seats=1, allocate=False)

    allocation = await seat_service.allocate_seats(db, first)
    assert allocation is not None
    assert allocation.seats == 2

    assert await seat_service.allocate_seats(db, second) is None
    assert await active_seats(db, event.id) == 2
    assert await seat_service.get_available_spots(db, event.id) == 0


@pytest.mark.asyncio
async def test_release_offers_to_earliest_entry_that_fits(db, seat_service, content_store, mailer, make_user, make_booking):
    """A two-seat request at the head of the line is skipped when only one seat frees up"""
    event = content_store.add_event(capacity=1, max_per_booking=2)
    holder, big_party, solo = [await make_user() for _ in range(3)]
    booking = await make_booking(holder, event)

    big_entry = await seat_service.add_to_waitlist(db, event.id, big_party, seats_requested=2)
    solo_entry = await seat_service.add_to_waitlist(db, event.id, solo, seats_requested=1)
    assert (big_entry.position, solo_entry.position) == (1, 2)

    now = datetime.utcnow()
    released = await seat_service.release_seats(db, booking.id, now=now)

    assert released == 1
    await db.refresh(big_entry)
    await db.refresh(solo_entry)
    assert big_entry.status == WaitlistStatus.WAITING
    assert solo_entry.status == WaitlistStatus.OFFER_PENDING
    assert solo_entry.offer_sent_at == now
    assert solo_entry.offer_expires_at == now + timedelta(hours=24)
    assert "waitlist_offer" in mailer.templates()


@pytest.mark.asyncio
async def test_release_promotes_only_one_entry(db, seat_service, content_store, make_user, make_booking):
    event = content_store.add_event(capacity=2, max_per_booking=2)
    holder, first, second = [await make_user() for _ in range(3)]
    booking = await make_booking(holder, event, seats=2)

    entries = [
        await seat_service.add_to_waitlist(db, event.id, first),
        await seat_service.add_to_waitlist(db, event.id, second),
    ]

    await seat_service.release_seats(db, booking.id)

    for entry in entries:
        await db.refresh(entry)
    assert [e.status for e in entries] == [WaitlistStatus.OFFER_PENDING, WaitlistStatus.WAITING]


@pytest.mark.asyncio
async def test_release_without_active_allocation_returns_zero(db, seat_service, content_store, make_user, make_booking):
    event = content_store.add_event(capacity=1)
    booking = await make_booking(await make_user(), event, allocate=False)

    assert await seat_service.release_seats(db, booking.id) == 0


@pytest.mark.asyncio
async def test_single_seat_release_then_decline_leaves_seat_available(db, seat_service, content_store, make_user, make_booking):
    """Capacity 1, one holder, one waiter: release offers the seat, decline frees it"""
    event = content_store.add_event(capacity=1)
    holder, waiter = await make_user(), await make_user()
    booking = await make_booking(holder, event)
    entry = await seat_service.add_to_waitlist(db, event.id, waiter)
    assert entry.position == 1

    now = datetime.utcnow()
    await seat_service.release_seats(db, booking.id, now=now)

    await db.refresh(entry)
    assert entry.status == WaitlistStatus.OFFER_PENDING
    assert entry.offer_expires_at == now + timedelta(hours=24)

    next_offer = await seat_service.decline_waitlist_offer(db, entry.id, waiter.id)

    assert next_offer is None
    await db.refresh(entry)
    assert entry.status == WaitlistStatus.DECLINED
    assert entry.responded_at is not None

    availability = await seat_service.get_event_availability(db, event.id)
    assert availability.available_spots == 1
    assert availability.waitlist_count == 0


@pytest.mark.asyncio
async def test_accept_offer_creates_booking_and_allocation(db, seat_service, content_store, mailer, make_user, make_booking):
    event = content_store.add_event(capacity=1)
    holder, waiter = await make_user(), await make_user()
    booking = await make_booking(holder, event)
    entry = await seat_service.add_to_waitlist(db, event.id, waiter)
    await seat_service.release_seats(db, booking.id)

    result = await seat_service.accept_waitlist_offer(db, entry.id, waiter.id)

    assert result.needs_payment is False
    assert result.booking.status == BookingStatus.CONFIRMED
    assert result.booking.user_id == waiter.id
    await db.refresh(entry)
    assert entry.status == WaitlistStatus.ACCEPTED
    assert entry.resulting_booking_id == result.booking.id
    assert await active_seats(db, event.id) == 1
    assert "event_booking" in mailer.templates()


@pytest.mark.asyncio
async def test_accept_offer_on_paid_event_needs_payment(db, seat_service, content_store, make_user, make_booking):
    event = content_store.add_event(capacity=1, price="120000")
    holder, waiter = await make_user(), await make_user()
    booking = await make_booking(holder, event)
    entry = await seat_service.add_to_waitlist(db, event.id, waiter)
    await seat_service.release_seats(db, booking.id)

    result = await seat_service.accept_waitlist_offer(db, entry.id, waiter.id)

    assert result.needs_payment is True
    assert result.booking.status == BookingStatus.PENDING_PAYMENT
    assert result.booking.amount == 120000


@pytest.mark.asyncio
async def test_accept_fails_when_seats_were_taken(db, seat_service, content_store, make_user, make_booking):
    """An allocation made outside the waitlist can leave an offer without a seat"""
    event = content_store.add_event(capacity=1)
    holder, waiter, walk_in = [await make_user() for _ in range(3)]
    booking = await make_booking(holder, event)
    entry = await seat_service.add_to_waitlist(db, event.id, waiter)
    await seat_service.release_seats(db, booking.id)
    await make_booking(walk_in, event)
    entry_id, waiter_id = entry.id, waiter.id

    with pytest.raises(SeatsUnavailableError):
        await seat_service.accept_waitlist_offer(db, entry_id, waiter_id)

    await db.refresh(entry)
    assert entry.status == WaitlistStatus.OFFER_PENDING
    assert await active_seats(db, event.id) == 1
