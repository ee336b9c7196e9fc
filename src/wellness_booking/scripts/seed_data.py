"""
Seed script to populate the database with sample accounts for local testing

Creates an admin and two members, grants the first member credits and prints
bearer tokens for each account. Events themselves live in the content store.

Usage:
    python -m wellness_booking.scripts.seed_data [EVENT_ID]

With EVENT_ID, the first member also gets a confirmed booking (and seat) for
that event.
"""
import asyncio
import sys
from datetime import datetime, timedelta
from sqlalchemy import select

from wellness_booking.core.database import AsyncSessionLocal, init_db
from wellness_booking.core.security import create_access_token
from wellness_booking.models import (
    User,
    UserRole,
    Booking,
    BookingStatus,
    BookingType,
    CreditsLedger,
    CreditReason,
)
from wellness_booking.services import SeatAllocationService


async def create_sample_users(db):
    """Create sample users"""
    users_data = [
        {"email": "admin@example.com", "name": "Admin", "role": UserRole.ADMIN},
        {"email": "ana@example.com", "name": "Ana Gómez", "role": UserRole.USER},
        {"email": "luis@example.com", "name": "Luis Pérez", "role": UserRole.USER},
    ]

    users = []
    for user_data in users_data:
        result = await db.execute(select(User).where(User.email == user_data["email"]))
        existing_user = result.scalar_one_or_none()

        if existing_user:
            print(f"User {user_data['email']} already exists, skipping...")
            users.append(existing_user)
            continue

        user = User(**user_data)
        db.add(user)
        users.append(user)
        print(f"Created user: {user.email}")

    await db.commit()
    return users


async def grant_credits(db, user, amount=4):
    db.add(CreditsLedger(
        user_id=user.id,
        amount=amount,
        reason=CreditReason.MONTHLY_GRANT,
        expires_at=datetime.utcnow() + timedelta(days=30),
        notes="Seed grant",
    ))
    await db.commit()
    print(f"Granted {amount} credits to {user.email}")


async def book_event(db, user, event_id):
    seat_service = SeatAllocationService()
    event = await seat_service.content_store.get_event(event_id)
    if event is None:
        print(f"Event {event_id} not found in content store, skipping booking")
        return None

    booking = Booking(
        user_id=user.id,
        booking_type=BookingType.EVENT,
        resource_id=event.id,
        resource_name=event.title,
        scheduled_at=event.event_date,
        status=BookingStatus.CONFIRMED,
        seats=1,
    )
    db.add(booking)
    await db.commit()

    allocation = await seat_service.allocate_seats(db, booking)
    if allocation is None:
        print(f"Event {event_id} is full, booking left without a seat")
    else:
        print(f"Booked 1 seat on '{event.title}' for {user.email}")
    return booking


async def seed_database(event_id=None):
    """Main seeding function"""
    print("Starting database seeding...")
    await init_db()

    async with AsyncSessionLocal() as db:
        print("\n=== Creating Users ===")
        users = await create_sample_users(db)

        print("\n=== Granting Credits ===")
        await grant_credits(db, users[1])

        if event_id:
            print("\n=== Booking Event ===")
            await book_event(db, users[1], event_id)

        print("\n=== Bearer Tokens ===")
        for user in users:
            print(f"{user.email}: {create_access_token(user)}")

        print("\n=== Seeding Complete! ===")


if __name__ == "__main__":
    asyncio.run(seed_database(sys.argv[1] if len(sys.argv) > 1 else None))
