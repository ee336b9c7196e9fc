import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from wellness_booking.core.database import Base, get_db
from wellness_booking.core.security import create_access_token
from wellness_booking.middleware.rate_limiter import limiter
from wellness_booking.models import (
    Booking,
    BookingStatus,
    BookingType,
    SeatAllocation,
    SeatAllocationStatus,
    User,
    UserRole,
    WaitlistEntry,
    WaitlistStatus,
)
from wellness_booking.schemas.event import EventContent
from wellness_booking.services import (
    BookingCancellationService,
    ContentStoreError,
    EmailService,
    SeatAllocationService,
    get_content_store,
    get_email_service,
)


class FakeContentStore:
    """In-memory stand-in for the CMS client"""

    def __init__(self):
        self.events = {}
        self.unavailable = False

    def add_event(
        self,
        event_id="evt-luna",
        capacity=1,
        price=None,
        days_ahead=10,
        status="upcoming",
        max_per_booking=2,
        title="Círculo de luna llena",
    ) -> EventContent:
        event = EventContent(
            id=event_id,
            title=title,
            event_date=datetime.utcnow() + timedelta(days=days_ahead),
            capacity=capacity,
            max_per_booking=max_per_booking,
            status=status,
            price=Decimal(price) if price is not None else None,
        )
        self.events[event_id] = event
        return event

    async def get_event(self, event_id):
        if self.unavailable:
            raise ContentStoreError("CMS unreachable")
        return self.events.get(event_id)


class RecordingEmailService(EmailService):
    """Captures outgoing mail instead of talking to SMTP"""

    def __init__(self):
        self.sent = []

    async def send(self, template, to_email, subject, body):
        self.sent.append({"template": template, "to": to_email, "subject": subject, "body": body})
        return True

    def templates(self):
        return [mail["template"] for mail in self.sent]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def content_store():
    return FakeContentStore()


@pytest.fixture
def mailer():
    return RecordingEmailService()


@pytest.fixture
def seat_service(content_store, mailer):
    return SeatAllocationService(content_store=content_store, email_service=mailer)


@pytest.fixture
def cancellation_service(seat_service, mailer):
    return BookingCancellationService(seat_service=seat_service, email_service=mailer)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make_user(name=None, role=UserRole.USER):
        counter["n"] += 1
        n = counter["n"]
        user = User(email=f"user{n}@example.com", name=name or f"Usuario {n}", role=role)
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
def make_booking(db):
    async def _make_booking(
        user,
        event=None,
        seats=1,
        status=BookingStatus.CONFIRMED,
        booking_type=BookingType.EVENT,
        scheduled_at=None,
        allocate=True,
    ):
        booking = Booking(
            user_id=user.id,
            booking_type=booking_type,
            resource_id=event.id if event else "sesion-1a1",
            resource_name=event.title if event else "Sesión 1:1",
            scheduled_at=scheduled_at or (event.event_date if event else datetime.utcnow() + timedelta(days=5)),
            status=status,
            seats=seats,
        )
        db.add(booking)
        await db.flush()
        if event and allocate:
            db.add(SeatAllocation(
                event_id=event.id,
                booking_id=booking.id,
                user_id=user.id,
                seats=seats,
                status=SeatAllocationStatus.ACTIVE,
            ))
        await db.commit()
        return booking

    return _make_booking


@pytest.fixture
def make_entry(db):
    """Insert a waitlist row directly, bypassing the join rules"""
    async def _make_entry(user, event_id, position, status=WaitlistStatus.WAITING, seats=1, offer_expires_at=None):
        entry = WaitlistEntry(
            event_id=event_id,
            user_id=user.id,
            position=position,
            seats_requested=seats,
            status=status,
            user_email=user.email,
            user_name=user.name,
            offer_sent_at=offer_expires_at - timedelta(hours=24) if offer_expires_at else None,
            offer_expires_at=offer_expires_at,
        )
        db.add(entry)
        await db.commit()
        return entry

    return _make_entry


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}
    return _auth_headers


@pytest_asyncio.fixture
async def client(session_factory, content_store, mailer):
    from wellness_booking.main import create_app

    app = create_app(use_lifespan=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_content_store] = lambda: content_store
    app.dependency_overrides[get_email_service] = lambda: mailer
    limiter.reset()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
