"""
Seat allocation and waitlist service

Capacity accounting for content-store events and the waitlist state machine
(join, timed offers, accept/decline, expiry, reminders).

Every capacity-affecting change runs in one relational transaction:
releasing a seat and offering it to the next person in line commit together
or not at all. Waitlist status changes are conditional updates guarded by the
expected source state, so a decline racing the expiry sweep resolves to
exactly one winner.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import select, update, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_booking.core.config import settings
from wellness_booking.core.database import atomic
from wellness_booking.core.metrics import (
    track_time,
    record_waitlist_transition,
    seats_released_total,
    waitlist_reminders_sent_total,
    waitlist_sweep_duration_seconds,
)
from wellness_booking.models import (
    Booking,
    BookingStatus,
    BookingType,
    SeatAllocation,
    SeatAllocationStatus,
    User,
    WaitlistEntry,
    WaitlistStatus,
    ACTIVE_WAITLIST_STATUSES,
)
from wellness_booking.models.waitlist_entry import allowed_sources
from wellness_booking.schemas.event import EventContent
from wellness_booking.services.content_store import (
    ContentStoreClient,
    ContentStoreError,
    content_store as default_content_store,
)
from wellness_booking.services.email_service import EmailService, email_service as default_email_service
import logging

logger = logging.getLogger(__name__)


class SeatAllocationError(Exception):
    """Base exception for seat allocation and waitlist errors"""
    error_code = "SEAT_ALLOCATION_ERROR"
    default_message = "Error al procesar la lista de espera"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class EventNotFoundError(SeatAllocationError):
    """Raised when the content store has no such event"""
    error_code = "EVENT_NOT_FOUND"
    default_message = "Evento no encontrado"


class EventNotBookableError(SeatAllocationError):
    """Raised when the event is not open for reservations"""
    error_code = "EVENT_NOT_BOOKABLE"
    default_message = "Este evento no está disponible para reservas"


class InvalidSeatCountError(SeatAllocationError):
    error_code = "INVALID_SEATS"
    default_message = "Cantidad de cupos inválida"


class SpotsStillAvailableError(SeatAllocationError):
    """Raised when joining the waitlist while seats can still be booked directly"""
    error_code = "SPOTS_AVAILABLE"
    default_message = "Hay cupos disponibles. Por favor realiza una reserva normal."


class WaitlistEntryNotFoundError(SeatAllocationError):
    error_code = "NOT_FOUND"
    default_message = "Entrada de lista de espera no encontrada"


class WaitlistPermissionError(SeatAllocationError):
    """Raised when a user acts on someone else's waitlist entry"""
    error_code = "FORBIDDEN"
    default_message = "No tienes permiso para esta acción"


class OfferNotAvailableError(SeatAllocationError):
    """Raised when the entry no longer holds a pending offer"""
    error_code = "OFFER_NOT_AVAILABLE"
    default_message = "Esta oferta ya no está disponible"


class OfferExpiredError(SeatAllocationError):
    error_code = "OFFER_EXPIRED"
    default_message = "La oferta ha expirado. Se ha pasado al siguiente en la lista."


class SeatsUnavailableError(SeatAllocationError):
    error_code = "SEATS_UNAVAILABLE"
    default_message = "Los cupos ya no están disponibles"


class AlreadyInWaitlistError(SeatAllocationError):
    error_code = "ALREADY_IN_WAITLIST"
    default_message = "Ya estás en la lista de espera para este evento"


class InvalidStateTransitionError(SeatAllocationError):
    """Raised when a waitlist entry is not in a state the transition may start from"""
    error_code = "INVALID_STATE"
    default_message = "Esta entrada ya no está activa"


@dataclass
class EventAvailability:
    event_id: str
    capacity: Optional[int]
    allocated_seats: int
    available_spots: Optional[int]
    waitlist_count: int


@dataclass
class WaitlistStats:
    waiting: int = 0
    offer_pending: int = 0
    accepted: int = 0
    declined: int = 0
    expired: int = 0
    cancelled: int = 0
    total: int = 0


@dataclass
class ReleaseOutcome:
    """Seats freed by one release and the offers it produced"""
    seats_released: int = 0
    event: Optional[EventContent] = None
    offers: List[WaitlistEntry] = field(default_factory=list)


@dataclass
class AcceptResult:
    booking: Booking
    needs_payment: bool


@dataclass
class SweepResult:
    expired: int = 0
    reminders: int = 0


class SeatAllocationService:
    """Capacity accounting and waitlist progression for events"""

    def __init__(
        self,
        content_store: Optional[ContentStoreClient] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.content_store = content_store or default_content_store
        self.email_service = email_service or default_email_service

    # ==================== Capacity ====================

    async def _require_event(self, event_id: str) -> EventContent:
        event = await self.content_store.get_event(event_id)
        if event is None:
            raise EventNotFoundError(f"Evento no encontrado: {event_id}")
        return event

    @staticmethod
    async def _lock_event(db: AsyncSession, event_id: str) -> None:
        """
        Serialize capacity changes per event for the rest of the transaction.

        Events live outside the database, so there is no row to lock; on
        PostgreSQL a transaction-scoped advisory lock stands in for it.
        """
        if db.get_bind().dialect.name == "postgresql":
            await db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:event_id))"), {"event_id": event_id})

    @staticmethod
    async def _allocated_seats(db: AsyncSession, event_id: str) -> int:
        result = await db.execute(
            select(func.coalesce(func.sum(SeatAllocation.seats), 0)).where(
                SeatAllocation.event_id == event_id,
                SeatAllocation.status == SeatAllocationStatus.ACTIVE,
            )
        )
        return int(result.scalar() or 0)

    @staticmethod
    async def _pending_offer_seats(
        db: AsyncSession,
        event_id: str,
        exclude_entry_id: Optional[str] = None,
    ) -> int:
        query = select(func.coalesce(func.sum(WaitlistEntry.seats_requested), 0)).where(
            WaitlistEntry.event_id == event_id,
            WaitlistEntry.status == WaitlistStatus.OFFER_PENDING,
        )
        if exclude_entry_id:
            query = query.where(WaitlistEntry.id != exclude_entry_id)
        result = await db.execute(query)
        return int(result.scalar() or 0)

    async def _offerable_seats(
        self,
        db: AsyncSession,
        event: EventContent,
        exclude_entry_id: Optional[str] = None,
    ) -> Optional[int]:
        """Seats nobody holds: capacity minus allocations minus pending offers"""
        if not event.has_finite_capacity:
            return None
        allocated = await self._allocated_seats(db, event.id)
        pending = await self._pending_offer_seats(db, event.id, exclude_entry_id)
        return event.capacity - allocated - pending

    async def get_available_spots(self, db: AsyncSession, event_id: str) -> Optional[int]:
        """Remaining capacity, None for unlimited events"""
        event = await self._require_event(event_id)
        if not event.has_finite_capacity:
            return None
        allocated = await self._allocated_seats(db, event_id)
        return max(0, event.capacity - allocated)

    async def get_event_availability(self, db: AsyncSession, event_id: str) -> EventAvailability:
        event = await self._require_event(event_id)
        allocated = await self._allocated_seats(db, event_id)

        result = await db.execute(
            select(func.count(WaitlistEntry.id)).where(
                WaitlistEntry.event_id == event_id,
                WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES),
            )
        )
        waitlist_count = result.scalar() or 0

        available = None if not event.has_finite_capacity else max(0, event.capacity - allocated)
        return EventAvailability(
            event_id=event_id,
            capacity=event.capacity,
            allocated_seats=allocated,
            available_spots=available,
            waitlist_count=waitlist_count,
        )

    async def has_available_spots(self, db: AsyncSession, event_id: str, seats_requested: int = 1) -> bool:
        """Whether ``seats_requested`` can be booked right now, pending offers included"""
        event = await self._require_event(event_id)
        offerable = await self._offerable_seats(db, event)
        return offerable is None or offerable >= seats_requested

    async def _allocate(
        self,
        db: AsyncSession,
        booking: Booking,
        event: EventContent,
        seats: int,
        exclude_entry_id: Optional[str] = None,
    ) -> Optional[SeatAllocation]:
        offerable = await self._offerable_seats(db, event, exclude_entry_id)
        if offerable is not None and seats > offerable:
            return None

        allocation = SeatAllocation(
            event_id=event.id,
            booking_id=booking.id,
            user_id=booking.user_id,
            seats=seats,
            status=SeatAllocationStatus.ACTIVE,
        )
        db.add(allocation)
        await db.flush()
        return allocation

    async def allocate_seats(
        self,
        db: AsyncSession,
        booking: Booking,
        seats: Optional[int] = None,
    ) -> Optional[SeatAllocation]:
        """
        Take ``seats`` (default: the booking's seats) for an EVENT booking.

        Returns None when the event cannot fit them.
        """
        seats = seats or booking.seats
        event = await self._require_event(booking.resource_id)

        async with atomic(db):
            await self._lock_event(db, event.id)
            allocation = await self._allocate(db, booking, event, seats)

        if allocation:
            logger.info(f"Allocated {seats} seat(s) on event {event.id} for booking {booking.id}")
        else:
            logger.info(f"Event {event.id} cannot fit {seats} seat(s) for booking {booking.id}")
        return allocation

    # ==================== Waitlist state machine ====================

    @staticmethod
    async def _transition(db: AsyncSession, entry_id: str, target: WaitlistStatus, **values) -> None:
        result = await db.execute(
            update(WaitlistEntry)
            .where(
                WaitlistEntry.id == entry_id,
                WaitlistEntry.status.in_(allowed_sources(target)),
            )
            .values(status=target, **values)
        )
        if result.rowcount != 1:
            raise InvalidStateTransitionError(
                f"La entrada {entry_id} no puede pasar a {target.value}"
            )
        record_waitlist_transition(target.value)

    @staticmethod
    async def _load_entry(db: AsyncSession, entry_id: str) -> WaitlistEntry:
        result = await db.execute(
            select(WaitlistEntry).where(WaitlistEntry.id == entry_id).with_for_update()
        )
        entry = result.scalar_one_or_none()
        if not entry:
            raise WaitlistEntryNotFoundError()
        return entry

    async def _lock_entry(self, db: AsyncSession, entry_id: str) -> WaitlistEntry:
        """Event lock first, then the entry row, the same order promotion uses"""
        result = await db.execute(select(WaitlistEntry.event_id).where(WaitlistEntry.id == entry_id))
        event_id = result.scalar_one_or_none()
        if event_id is None:
            raise WaitlistEntryNotFoundError()
        await self._lock_event(db, event_id)
        return await self._load_entry(db, entry_id)

    async def _promote_next(
        self,
        db: AsyncSession,
        event: EventContent,
        now: datetime,
    ) -> Optional[WaitlistEntry]:
        """
        Offer free seats to the first WAITING entry that fits them.

        At most one entry is promoted per call; entries are taken in
        position order, ties going to the earliest joined.
        """
        offerable = await self._offerable_seats(db, event)
        if offerable is None or offerable <= 0:
            return None

        result = await db.execute(
            select(WaitlistEntry)
            .where(
                WaitlistEntry.event_id == event.id,
                WaitlistEntry.status == WaitlistStatus.WAITING,
                WaitlistEntry.seats_requested <= offerable,
            )
            .order_by(WaitlistEntry.position.asc(), WaitlistEntry.created_at.asc())
            .limit(1)
            .with_for_update()
        )
        entry = result.scalar_one_or_none()
        if not entry:
            return None

        await self._transition(
            db,
            entry.id,
            WaitlistStatus.OFFER_PENDING,
            offer_sent_at=now,
            offer_expires_at=now + timedelta(hours=settings.WAITLIST_OFFER_HOURS),
            reminder_sent_at=None,
            responded_at=None,
        )
        await db.refresh(entry)

        logger.info(
            f"Offered {entry.seats_requested} seat(s) on event {event.id} to waitlist entry {entry.id}",
            extra={"event_id": event.id, "entry_id": entry.id},
        )
        return entry

    async def _send_offers(self, event: Optional[EventContent], offers: List[WaitlistEntry]) -> None:
        for entry in offers:
            await self.email_service.send_waitlist_offer_email(
                email=entry.user_email,
                name=entry.user_name,
                event_title=event.title if event else entry.event_id,
                event_date=event.event_date if event else None,
                seats=entry.seats_requested,
                expires_at=entry.offer_expires_at,
            )

    async def notify_release(self, outcome: ReleaseOutcome) -> None:
        """Send offer emails for a release, once its transaction has committed"""
        await self._send_offers(outcome.event, outcome.offers)

    # ==================== Seat release ====================

    async def release_booking_seats(
        self,
        db: AsyncSession,
        booking_id: str,
        now: Optional[datetime] = None,
    ) -> ReleaseOutcome:
        """
        Release the booking's ACTIVE allocation and promote the waitlist.

        Runs inside the caller's transaction and sends nothing; pass the
        outcome to ``notify_release`` after commit.
        """
        now = now or datetime.utcnow()

        active = (
            SeatAllocation.booking_id == booking_id,
            SeatAllocation.status == SeatAllocationStatus.ACTIVE,
        )
        result = await db.execute(select(SeatAllocation.event_id).where(*active))
        event_id = result.scalar_one_or_none()
        if event_id is None:
            return ReleaseOutcome()

        await self._lock_event(db, event_id)
        result = await db.execute(select(SeatAllocation).where(*active).with_for_update())
        allocation = result.scalar_one_or_none()
        if not allocation:
            return ReleaseOutcome()

        allocation.status = SeatAllocationStatus.RELEASED
        allocation.released_at = now
        await db.flush()

        seats_released_total.inc(allocation.seats)
        logger.info(
            f"Released {allocation.seats} seat(s) on event {allocation.event_id} from booking {booking_id}",
            extra={"event_id": allocation.event_id, "booking_id": booking_id},
        )

        outcome = ReleaseOutcome(seats_released=allocation.seats)
        outcome.event = await self.content_store.get_event(allocation.event_id)
        if outcome.event is None:
            logger.warning(f"Event {allocation.event_id} no longer in content store; skipping waitlist promotion")
            return outcome

        offered = await self._promote_next(db, outcome.event, now)
        if offered:
            outcome.offers.append(offered)
        return outcome

    async def release_seats(self, db: AsyncSession, booking_id: str, now: Optional[datetime] = None) -> int:
        """Release a booking's seats; returns how many were freed (0 if none were held)"""
        async with atomic(db):
            outcome = await self.release_booking_seats(db, booking_id, now)
        await self.notify_release(outcome)
        return outcome.seats_released

    # ==================== Waitlist queries ====================

    async def get_waitlist_position(self, db: AsyncSession, event_id: str, user_id: str) -> Optional[int]:
        result = await db.execute(
            select(WaitlistEntry.position).where(
                WaitlistEntry.event_id == event_id,
                WaitlistEntry.user_id == user_id,
                WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES),
            )
        )
        return result.scalar_one_or_none()

    async def get_waitlist_entry(self, db: AsyncSession, event_id: str, user_id: str) -> Optional[WaitlistEntry]:
        """The user's entry for the event in any status"""
        result = await db.execute(
            select(WaitlistEntry).where(
                WaitlistEntry.event_id == event_id,
                WaitlistEntry.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_user_waitlist_entries(self, db: AsyncSession, user_id: str) -> List[WaitlistEntry]:
        """The user's WAITING and OFFER_PENDING entries, newest first"""
        result = await db.execute(
            select(WaitlistEntry)
            .where(
                WaitlistEntry.user_id == user_id,
                WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES),
            )
            .order_by(WaitlistEntry.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_event_waitlist_stats(self, db: AsyncSession, event_id: str) -> WaitlistStats:
        result = await db.execute(
            select(WaitlistEntry.status, func.count(WaitlistEntry.id))
            .where(WaitlistEntry.event_id == event_id)
            .group_by(WaitlistEntry.status)
        )
        stats = WaitlistStats()
        for status, count in result.all():
            setattr(stats, status.value.lower(), count)
            stats.total += count
        return stats

    # ==================== Waitlist operations ====================

    async def add_to_waitlist(
        self,
        db: AsyncSession,
        event_id: str,
        user: User,
        seats_requested: int = 1,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WaitlistEntry:
        """
        Put the user at the back of the event's waitlist.

        A user coming back after a terminal state reuses their row with a
        fresh position.
        """
        now = now or datetime.utcnow()
        event = await self._require_event(event_id)

        if event.status != "upcoming":
            raise EventNotBookableError()
        if event.event_date < now:
            raise EventNotBookableError("Este evento ya ha pasado")
        if seats_requested < 1 or seats_requested > event.max_per_booking:
            raise InvalidSeatCountError(
                f"Puedes solicitar entre 1 y {event.max_per_booking} cupos"
            )

        async with atomic(db):
            await self._lock_event(db, event_id)

            offerable = await self._offerable_seats(db, event)
            if offerable is None or offerable >= seats_requested:
                raise SpotsStillAvailableError()

            result = await db.execute(
                select(WaitlistEntry)
                .where(WaitlistEntry.event_id == event_id, WaitlistEntry.user_id == user.id)
                .with_for_update()
            )
            entry = result.scalar_one_or_none()
            if entry and entry.is_active:
                raise AlreadyInWaitlistError(
                    f"Ya estás en la lista de espera en posición {entry.position}"
                )

            result = await db.execute(
                select(func.max(WaitlistEntry.position)).where(WaitlistEntry.event_id == event_id)
            )
            position = (result.scalar() or 0) + 1

            if entry:
                await self._transition(
                    db,
                    entry.id,
                    WaitlistStatus.WAITING,
                    position=position,
                    seats_requested=seats_requested,
                    user_email=user.email,
                    user_name=user.name,
                    notes=notes,
                    offer_sent_at=None,
                    offer_expires_at=None,
                    reminder_sent_at=None,
                    responded_at=None,
                    resulting_booking_id=None,
                )
                await db.refresh(entry)
            else:
                entry = WaitlistEntry(
                    event_id=event_id,
                    user_id=user.id,
                    position=position,
                    seats_requested=seats_requested,
                    status=WaitlistStatus.WAITING,
                    user_email=user.email,
                    user_name=user.name,
                    notes=notes,
                )
                db.add(entry)
                await db.flush()
                record_waitlist_transition(WaitlistStatus.WAITING.value)

        logger.info(
            f"User {user.id} joined waitlist for event {event_id} at position {position}",
            extra={"user_id": user.id, "event_id": event_id, "entry_id": entry.id},
        )

        await self.email_service.send_waitlist_joined_email(
            email=user.email,
            name=user.name,
            event_title=event.title,
            event_date=event.event_date,
            position=entry.position,
            seats_requested=seats_requested,
        )
        return entry

    async def cancel_waitlist_entry(
        self,
        db: AsyncSession,
        entry_id: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Leave the waitlist; a pending offer given up this way moves down the line"""
        now = now or datetime.utcnow()
        outcome = ReleaseOutcome()

        async with atomic(db):
            entry = await self._lock_entry(db, entry_id)
            if entry.user_id != user_id:
                raise WaitlistPermissionError("No tienes permiso para cancelar esta entrada")
            if not entry.is_active:
                raise InvalidStateTransitionError()

            held_offer = entry.status == WaitlistStatus.OFFER_PENDING
            await self._transition(db, entry.id, WaitlistStatus.CANCELLED, responded_at=now)

            if held_offer:
                outcome.event = await self.content_store.get_event(entry.event_id)
                if outcome.event:
                    offered = await self._promote_next(db, outcome.event, now)
                    if offered:
                        outcome.offers.append(offered)

        logger.info(f"Waitlist entry {entry_id} cancelled by user {user_id}")
        await self.notify_release(outcome)

    async def accept_waitlist_offer(
        self,
        db: AsyncSession,
        entry_id: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> AcceptResult:
        """
        Turn a pending offer into a booking with an ACTIVE seat allocation.

        Priced events produce a PENDING_PAYMENT booking. An offer found past
        its deadline is expired (and passed on) before OfferExpiredError is
        raised.
        """
        now = now or datetime.utcnow()
        outcome = ReleaseOutcome()
        expired = False

        async with atomic(db):
            entry = await self._lock_entry(db, entry_id)
            if entry.user_id != user_id:
                raise WaitlistPermissionError("No tienes permiso para aceptar esta oferta")
            if entry.status != WaitlistStatus.OFFER_PENDING:
                raise OfferNotAvailableError()

            event = await self._require_event(entry.event_id)
            outcome.event = event

            if entry.offer_is_expired(now):
                expired = True
                await self._transition(db, entry.id, WaitlistStatus.EXPIRED, responded_at=now)
                offered = await self._promote_next(db, event, now)
                if offered:
                    outcome.offers.append(offered)
            else:
                needs_payment = event.is_paid
                booking = Booking(
                    user_id=user_id,
                    booking_type=BookingType.EVENT,
                    resource_id=event.id,
                    resource_name=event.title,
                    scheduled_at=event.event_date,
                    status=BookingStatus.PENDING_PAYMENT if needs_payment else BookingStatus.CONFIRMED,
                    seats=entry.seats_requested,
                    amount=(event.price or Decimal("0")) * entry.seats_requested,
                )
                db.add(booking)
                await db.flush()

                allocation = await self._allocate(
                    db, booking, event, entry.seats_requested, exclude_entry_id=entry.id
                )
                if allocation is None:
                    raise SeatsUnavailableError()

                await self._transition(
                    db,
                    entry.id,
                    WaitlistStatus.ACCEPTED,
                    responded_at=now,
                    resulting_booking_id=booking.id,
                )

        if expired:
            logger.info(f"Waitlist offer {entry_id} expired before acceptance")
            await self.email_service.send_waitlist_offer_expired_email(
                email=entry.user_email, name=entry.user_name, event_title=event.title
            )
            await self.notify_release(outcome)
            raise OfferExpiredError()

        logger.info(
            f"Waitlist offer {entry_id} accepted; booking {booking.id} created",
            extra={"user_id": user_id, "event_id": event.id, "booking_id": booking.id},
        )
        await self.email_service.send_event_booking_confirmation(
            email=entry.user_email,
            name=entry.user_name,
            event_title=event.title,
            event_date=event.event_date,
            seats=entry.seats_requested,
            needs_payment=needs_payment,
        )
        return AcceptResult(booking=booking, needs_payment=needs_payment)

    async def decline_waitlist_offer(
        self,
        db: AsyncSession,
        entry_id: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[WaitlistEntry]:
        """Decline a pending offer; returns the entry the seat went to next, if any"""
        now = now or datetime.utcnow()
        outcome = ReleaseOutcome()

        async with atomic(db):
            entry = await self._lock_entry(db, entry_id)
            if entry.user_id != user_id:
                raise WaitlistPermissionError("No tienes permiso para rechazar esta oferta")
            if entry.status != WaitlistStatus.OFFER_PENDING:
                raise OfferNotAvailableError()

            await self._transition(db, entry.id, WaitlistStatus.DECLINED, responded_at=now)

            outcome.event = await self.content_store.get_event(entry.event_id)
            if outcome.event:
                offered = await self._promote_next(db, outcome.event, now)
                if offered:
                    outcome.offers.append(offered)

        logger.info(f"Waitlist offer {entry_id} declined by user {user_id}")
        await self.notify_release(outcome)
        return outcome.offers[0] if outcome.offers else None

    async def expire_waitlist_offer(
        self,
        db: AsyncSession,
        entry_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[WaitlistEntry]:
        """Expire a pending offer and pass the seat on; returns the next offer, if any"""
        now = now or datetime.utcnow()
        outcome = ReleaseOutcome()

        async with atomic(db):
            entry = await self._lock_entry(db, entry_id)
            await self._transition(db, entry.id, WaitlistStatus.EXPIRED, responded_at=now)

            outcome.event = await self.content_store.get_event(entry.event_id)
            if outcome.event:
                offered = await self._promote_next(db, outcome.event, now)
                if offered:
                    outcome.offers.append(offered)

        logger.info(f"Waitlist offer {entry_id} expired", extra={"entry_id": entry_id})
        await self.email_service.send_waitlist_offer_expired_email(
            email=entry.user_email,
            name=entry.user_name,
            event_title=outcome.event.title if outcome.event else entry.event_id,
        )
        await self.notify_release(outcome)
        return outcome.offers[0] if outcome.offers else None

    @track_time(waitlist_sweep_duration_seconds)
    async def process_expired_offers(self, db: AsyncSession, now: Optional[datetime] = None) -> SweepResult:
        """
        Expire overdue offers and remind holders of offers about to lapse.

        Each expiry and each reminder is its own transaction; a failure on one
        entry is logged and the sweep moves on to the next. A reminder is only
        stamped once its event has been fetched, so an entry skipped because
        the content store is down is picked up again by the next run.
        """
        now = now or datetime.utcnow()
        sweep = SweepResult()

        result = await db.execute(
            select(WaitlistEntry.id)
            .where(
                WaitlistEntry.status == WaitlistStatus.OFFER_PENDING,
                WaitlistEntry.offer_expires_at < now,
            )
            .order_by(WaitlistEntry.offer_expires_at.asc())
        )
        overdue = list(result.scalars().all())
        await db.commit()

        for entry_id in overdue:
            try:
                await self.expire_waitlist_offer(db, entry_id, now)
            except (InvalidStateTransitionError, WaitlistEntryNotFoundError):
                # Accepted, declined or cancelled since the scan
                logger.info(f"Waitlist entry {entry_id} resolved before expiry; skipping")
                continue
            except (SeatAllocationError, ContentStoreError, SQLAlchemyError) as e:
                logger.error(f"Failed to expire waitlist entry {entry_id}: {e}", extra={"entry_id": entry_id})
                continue
            sweep.expired += 1

        reminder_cutoff = now + timedelta(hours=settings.WAITLIST_REMINDER_HOURS)
        result = await db.execute(
            select(
                WaitlistEntry.id,
                WaitlistEntry.event_id,
                WaitlistEntry.user_email,
                WaitlistEntry.user_name,
                WaitlistEntry.offer_expires_at,
            ).where(
                WaitlistEntry.status == WaitlistStatus.OFFER_PENDING,
                WaitlistEntry.offer_expires_at > now,
                WaitlistEntry.offer_expires_at <= reminder_cutoff,
                WaitlistEntry.reminder_sent_at.is_(None),
            )
        )
        due = list(result.all())
        await db.commit()

        for entry in due:
            try:
                sent = await self._send_reminder(db, entry, now)
            except (ContentStoreError, SQLAlchemyError) as e:
                logger.error(f"Failed to remind waitlist entry {entry.id}: {e}", extra={"entry_id": entry.id})
                continue
            if sent:
                sweep.reminders += 1

        logger.info(f"Waitlist sweep: {sweep.expired} offer(s) expired, {sweep.reminders} reminder(s) sent")
        return sweep

    async def _send_reminder(self, db: AsyncSession, entry, now: datetime) -> bool:
        """Stamp and send one reminder; ``entry`` is a plain row, not a tracked instance"""
        event = await self.content_store.get_event(entry.event_id)
        if not event:
            logger.warning(f"Event {entry.event_id} not found; no reminder for entry {entry.id}")
            return False

        async with atomic(db):
            marked = await db.execute(
                update(WaitlistEntry)
                .where(
                    WaitlistEntry.id == entry.id,
                    WaitlistEntry.status == WaitlistStatus.OFFER_PENDING,
                    WaitlistEntry.reminder_sent_at.is_(None),
                )
                .values(reminder_sent_at=now)
            )
        if marked.rowcount != 1:
            return False

        hours_remaining = math.ceil((entry.offer_expires_at - now).total_seconds() / 3600)
        await self.email_service.send_waitlist_offer_reminder_email(
            email=entry.user_email,
            name=entry.user_name,
            event_title=event.title,
            hours_remaining=hours_remaining,
        )
        waitlist_reminders_sent_total.inc()
        return True
