"""
Pydantic schemas for Event resources

Events live in the headless content store; the application only reads them.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class EventContent(BaseModel):
    """Event definition as published in the content store"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    title: str
    event_date: datetime = Field(..., alias="eventDate")
    end_date: Optional[datetime] = Field(None, alias="endDate")
    capacity: Optional[int] = Field(None, ge=0, description="None means unlimited")
    max_per_booking: int = Field(1, alias="maxPerBooking", ge=1)
    status: str = "upcoming"
    price: Optional[Decimal] = None

    @field_validator("event_date", "end_date", mode="after")
    @classmethod
    def normalize_dates(cls, v):
        return _to_naive_utc(v)

    @field_validator("capacity", mode="before")
    @classmethod
    def zero_capacity_is_unlimited(cls, v):
        # The CMS stores an empty capacity field as 0
        return v or None

    @field_validator("max_per_booking", mode="before")
    @classmethod
    def default_max_per_booking(cls, v):
        return v or 1

    @property
    def has_finite_capacity(self) -> bool:
        return self.capacity is not None

    @property
    def is_paid(self) -> bool:
        return bool(self.price)


class EventAvailabilityResponse(BaseModel):
    """Capacity and waitlist snapshot for an event"""
    eventId: str
    capacity: Optional[int] = None
    allocatedSeats: int
    availableSpots: Optional[int] = None
    waitlistCount: int
    hasWaitlist: bool
    isSoldOut: bool
    userWaitlistPosition: Optional[int] = None
