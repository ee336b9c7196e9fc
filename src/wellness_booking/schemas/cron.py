"""Response schemas for scheduled jobs"""
from pydantic import BaseModel


class WaitlistSweepResults(BaseModel):
    expiredOffers: int
    remindersSent: int


class WaitlistSweepResponse(BaseModel):
    success: bool = True
    timestamp: str
    duration: str
    results: WaitlistSweepResults


class CreditExpiryResponse(BaseModel):
    success: bool = True
    timestamp: str
    duration: str
    expired: int
