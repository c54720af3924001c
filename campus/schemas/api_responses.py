"""
Request/response schemas for the check-in, journey and webhook endpoints.
Field names follow the public JSON contract (camelCase).
"""
from typing import Optional
from pydantic import BaseModel, Field


class CheckInRequest(BaseModel):
    energyLevel: int = Field(..., ge=1, le=10)
    sleepQuality: int = Field(..., ge=1, le=10)
    moodLevel: int = Field(..., ge=1, le=10)
    energyGivers: list[str] = Field(default_factory=list)
    energyDrainers: list[str] = Field(default_factory=list)
    notes: Optional[str] = None


class CheckInOut(BaseModel):
    id: str
    energyLevel: int
    sleepQuality: int
    moodLevel: int
    energyGivers: list[str]
    energyDrainers: list[str]
    lebensenergieScore: float
    notes: Optional[str] = None
    checkedInAt: Optional[str] = None


class CheckInCreatedResponse(BaseModel):
    checkIn: CheckInOut
    newBadges: list[str]


class TodayResponse(BaseModel):
    hasCheckedIn: bool
    checkIn: Optional[CheckInOut] = None
    streak: int


class WebhookAck(BaseModel):
    success: bool = True
    eventId: str
