"""
Check-in endpoints - daily LEBENSENERGIE check-in and its read views.
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.api.auth import get_current_user
from campus.database import get_db
from campus.models.user import User
from campus.schemas.api_responses import CheckInRequest, CheckInCreatedResponse, TodayResponse
from campus.services.checkins import create_check_in, get_today_status, get_history

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/checkin", tags=["checkin"])


@router.post("", status_code=201, response_model=CheckInCreatedResponse)
async def submit_check_in(
    payload: CheckInRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record today's check-in. 400 with the existing check-in if already done today."""
    user_id = user.id
    check_in, new_badges = await create_check_in(
        db,
        user_id,
        energy_level=payload.energyLevel,
        sleep_quality=payload.sleepQuality,
        mood_level=payload.moodLevel,
        energy_givers=payload.energyGivers,
        energy_drainers=payload.energyDrainers,
        notes=payload.notes,
    )
    return {"checkIn": check_in.to_dict(), "newBadges": new_badges}


@router.get("/today", response_model=TodayResponse)
async def today(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_today_status(db, user.id)


@router.get("/history")
async def history(
    days: int = Query(30, ge=1, le=365),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Check-ins of the last N days with stats and a 7-day breakdown."""
    return await get_history(db, user.id, days=days)
