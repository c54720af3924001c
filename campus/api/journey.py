"""
Journey endpoints - state, feature access, level progress, trial start, badges.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campus.api.auth import get_current_user
from campus.database import get_db
from campus.models.user import User
from campus.services.badges import badge_overview, get_earned_badges
from campus.services.journey import get_journey_overview, start_trial, trial_status

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/journey", tags=["journey"])


@router.get("")
async def get_journey(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_journey_overview(db, user.id)


@router.post("/trial/start")
async def start_user_trial(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Start the free trial. 400 if a trial was already used or a subscription exists."""
    journey = await start_trial(db, user.id)
    _, days_left = trial_status(journey)
    logger.info("Trial started by user %s", str(user.id)[:8], extra={"user_id": str(user.id)})
    return {
        "message": "Trial started",
        "trialStartedAt": journey.trial_started_at.isoformat(),
        "trialEndsAt": journey.trial_ends_at.isoformat(),
        "daysLeft": days_left,
    }


@router.get("/badges")
async def list_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    earned = await get_earned_badges(db, user.id)
    return badge_overview(earned)
