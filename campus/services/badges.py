"""
Badge engine - fixed catalog of achievements, awarded at most once per user.

Check-in badges are evaluated after every check-in against an ordered
predicate list. Collaborator badges (community, workshops, upgrades) are
awarded from outside through grant_badge. Both go through the same
race-safe insert-if-absent, so concurrent evaluation never duplicates a row.
Earned badges are never revoked.
"""
import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus.database import insert_for
from campus.models.check_in import CheckIn
from campus.models.user_badge import UserBadge
from campus.services.notifications import create_notification, format_badge_earned
from campus.services.streaks import compute_streak

logger = logging.getLogger(__name__)

BADGE_CATALOG = {
    "first-checkin": {"name": "Erster Check-in", "description": "Du hast deinen ersten Check-in gemacht!"},
    "3-day-streak": {"name": "3-Tage Streak", "description": "3 Tage in Folge eingecheckt!"},
    "7-day-streak": {"name": "7-Tage Streak", "description": "Eine ganze Woche Streak!"},
    "30-day-streak": {"name": "30-Tage Streak", "description": "Ein ganzer Monat! Unglaublich!"},
    "level-5": {"name": "Level 5", "description": "Du hast Level 5 erreicht!"},
    "level-10": {"name": "Level 10", "description": "Du hast Level 10 erreicht!"},
    "high-energy": {"name": "Energiebündel", "description": "LEBENSENERGIE-Score über 9!"},
    "consistent": {"name": "Konstant", "description": "7 Tage mit Score über 6!"},
    # Awarded by collaborators
    "first-post": {"name": "Erster Beitrag", "description": "Dein erster Beitrag in der Community!"},
    "success-story": {"name": "Erfolgsgeschichte", "description": "Du hast deine Erfolgsgeschichte geteilt!"},
    "first-workshop": {"name": "Erster Workshop", "description": "Du hast an deinem ersten Workshop teilgenommen!"},
    "resilienz-upgrade": {"name": "RESILIENZ", "description": "Du bist auf RESILIENZ umgestiegen!"},
}

CONSISTENT_WINDOW = 7
CONSISTENT_MIN_SCORE = 6
HIGH_ENERGY_MIN_SCORE = 9


def eligible_badges(
    total_check_ins: int,
    streak: int,
    latest_score: Optional[float],
    recent_scores: list[float],
    level: int,
) -> list[str]:
    """
    Ordered list of check-in badge slugs whose predicate currently holds.
    recent_scores are the newest check-ins first.
    """
    slugs = []
    if total_check_ins >= 1:
        slugs.append("first-checkin")
    if streak >= 3:
        slugs.append("3-day-streak")
    if streak >= 7:
        slugs.append("7-day-streak")
    if streak >= 30:
        slugs.append("30-day-streak")
    if latest_score is not None and latest_score >= HIGH_ENERGY_MIN_SCORE:
        slugs.append("high-energy")

    last_week = recent_scores[:CONSISTENT_WINDOW]
    if len(last_week) >= CONSISTENT_WINDOW and all(s >= CONSISTENT_MIN_SCORE for s in last_week):
        slugs.append("consistent")

    if level >= 5:
        slugs.append("level-5")
    if level >= 10:
        slugs.append("level-10")
    return slugs


async def get_earned_badges(db: AsyncSession, user_id: uuid.UUID) -> list[UserBadge]:
    result = await db.execute(
        select(UserBadge)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc())
    )
    return list(result.scalars().all())


async def award_badge(db: AsyncSession, user_id: uuid.UUID, slug: str) -> bool:
    """
    Insert the badge unless it already exists.
    Returns True only for the call that actually created the row.
    """
    if slug not in BADGE_CATALOG:
        raise ValueError(f"Unknown badge slug: {slug}")

    stmt = insert_for(db, UserBadge).values(
        user_id=user_id,
        badge_slug=slug,
    ).on_conflict_do_nothing(index_elements=["user_id", "badge_slug"])
    result = await db.execute(stmt)
    return result.rowcount == 1


async def grant_badge(db: AsyncSession, user_id: uuid.UUID, slug: str) -> bool:
    """Award a badge and notify the user if it is new."""
    if not await award_badge(db, user_id, slug):
        return False

    await create_notification(db, user_id, format_badge_earned(BADGE_CATALOG[slug]["name"]))
    logger.info(
        "Badge %s awarded to user %s",
        slug, str(user_id)[:8],
        extra={"user_id": str(user_id), "badge_slug": slug},
    )
    return True


async def evaluate_badges(
    db: AsyncSession,
    user_id: uuid.UUID,
    level: int,
    now: Optional[datetime] = None,
) -> list[str]:
    """Re-derive check-in statistics and award every newly satisfied badge."""
    result = await db.execute(
        select(CheckIn.lebensenergie_score)
        .where(CheckIn.user_id == user_id)
        .order_by(CheckIn.checked_in_at.desc())
    )
    scores = list(result.scalars().all())
    streak = await compute_streak(db, user_id, now)

    candidates = eligible_badges(
        total_check_ins=len(scores),
        streak=streak,
        latest_score=scores[0] if scores else None,
        recent_scores=scores[:CONSISTENT_WINDOW],
        level=level,
    )

    earned = {b.badge_slug for b in await get_earned_badges(db, user_id)}
    new_badges = []
    for slug in candidates:
        if slug in earned:
            continue
        if await grant_badge(db, user_id, slug):
            new_badges.append(slug)

    return new_badges


def badge_overview(earned: list[UserBadge]) -> dict:
    """Catalog split into earned (newest first, with earnedAt) and available."""
    earned_slugs = {b.badge_slug for b in earned}
    return {
        "earned": [
            {
                "slug": b.badge_slug,
                **BADGE_CATALOG.get(b.badge_slug, {"name": b.badge_slug, "description": ""}),
                "earnedAt": b.earned_at.isoformat() if b.earned_at else None,
            }
            for b in earned
        ],
        "available": [
            {"slug": slug, **info}
            for slug, info in BADGE_CATALOG.items()
            if slug not in earned_slugs
        ],
        "total": len(BADGE_CATALOG),
        "earnedCount": len(earned),
    }
