"""
Daily check-in flow.

create_check_in:
1. Reject a second check-in on the same local calendar day (DuplicateCheckIn
   carries the existing record so clients can render it).
2. Store the check-in with its LEBENSENERGIE score.
3. Recompute journey counters / level / onboarding stage.
4. Evaluate check-in badges.

The (user_id, check_in_date) unique constraint backs the pre-insert check,
so concurrent submissions for the same day cannot both succeed.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus.models.check_in import CheckIn
from campus.services.badges import evaluate_badges
from campus.services.journey import update_journey_after_check_in
from campus.services.streaks import compute_streak
from campus.utils.errors import DuplicateCheckIn
from campus.utils.timezone import local_day, local_today

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("Mo", "Di", "Mi", "Do", "Fr", "Sa", "So")


def calculate_score(energy_level: int, sleep_quality: int, mood_level: int) -> float:
    """LEBENSENERGIE score: mean of the three ratings, 2 decimals."""
    return round((energy_level + sleep_quality + mood_level) / 3, 2)


def _unique_tags(tags: Optional[list[str]]) -> list[str]:
    seen = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


async def get_check_in_for_day(db: AsyncSession, user_id: uuid.UUID, day) -> Optional[CheckIn]:
    result = await db.execute(
        select(CheckIn).where(
            CheckIn.user_id == user_id,
            CheckIn.check_in_date == day,
        )
    )
    return result.scalar_one_or_none()


async def create_check_in(
    db: AsyncSession,
    user_id: uuid.UUID,
    energy_level: int,
    sleep_quality: int,
    mood_level: int,
    energy_givers: Optional[list[str]] = None,
    energy_drainers: Optional[list[str]] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[CheckIn, list[str]]:
    """Returns (check_in, newly awarded badge slugs)."""
    now = now or datetime.now(timezone.utc)
    day = local_day(now)

    existing = await get_check_in_for_day(db, user_id, day)
    if existing:
        raise DuplicateCheckIn(existing.to_dict())

    check_in = CheckIn(
        user_id=user_id,
        energy_level=energy_level,
        sleep_quality=sleep_quality,
        mood_level=mood_level,
        lebensenergie_score=calculate_score(energy_level, sleep_quality, mood_level),
        energy_givers=_unique_tags(energy_givers),
        energy_drainers=_unique_tags(energy_drainers),
        notes=notes,
        checked_in_at=now,
        check_in_date=day,
    )
    db.add(check_in)
    try:
        await db.flush()
    except IntegrityError:
        # Lost the race against a concurrent check-in for the same day,
        # unless the violation was something else (e.g. a foreign key)
        await db.rollback()
        existing = await get_check_in_for_day(db, user_id, day)
        if existing is None:
            raise
        raise DuplicateCheckIn(existing.to_dict())

    journey = await update_journey_after_check_in(db, user_id, now)
    new_badges = await evaluate_badges(db, user_id, journey.current_level, now)

    logger.info(
        "Check-in stored for user %s: score=%.2f level=%d new_badges=%s",
        str(user_id)[:8], check_in.lebensenergie_score, journey.current_level, new_badges,
        extra={"user_id": str(user_id)},
    )
    return check_in, new_badges


async def get_today_status(
    db: AsyncSession,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> dict:
    check_in = await get_check_in_for_day(db, user_id, local_today(now))
    streak = await compute_streak(db, user_id, now)
    return {
        "hasCheckedIn": check_in is not None,
        "checkIn": check_in.to_dict() if check_in else None,
        "streak": streak,
    }


def weekly_breakdown(check_ins: list[CheckIn], today) -> list[dict]:
    """Score per local day for the last 7 days, oldest first. Days without a check-in get None."""
    by_day = {c.check_in_date: c.lebensenergie_score for c in check_ins}
    week = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        score = by_day.get(day)
        week.append({
            "day": WEEKDAY_NAMES[day.weekday()],
            "score": round(score, 1) if score is not None else None,
            "date": day.isoformat(),
        })
    return week


async def get_history(
    db: AsyncSession,
    user_id: uuid.UUID,
    days: int = 30,
    now: Optional[datetime] = None,
) -> dict:
    today = local_today(now)
    since = today - timedelta(days=days)

    result = await db.execute(
        select(CheckIn)
        .where(CheckIn.user_id == user_id, CheckIn.check_in_date >= since)
        .order_by(CheckIn.checked_in_at.desc())
    )
    check_ins = list(result.scalars().all())

    scores = [c.lebensenergie_score for c in check_ins]
    streak = await compute_streak(db, user_id, now)

    return {
        "checkIns": [c.to_dict() for c in check_ins],
        "stats": {
            "totalCheckIns": len(check_ins),
            "avgScore": round(sum(scores) / len(scores), 1) if scores else 0,
            "maxScore": round(max(scores), 1) if scores else 0,
            "minScore": round(min(scores), 1) if scores else 0,
            "streak": streak,
        },
        "weeklyData": weekly_breakdown(check_ins, today),
    }
