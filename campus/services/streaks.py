"""
Streak calculation - consecutive local calendar days with a check-in,
ending today or yesterday.

calculate_streak is the single canonical algorithm; every caller (check-in
flow, badge evaluation, journey view, history) goes through compute_streak.
"""
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus.models.check_in import CheckIn
from campus.utils.timezone import local_today

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def calculate_streak(days: Iterable[date], today: date) -> int:
    """
    Walk check-in days newest first, counting while each day is exactly one
    before the previous one.

    - Duplicate days count once.
    - If the newest day is older than yesterday, the streak is 0.
    - The first gap ends the walk.
    """
    ordered = sorted(set(days), reverse=True)
    if not ordered:
        return 0

    if (today - ordered[0]).days > 1:
        return 0

    streak = 0
    expected = ordered[0]
    for day in ordered:
        if day != expected:
            break
        streak += 1
        expected = day - ONE_DAY

    return streak


async def get_check_in_days(db: AsyncSession, user_id: uuid.UUID) -> list[date]:
    """All local calendar days the user checked in on, newest first."""
    result = await db.execute(
        select(CheckIn.check_in_date)
        .where(CheckIn.user_id == user_id)
        .order_by(CheckIn.check_in_date.desc())
    )
    return list(result.scalars().all())


async def compute_streak(
    db: AsyncSession,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> int:
    days = await get_check_in_days(db, user_id)
    return calculate_streak(days, local_today(now))
