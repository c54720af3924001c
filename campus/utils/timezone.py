"""
Calendar-day helpers. A "day" for check-ins and streaks is a calendar day
in APP_TIMEZONE, not in UTC.
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def get_app_zone() -> ZoneInfo:
    from campus.config import get_settings
    name = get_settings().app_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid APP_TIMEZONE %s, falling back to UTC", name)
        return ZoneInfo("UTC")


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def local_day(dt: datetime) -> date:
    """Calendar day of an instant in the app timezone."""
    return as_utc(dt).astimezone(get_app_zone()).date()


def local_today(now: Optional[datetime] = None) -> date:
    return local_day(now or datetime.now(timezone.utc))
