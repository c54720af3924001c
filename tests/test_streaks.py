"""
Tests for campus/services/streaks.py - canonical calendar-day streak walk.
"""
import uuid
from datetime import date, datetime, timedelta, timezone

from campus.models.check_in import CheckIn
from campus.services.streaks import calculate_streak, compute_streak, get_check_in_days

TODAY = date(2026, 2, 10)
BASE_NOW = datetime(2026, 2, 10, 9, 0, tzinfo=timezone.utc)  # 10:00 Berlin


def _days(*offsets: int) -> list[date]:
    return [TODAY - timedelta(days=o) for o in offsets]


class TestCalculateStreak:
    def test_no_check_ins(self):
        assert calculate_streak([], TODAY) == 0

    def test_only_today(self):
        assert calculate_streak(_days(0), TODAY) == 1

    def test_only_yesterday_keeps_streak_alive(self):
        assert calculate_streak(_days(1), TODAY) == 1

    def test_newest_older_than_yesterday_is_zero(self):
        assert calculate_streak(_days(2, 3, 4, 5), TODAY) == 0

    def test_consecutive_run_counts_every_day(self):
        assert calculate_streak(_days(*range(10)), TODAY) == 10

    def test_run_ending_yesterday(self):
        assert calculate_streak(_days(1, 2, 3), TODAY) == 3

    def test_gap_stops_the_walk(self):
        # today, yesterday, then a missing day, then three more
        assert calculate_streak(_days(0, 1, 3, 4, 5), TODAY) == 2

    def test_duplicate_days_count_once(self):
        assert calculate_streak(_days(0, 0, 1, 1, 2), TODAY) == 3

    def test_unsorted_input(self):
        assert calculate_streak(_days(2, 0, 1), TODAY) == 3


class TestComputeStreak:
    async def _add(self, db, user_id, check_in_date: date):
        db.add(CheckIn(
            user_id=user_id,
            energy_level=7,
            sleep_quality=7,
            mood_level=7,
            lebensenergie_score=7.0,
            checked_in_at=datetime.combine(check_in_date, datetime.min.time(), tzinfo=timezone.utc),
            check_in_date=check_in_date,
        ))
        await db.flush()

    async def test_reads_check_in_days_from_db(self, db, user):
        for offset in (0, 1, 2):
            await self._add(db, user.id, TODAY - timedelta(days=offset))

        assert await compute_streak(db, user.id, BASE_NOW) == 3

    async def test_other_users_do_not_count(self, db, user, make_user):
        other = await make_user()
        await self._add(db, other.id, TODAY)
        await self._add(db, user.id, TODAY - timedelta(days=1))

        assert await compute_streak(db, user.id, BASE_NOW) == 1

    async def test_unknown_user_has_no_streak(self, db):
        assert await compute_streak(db, uuid.uuid4(), BASE_NOW) == 0

    async def test_days_newest_first(self, db, user):
        await self._add(db, user.id, TODAY - timedelta(days=3))
        await self._add(db, user.id, TODAY)

        days = await get_check_in_days(db, user.id)
        assert days == [TODAY, TODAY - timedelta(days=3)]

    async def test_today_is_the_local_day(self, db, user):
        # 23:30 UTC on Feb 10 is already Feb 11 in Berlin
        await self._add(db, user.id, date(2026, 2, 11))
        late_evening_utc = datetime(2026, 2, 10, 23, 30, tzinfo=timezone.utc)

        assert await compute_streak(db, user.id, late_evening_utc) == 1
