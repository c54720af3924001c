"""
Tests for campus/services/checkins.py - the check-in flow end to end:
score, one-per-day rule, journey recomputation and badge evaluation.
"""
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from campus.models.check_in import CheckIn
from campus.models.user_badge import UserBadge
from campus.services import checkins as checkin_service
from campus.services.checkins import (
    calculate_score,
    create_check_in,
    get_history,
    get_today_status,
    weekly_breakdown,
)
from campus.services.journey import activate_subscription, get_journey, get_or_create_journey
from campus.utils.errors import DuplicateCheckIn

BASE_NOW = datetime(2026, 2, 10, 9, 0, tzinfo=timezone.utc)  # Tuesday, 10:00 Berlin


def _day(offset: int) -> datetime:
    return BASE_NOW + timedelta(days=offset)


async def _check_in(db, user_id, now, energy=8, sleep=7, mood=9, **kwargs):
    return await create_check_in(
        db, user_id,
        energy_level=energy,
        sleep_quality=sleep,
        mood_level=mood,
        now=now,
        **kwargs,
    )


class TestScore:
    def test_mean_of_three(self):
        assert calculate_score(8, 7, 9) == 8.0

    def test_rounded_to_two_decimals(self):
        assert calculate_score(7, 7, 8) == 7.33
        assert calculate_score(10, 10, 6) == 8.67


class TestCreateCheckIn:
    async def test_stores_score_and_tags(self, db, user):
        check_in, new_badges = await _check_in(
            db, user.id, BASE_NOW,
            energy_givers=["Natur", "Sport", "Natur"],
            energy_drainers=["Stress"],
            notes="Guter Tag",
        )

        assert check_in.lebensenergie_score == 8.0
        assert check_in.energy_givers == ["Natur", "Sport"]
        assert check_in.energy_drainers == ["Stress"]
        assert check_in.check_in_date == date(2026, 2, 10)
        assert new_badges == ["first-checkin"]

    async def test_first_check_in_moves_journey(self, db, user):
        await _check_in(db, user.id, BASE_NOW)

        journey = await get_journey(db, user.id)
        assert journey.state == "onboarding_checkin"
        assert journey.check_ins_completed == 1
        assert journey.days_active == 1
        assert journey.current_level == 1

    async def test_second_check_in_same_day_rejected(self, db, user):
        first, _ = await _check_in(db, user.id, BASE_NOW)

        with pytest.raises(DuplicateCheckIn) as exc_info:
            await _check_in(db, user.id, BASE_NOW + timedelta(hours=3), energy=2)

        err = exc_info.value
        assert err.status_code == 400
        assert err.existing["id"] == str(first.id)
        assert err.to_dict()["existingCheckIn"]["lebensenergieScore"] == 8.0

    async def test_day_boundary_is_local(self, db, user):
        # 08:00 UTC and 23:30 UTC on Feb 9 are different days in Berlin
        await _check_in(db, user.id, datetime(2026, 2, 9, 8, 0, tzinfo=timezone.utc))
        await _check_in(db, user.id, datetime(2026, 2, 9, 23, 30, tzinfo=timezone.utc))

        status = await get_today_status(db, user.id, BASE_NOW)
        assert status["hasCheckedIn"] is True
        assert status["streak"] == 2

    async def test_fourth_day_extends_streak_without_new_badge(self, db, user):
        for offset in range(3):
            await _check_in(db, user.id, _day(offset))

        check_in, new_badges = await _check_in(db, user.id, _day(3))

        assert check_in.lebensenergie_score == 8.0
        assert new_badges == []
        status = await get_today_status(db, user.id, _day(3))
        assert status["streak"] == 4

    async def test_three_day_streak_awarded_on_third_day(self, db, user):
        await _check_in(db, user.id, _day(0))
        await _check_in(db, user.id, _day(1))
        _, new_badges = await _check_in(db, user.id, _day(2))

        assert new_badges == ["3-day-streak"]

    async def test_consistent_awarded_once_on_seventh_day(self, db, user):
        awarded_on = []
        for offset in range(8):
            _, new_badges = await _check_in(db, user.id, _day(offset), energy=6, sleep=7, mood=6)
            if "consistent" in new_badges:
                awarded_on.append(offset + 1)

        assert awarded_on == [7]
        count = (await db.execute(
            select(func.count(UserBadge.id)).where(
                UserBadge.user_id == user.id,
                UserBadge.badge_slug == "consistent",
            )
        )).scalar()
        assert count == 1

    async def test_high_energy(self, db, user):
        _, new_badges = await _check_in(db, user.id, BASE_NOW, energy=9, sleep=9, mood=10)
        assert "high-energy" in new_badges

    async def test_third_check_in_enters_trial_stage(self, db, user):
        for offset in range(3):
            await _check_in(db, user.id, _day(offset))

        journey = await get_journey(db, user.id)
        assert journey.state == "trial_active"

    async def test_check_ins_never_change_state_of_subscriber(self, db, user):
        await _check_in(db, user.id, _day(0))
        journey = await get_or_create_journey(db, user.id)
        assert journey.state == "onboarding_checkin"

        activate_subscription(journey, "resilienz", now=_day(0))
        await db.flush()

        for offset in range(1, 5):
            await _check_in(db, user.id, _day(offset))

        journey = await get_journey(db, user.id)
        assert journey.state == "resilienz_active"
        assert journey.subscription_tier == "resilienz"
        assert journey.check_ins_completed == 5


class TestConcurrentSubmission:
    async def test_lost_race_returns_existing_check_in(self, db, user):
        user_id = user.id
        first, _ = await _check_in(db, user_id, BASE_NOW)
        first_id = str(first.id)
        await db.commit()

        real_lookup = checkin_service.get_check_in_for_day
        lookups = []

        async def _miss_first_lookup(session, uid, day):
            lookups.append(day)
            if len(lookups) == 1:
                return None
            return await real_lookup(session, uid, day)

        with patch(
            "campus.services.checkins.get_check_in_for_day",
            side_effect=_miss_first_lookup,
        ):
            with pytest.raises(DuplicateCheckIn) as exc_info:
                await _check_in(db, user_id, BASE_NOW + timedelta(hours=2), energy=3)

        assert len(lookups) == 2
        assert exc_info.value.existing["id"] == first_id
        assert exc_info.value.existing["energyLevel"] == 8
        count = (await db.execute(select(func.count(CheckIn.id)))).scalar()
        assert count == 1

    async def test_other_integrity_errors_propagate(self, db, user):
        user_id = user.id
        failure = IntegrityError("INSERT INTO check_ins", {}, Exception("FOREIGN KEY constraint failed"))

        with patch.object(db, "flush", new_callable=AsyncMock, side_effect=failure):
            with pytest.raises(IntegrityError):
                await _check_in(db, user_id, BASE_NOW)


class TestReadViews:
    async def test_today_without_check_in(self, db, user):
        status = await get_today_status(db, user.id, BASE_NOW)
        assert status == {"hasCheckedIn": False, "checkIn": None, "streak": 0}

    async def test_today_with_check_in(self, db, user):
        check_in, _ = await _check_in(db, user.id, BASE_NOW)
        status = await get_today_status(db, user.id, BASE_NOW)

        assert status["hasCheckedIn"] is True
        assert status["checkIn"]["id"] == str(check_in.id)
        assert status["streak"] == 1

    async def test_history_stats(self, db, user):
        await _check_in(db, user.id, _day(-2), energy=4, sleep=5, mood=6)   # 5.0
        await _check_in(db, user.id, _day(-1), energy=8, sleep=7, mood=9)   # 8.0
        await _check_in(db, user.id, _day(0), energy=10, sleep=10, mood=6)  # 8.67

        history = await get_history(db, user.id, days=30, now=BASE_NOW)

        assert history["stats"] == {
            "totalCheckIns": 3,
            "avgScore": 7.2,
            "maxScore": 8.7,
            "minScore": 5.0,
            "streak": 3,
        }
        assert [c["lebensenergieScore"] for c in history["checkIns"]] == [8.67, 8.0, 5.0]

    async def test_history_window(self, db, user):
        await _check_in(db, user.id, _day(-20))
        await _check_in(db, user.id, _day(0))

        history = await get_history(db, user.id, days=7, now=BASE_NOW)
        assert history["stats"]["totalCheckIns"] == 1

    async def test_history_empty(self, db, user):
        history = await get_history(db, user.id, now=BASE_NOW)
        assert history["stats"]["avgScore"] == 0
        assert history["checkIns"] == []
        assert len(history["weeklyData"]) == 7

    async def test_weekly_breakdown(self, db, user):
        check_in, _ = await _check_in(db, user.id, _day(-1))
        week = weekly_breakdown([check_in], date(2026, 2, 10))

        assert [d["date"] for d in week][0] == "2026-02-04"
        assert week[-1] == {"day": "Di", "score": None, "date": "2026-02-10"}
        assert week[-2] == {"day": "Mo", "score": 8.0, "date": "2026-02-09"}
