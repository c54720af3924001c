"""
Tests for campus/api/checkin.py and campus/api/journey.py - endpoint
functions called directly with a real session and user.
"""
import pytest

from campus.api.checkin import history, submit_check_in, today
from campus.api.journey import get_journey, list_badges, start_user_trial
from campus.schemas.api_responses import CheckInRequest
from campus.utils.errors import DuplicateCheckIn, TrialNotAllowed


def _request(**overrides) -> CheckInRequest:
    fields = {"energyLevel": 7, "sleepQuality": 8, "moodLevel": 9, "energyGivers": ["Sport"]}
    fields.update(overrides)
    return CheckInRequest(**fields)


class TestCheckInEndpoints:
    async def test_submit_returns_check_in_and_badges(self, db, user):
        result = await submit_check_in(_request(), user, db)

        assert result["checkIn"]["lebensenergieScore"] == 8.0
        assert result["checkIn"]["energyGivers"] == ["Sport"]
        assert result["newBadges"] == ["first-checkin"]

    async def test_second_submit_same_day(self, db, user):
        await submit_check_in(_request(), user, db)

        with pytest.raises(DuplicateCheckIn) as exc_info:
            await submit_check_in(_request(energyLevel=1), user, db)

        body = exc_info.value.to_dict()
        assert body["error"] == "You already checked in today"
        assert body["existingCheckIn"]["energyLevel"] == 7

    async def test_today_before_and_after(self, db, user):
        before = await today(user, db)
        assert before == {"hasCheckedIn": False, "checkIn": None, "streak": 0}

        await submit_check_in(_request(), user, db)
        after = await today(user, db)
        assert after["hasCheckedIn"] is True
        assert after["streak"] == 1

    async def test_history(self, db, user):
        await submit_check_in(_request(), user, db)

        result = await history(days=7, user=user, db=db)

        assert result["stats"]["totalCheckIns"] == 1
        assert len(result["checkIns"]) == 1
        assert len(result["weeklyData"]) == 7


class TestJourneyEndpoints:
    async def test_overview_for_new_user(self, db, user):
        result = await get_journey(user, db)

        assert result["journey"]["state"] == "onboarding_start"
        assert result["journey"]["currentLevel"] == 1
        assert result["featureAccess"]["community"] == "none"

    async def test_start_trial(self, db, user):
        result = await start_user_trial(user, db)

        assert result["message"] == "Trial started"
        assert result["daysLeft"] == 7
        overview = await get_journey(user, db)
        assert overview["journey"]["state"] == "trial_active"
        assert overview["journey"]["isTrialActive"] is True

    async def test_second_trial_rejected(self, db, user):
        await start_user_trial(user, db)
        with pytest.raises(TrialNotAllowed) as exc_info:
            await start_user_trial(user, db)
        assert exc_info.value.status_code == 400

    async def test_badges_after_first_check_in(self, db, user):
        await submit_check_in(_request(), user, db)

        result = await list_badges(user, db)

        assert result["earnedCount"] == 1
        assert result["earned"][0]["slug"] == "first-checkin"
        assert result["earned"][0]["name"] == "Erster Check-in"
        assert len(result["available"]) == result["total"] - 1
