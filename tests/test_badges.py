"""
Tests for campus/services/badges.py - predicate list, idempotent awarding,
badge notifications and the catalog overview.
"""
import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from campus.database import Base
from campus.models.user import User
from campus.models.notification import Notification
from campus.models.user_badge import UserBadge
from campus.services.badges import (
    BADGE_CATALOG,
    award_badge,
    badge_overview,
    eligible_badges,
    get_earned_badges,
    grant_badge,
)


async def _badge_rows(db, user_id, slug=None) -> int:
    query = select(func.count(UserBadge.id)).where(UserBadge.user_id == user_id)
    if slug:
        query = query.where(UserBadge.badge_slug == slug)
    return (await db.execute(query)).scalar()


class TestEligibleBadges:
    def test_nothing_before_first_check_in(self):
        assert eligible_badges(0, 0, None, [], 1) == []

    def test_first_check_in(self):
        assert eligible_badges(1, 1, 7.0, [7.0], 1) == ["first-checkin"]

    def test_streak_thresholds(self):
        slugs = eligible_badges(30, 30, 7.0, [7.0] * 7, 1)
        assert {"3-day-streak", "7-day-streak", "30-day-streak"} <= set(slugs)

        slugs = eligible_badges(6, 6, 5.0, [5.0] * 6, 1)
        assert "3-day-streak" in slugs
        assert "7-day-streak" not in slugs

    def test_high_energy_uses_latest_score(self):
        assert "high-energy" in eligible_badges(2, 1, 9.0, [9.0, 4.0], 1)
        assert "high-energy" not in eligible_badges(2, 1, 8.67, [8.67, 10.0], 1)

    def test_consistent_needs_seven_scores_of_six(self):
        assert "consistent" in eligible_badges(7, 0, 6.0, [6.0] * 7, 1)
        assert "consistent" not in eligible_badges(6, 0, 8.0, [8.0] * 6, 1)
        assert "consistent" not in eligible_badges(7, 0, 8.0, [8.0] * 6 + [5.67], 1)

    def test_consistent_only_looks_at_last_seven(self):
        scores = [7.0] * 7 + [2.0] * 3
        assert "consistent" in eligible_badges(10, 0, 7.0, scores, 1)

    def test_level_badges(self):
        assert {"level-5"} <= set(eligible_badges(20, 0, 5.0, [], 5))
        assert {"level-5", "level-10"} <= set(eligible_badges(20, 0, 5.0, [], 10))

    def test_order_is_stable(self):
        slugs = eligible_badges(50, 30, 9.5, [9.5] * 7, 10)
        assert slugs == [
            "first-checkin",
            "3-day-streak",
            "7-day-streak",
            "30-day-streak",
            "high-energy",
            "consistent",
            "level-5",
            "level-10",
        ]


class TestAwardBadge:
    async def test_first_award_creates_row(self, db, user):
        assert await award_badge(db, user.id, "first-checkin") is True
        assert await _badge_rows(db, user.id, "first-checkin") == 1

    async def test_repeat_award_is_a_no_op(self, db, user):
        await award_badge(db, user.id, "first-checkin")
        assert await award_badge(db, user.id, "first-checkin") is False
        assert await _badge_rows(db, user.id, "first-checkin") == 1

    async def test_same_slug_for_different_users(self, db, user, make_user):
        other = await make_user()
        assert await award_badge(db, user.id, "first-post") is True
        assert await award_badge(db, other.id, "first-post") is True

    async def test_unknown_slug_rejected(self, db, user):
        with pytest.raises(ValueError):
            await award_badge(db, user.id, "not-a-badge")


class TestConcurrentAwarding:
    @pytest.fixture
    async def session_factory(self, tmp_path):
        """File-backed SQLite so several sessions hold separate connections."""
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'badges.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        await engine.dispose()

    async def test_parallel_sessions_award_once(self, session_factory):
        async with session_factory() as session:
            member = User(email="race@example.com")
            session.add(member)
            await session.commit()
            user_id = member.id

        async def _award_in_own_session():
            async with session_factory() as session:
                awarded = await award_badge(session, user_id, "first-checkin")
                await session.commit()
                return awarded

        results = await asyncio.gather(*(_award_in_own_session() for _ in range(3)))

        assert sorted(results) == [False, False, True]
        async with session_factory() as session:
            assert await _badge_rows(session, user_id, "first-checkin") == 1


class TestGrantBadge:
    async def test_new_badge_creates_notification(self, db, user):
        assert await grant_badge(db, user.id, "success-story") is True

        result = await db.execute(select(Notification).where(Notification.user_id == user.id))
        notification = result.scalar_one()
        assert notification.type == "badge_earned"
        assert notification.title == "New badge earned!"
        assert notification.message == 'You earned the "Erfolgsgeschichte" badge!'
        assert notification.action_url == "/progress#badges"

    async def test_existing_badge_does_not_notify_again(self, db, user):
        await grant_badge(db, user.id, "first-workshop")
        assert await grant_badge(db, user.id, "first-workshop") is False

        count = (await db.execute(
            select(func.count(Notification.id)).where(Notification.user_id == user.id)
        )).scalar()
        assert count == 1


class TestBadgeOverview:
    async def test_split_into_earned_and_available(self, db, user):
        await award_badge(db, user.id, "first-checkin")
        earned = await get_earned_badges(db, user.id)

        overview = badge_overview(earned)

        assert overview["total"] == len(BADGE_CATALOG)
        assert overview["earnedCount"] == 1
        assert overview["earned"][0]["slug"] == "first-checkin"
        assert overview["earned"][0]["name"] == "Erster Check-in"
        assert overview["earned"][0]["earnedAt"] is not None
        available = {b["slug"] for b in overview["available"]}
        assert "first-checkin" not in available
        assert len(available) == len(BADGE_CATALOG) - 1

    def test_empty(self):
        overview = badge_overview([])
        assert overview["earned"] == []
        assert overview["earnedCount"] == 0
        assert len(overview["available"]) == len(BADGE_CATALOG)
