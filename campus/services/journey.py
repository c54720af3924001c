"""
Journey state machine - onboarding -> trial -> paid tiers.

Two writers touch a journey:
1. Subscription/trial events (webhooks, user-started trial) write
   subscription_state, subscription_tier and the validity windows.
2. Check-in counter recomputation writes the counters, current_level and
   onboarding_stage - and never touches state once a tier is set.

state is always resolve_state(journey): subscription truth outranks
onboarding-progress inference.
"""
import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, func, distinct
from sqlalchemy.ext.asyncio import AsyncSession

from campus.config import get_settings
from campus.database import insert_for
from campus.models.check_in import CheckIn
from campus.models.user_journey import UserJourney
from campus.services.streaks import compute_streak
from campus.utils.errors import TrialNotAllowed
from campus.utils.timezone import as_utc, local_today

logger = logging.getLogger(__name__)

ONBOARDING_START = "onboarding_start"
ONBOARDING_CHECKIN = "onboarding_checkin"
ONBOARDING_FIRST_MODULE = "onboarding_first_module"
TRIAL_ACTIVE = "trial_active"
LEBENSENERGIE_ACTIVE = "lebensenergie_active"
RESILIENZ_ACTIVE = "resilienz_active"

JOURNEY_STATES = (
    ONBOARDING_START,
    ONBOARDING_CHECKIN,
    ONBOARDING_FIRST_MODULE,
    TRIAL_ACTIVE,
    LEBENSENERGIE_ACTIVE,
    RESILIENZ_ACTIVE,
)

TIER_STATES = {
    "lebensenergie": LEBENSENERGIE_ACTIVE,
    "resilienz": RESILIENZ_ACTIVE,
}

# Single source of truth for feature gating
FEATURE_ACCESS = {
    ONBOARDING_START: {
        "dashboard": True,
        "modules": "first",
        "community": "none",
        "tracker": "basic",
        "workshops": False,
        "circles": False,
        "mentoring": False,
    },
    ONBOARDING_CHECKIN: {
        "dashboard": True,
        "modules": "first",
        "community": "read",
        "tracker": "basic",
        "workshops": False,
        "circles": False,
        "mentoring": False,
    },
    ONBOARDING_FIRST_MODULE: {
        "dashboard": True,
        "modules": "basis",
        "community": "read",
        "tracker": "basic",
        "workshops": False,
        "circles": False,
        "mentoring": False,
    },
    TRIAL_ACTIVE: {
        "dashboard": True,
        "modules": "all",
        "community": "read_write",
        "tracker": "advanced",
        "workshops": False,
        "circles": False,
        "mentoring": False,
    },
    LEBENSENERGIE_ACTIVE: {
        "dashboard": True,
        "modules": "all",
        "community": "full",
        "tracker": "advanced",
        "workshops": False,
        "circles": False,
        "mentoring": False,
    },
    RESILIENZ_ACTIVE: {
        "dashboard": True,
        "modules": "all",
        "community": "full",
        "tracker": "advanced",
        "workshops": True,
        "circles": True,
        "mentoring": True,
    },
}

LEVEL_REQUIREMENTS = [
    {"level": 1, "check_ins": 0, "modules": 0},
    {"level": 2, "check_ins": 3, "modules": 1},
    {"level": 3, "check_ins": 7, "modules": 3},
    {"level": 4, "check_ins": 14, "modules": 5},
    {"level": 5, "check_ins": 21, "modules": 8},
    {"level": 6, "check_ins": 30, "modules": 12},
    {"level": 7, "check_ins": 45, "modules": 16},
    {"level": 8, "check_ins": 60, "modules": 20},
    {"level": 9, "check_ins": 90, "modules": 25},
    {"level": 10, "check_ins": 120, "modules": 30},
]

MAX_LEVEL = 10


def feature_access(state: str) -> dict:
    """Capabilities for a journey state. Unknown states get the most restricted row."""
    return dict(FEATURE_ACCESS.get(state, FEATURE_ACCESS[ONBOARDING_START]))


def calculate_level(check_ins: int, streak: int) -> int:
    return min(MAX_LEVEL, check_ins // 5 + streak // 7 + 1)


def derive_onboarding_stage(check_ins: int, trial_consumed: bool = False) -> str:
    """
    Counter-driven stage. 3+ check-ins unlock the trial stage, unless a trial
    window already existed, in which case progress caps at the first-module stage.
    """
    if check_ins >= 3:
        return ONBOARDING_FIRST_MODULE if trial_consumed else TRIAL_ACTIVE
    if check_ins >= 1:
        return ONBOARDING_CHECKIN
    return ONBOARDING_START


def post_trial_stage(check_ins: int) -> str:
    return ONBOARDING_FIRST_MODULE if check_ins >= 3 else ONBOARDING_CHECKIN


def resolve_state(journey: UserJourney) -> str:
    """Event-sourced subscription state wins over the counter-derived stage."""
    return journey.subscription_state or journey.onboarding_stage or ONBOARDING_START


def _sync_state(journey: UserJourney) -> None:
    previous = journey.state
    journey.state = resolve_state(journey)
    if previous != journey.state:
        logger.info(
            "Journey state %s -> %s for user %s",
            previous, journey.state, str(journey.user_id)[:8],
        )


# === EVENT-DRIVEN TRANSITIONS ===

def activate_subscription(
    journey: UserJourney,
    tier: str,
    starts_at: Optional[datetime] = None,
    ends_at: Optional[datetime] = None,
    renewal: bool = False,
    now: Optional[datetime] = None,
) -> None:
    """subscription.created / subscription.renewed"""
    now = now or datetime.now(timezone.utc)
    journey.subscription_tier = tier
    journey.subscription_state = TIER_STATES[tier]
    if renewal:
        journey.subscription_start_at = starts_at or journey.subscription_start_at or now
    else:
        journey.subscription_start_at = starts_at or now
    journey.subscription_ends_at = ends_at
    _sync_state(journey)


def change_tier(
    journey: UserJourney,
    tier: str,
    ends_at: Optional[datetime] = None,
) -> None:
    """subscription.upgraded / subscription.downgraded"""
    journey.subscription_tier = tier
    journey.subscription_state = TIER_STATES[tier]
    if ends_at is not None:
        journey.subscription_ends_at = ends_at
    _sync_state(journey)


def end_subscription(
    journey: UserJourney,
    ends_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    subscription.cancelled / subscription.expired - only records the end of
    the validity window. State is left as is (grace period).
    """
    journey.subscription_ends_at = ends_at or now or datetime.now(timezone.utc)


def open_trial(
    journey: UserJourney,
    starts_at: Optional[datetime] = None,
    ends_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> None:
    """trial.started and the user-started trial."""
    start = starts_at or now or datetime.now(timezone.utc)
    journey.trial_started_at = start
    journey.trial_ends_at = ends_at or start + timedelta(days=get_settings().trial_period_days)
    journey.subscription_state = TRIAL_ACTIVE
    _sync_state(journey)


def close_trial(journey: UserJourney, now: Optional[datetime] = None) -> None:
    """trial.ended - fall back to the onboarding stage unless a paid tier is set."""
    now = now or datetime.now(timezone.utc)
    if journey.trial_ends_at is None or as_utc(journey.trial_ends_at) > now:
        journey.trial_ends_at = now
    if journey.subscription_tier:
        journey.subscription_state = TIER_STATES[journey.subscription_tier]
    else:
        journey.subscription_state = None
        journey.onboarding_stage = post_trial_stage(journey.check_ins_completed or 0)
    _sync_state(journey)


# === COUNTER-DRIVEN RECOMPUTATION ===

def refresh_progress(
    journey: UserJourney,
    check_ins: int,
    days_active: int,
    streak: int,
) -> None:
    """
    Recompute counters, level and onboarding stage after a check-in.
    A journey with a subscription tier keeps its state untouched.
    """
    journey.check_ins_completed = max(journey.check_ins_completed or 0, check_ins)
    journey.days_active = max(journey.days_active or 0, days_active)
    journey.current_level = calculate_level(journey.check_ins_completed, streak)

    if journey.subscription_tier:
        return

    journey.onboarding_stage = derive_onboarding_stage(
        journey.check_ins_completed,
        trial_consumed=journey.trial_ends_at is not None,
    )
    _sync_state(journey)


# === PERSISTENCE ===

async def get_journey(db: AsyncSession, user_id: uuid.UUID) -> Optional[UserJourney]:
    result = await db.execute(
        select(UserJourney).where(UserJourney.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_or_create_journey(db: AsyncSession, user_id: uuid.UUID) -> UserJourney:
    """Lazily create the journey on first touch. Safe against concurrent creation."""
    journey = await get_journey(db, user_id)
    if journey:
        return journey

    stmt = insert_for(db, UserJourney).values(
        user_id=user_id,
        state=ONBOARDING_START,
        onboarding_stage=ONBOARDING_START,
    ).on_conflict_do_nothing(index_elements=["user_id"])
    await db.execute(stmt)

    journey = await get_journey(db, user_id)
    logger.info("Journey created for user %s", str(user_id)[:8])
    return journey


async def update_journey_after_check_in(
    db: AsyncSession,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> UserJourney:
    journey = await get_or_create_journey(db, user_id)

    total = (await db.execute(
        select(func.count(CheckIn.id)).where(CheckIn.user_id == user_id)
    )).scalar() or 0
    days_active = (await db.execute(
        select(func.count(distinct(CheckIn.check_in_date))).where(CheckIn.user_id == user_id)
    )).scalar() or 0
    streak = await compute_streak(db, user_id, now)

    refresh_progress(journey, total, days_active, streak)
    await db.flush()
    return journey


async def start_trial(
    db: AsyncSession,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> UserJourney:
    """User-started trial. One trial per user, never for subscribers."""
    journey = await get_or_create_journey(db, user_id)

    if journey.trial_started_at:
        raise TrialNotAllowed("You already started a trial")
    if journey.subscription_tier:
        raise TrialNotAllowed("You already have an active subscription")

    open_trial(journey, now=now)
    await db.flush()
    return journey


# === READ MODEL ===

def next_level_info(journey: UserJourney) -> Optional[dict]:
    """Requirements and progress (0-100) towards the next level, None at max level."""
    index = next(
        (i for i, req in enumerate(LEVEL_REQUIREMENTS) if req["level"] == journey.current_level),
        0,
    )
    if index >= len(LEVEL_REQUIREMENTS) - 1:
        return None

    nxt = LEVEL_REQUIREMENTS[index + 1]
    check_in_progress = min(100.0, (journey.check_ins_completed or 0) / nxt["check_ins"] * 100)
    module_progress = min(100.0, (journey.modules_completed or 0) / nxt["modules"] * 100)
    return {
        "level": nxt["level"],
        "checkInsRequired": nxt["check_ins"],
        "modulesRequired": nxt["modules"],
        "progress": round((check_in_progress + module_progress) / 2),
    }


def trial_status(journey: UserJourney, now: Optional[datetime] = None) -> tuple[bool, Optional[int]]:
    """(is_trial_active, trial_days_left)"""
    now = now or datetime.now(timezone.utc)
    ends_at = as_utc(journey.trial_ends_at)
    is_active = bool(journey.trial_started_at and ends_at and now < ends_at)
    if ends_at is None:
        return is_active, None
    days_left = max(0, math.ceil((ends_at - now).total_seconds() / 86400))
    return is_active, days_left


def score_trend(scores: list[float]) -> float:
    """
    Average of the newest 7 scores minus the average of the 7 before them.
    scores are newest first. 0 until there are 7 scores to compare.
    """
    if len(scores) < 7:
        return 0.0
    last_week = scores[:7]
    previous_week = scores[7:14]
    if not previous_week:
        return 0.0
    return round(sum(last_week) / 7 - sum(previous_week) / len(previous_week), 1)


async def get_journey_overview(
    db: AsyncSession,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> dict:
    from campus.services.badges import get_earned_badges

    now = now or datetime.now(timezone.utc)
    journey = await get_or_create_journey(db, user_id)

    since = local_today(now) - timedelta(days=30)
    result = await db.execute(
        select(CheckIn.lebensenergie_score)
        .where(CheckIn.user_id == user_id, CheckIn.check_in_date >= since)
        .order_by(CheckIn.checked_in_at.desc())
    )
    recent_scores = list(result.scalars().all())

    streak = await compute_streak(db, user_id, now)
    badges = await get_earned_badges(db, user_id)
    is_trial_active, trial_days_left = trial_status(journey, now)
    state = resolve_state(journey)

    return {
        "journey": {
            "state": state,
            "currentLevel": journey.current_level,
            "checkInsCompleted": journey.check_ins_completed,
            "modulesCompleted": journey.modules_completed,
            "daysActive": journey.days_active,
            "streak": streak,
            "trend": score_trend(recent_scores),
            "subscriptionTier": journey.subscription_tier,
            "isTrialActive": is_trial_active,
            "trialDaysLeft": trial_days_left,
        },
        "featureAccess": feature_access(state),
        "nextLevel": next_level_info(journey),
        "badges": [
            {"slug": b.badge_slug, "earnedAt": b.earned_at.isoformat() if b.earned_at else None}
            for b in badges
        ],
        "stats": {
            "totalCheckIns": journey.check_ins_completed,
            "avgScore": round(sum(recent_scores) / len(recent_scores), 1) if recent_scores else 0,
        },
    }
