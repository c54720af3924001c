"""
UserJourney - per-user onboarding / trial / subscription record that gates features.

state is persisted as the resolved value of two internal fields:
- subscription_state: written only by subscription/trial events (nullable)
- onboarding_stage: written only by check-in counter recomputation
See campus.services.journey.resolve_state for the precedence rule.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from campus.database import Base


class UserJourney(Base):
    __tablename__ = "user_journeys"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True
    )

    state: Mapped[str] = mapped_column(String(40), default="onboarding_start")
    subscription_state: Mapped[Optional[str]] = mapped_column(String(40))
    onboarding_stage: Mapped[str] = mapped_column(String(40), default="onboarding_start")
    subscription_tier: Mapped[Optional[str]] = mapped_column(String(20))  # lebensenergie, resilienz

    # Validity windows
    trial_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    subscription_start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    subscription_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Progress counters (monotonically non-decreasing)
    check_ins_completed: Mapped[int] = mapped_column(Integer, default=0)
    modules_completed: Mapped[int] = mapped_column(Integer, default=0)
    days_active: Mapped[int] = mapped_column(Integer, default=0)
    current_level: Mapped[int] = mapped_column(Integer, default=1)  # 1-10

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_user_journeys_state", "state"),
    )

    def __repr__(self) -> str:
        return f"<UserJourney {self.state} tier={self.subscription_tier}>"
