"""
Daily check-in - energy, sleep and mood ratings (1-10) plus energy tags.
Immutable once created. One per user per local calendar day.
"""
import uuid
from datetime import date, datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Float, Integer, Date, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from campus.database import Base


class CheckIn(Base):
    __tablename__ = "check_ins"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    energy_level: Mapped[int] = mapped_column(Integer, nullable=False)
    sleep_quality: Mapped[int] = mapped_column(Integer, nullable=False)
    mood_level: Mapped[int] = mapped_column(Integer, nullable=False)
    lebensenergie_score: Mapped[float] = mapped_column(Float, nullable=False)

    energy_givers: Mapped[list] = mapped_column(JSONB, default=list)
    energy_drainers: Mapped[list] = mapped_column(JSONB, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    checked_in_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False)  # local calendar day

    __table_args__ = (
        UniqueConstraint("user_id", "check_in_date", name="uq_check_ins_user_day"),
        Index("ix_check_ins_user_checked_in_at", "user_id", "checked_in_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "energyLevel": self.energy_level,
            "sleepQuality": self.sleep_quality,
            "moodLevel": self.mood_level,
            "energyGivers": list(self.energy_givers or []),
            "energyDrainers": list(self.energy_drainers or []),
            "lebensenergieScore": self.lebensenergie_score,
            "notes": self.notes,
            "checkedInAt": self.checked_in_at.isoformat() if self.checked_in_at else None,
        }
