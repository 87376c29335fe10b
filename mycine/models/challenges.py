"""SQLModel declarations for challenges and per-user challenge progress."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlmodel import Field

from .base import BaseModel


class ChallengeType(str, Enum):
    """How often a challenge's progress is reset."""

    DAILY = "daily"
    WEEKLY = "weekly"
    UNIQUE = "unique"


class ChallengeStatus(str, Enum):
    """Progress states for a user's challenge row."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CLAIMED = "claimed"


class Challenge(BaseModel, table=True):
    """Represents a goal users complete for an XP reward."""

    __table_args__ = (
        CheckConstraint("target_value > 0", name="ck_challenge_target_positive"),
    )

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    type: ChallengeType = Field(sa_column_kwargs={"nullable": False})
    target_value: int = Field(gt=0, sa_column_kwargs={"nullable": False})
    xp_reward: int = Field(default=0, ge=0, sa_column_kwargs={"nullable": False})
    is_active: bool = Field(default=True, sa_column_kwargs={"nullable": False})
    start_date: datetime | None = Field(default=None)
    end_date: datetime | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )


class ChallengeProgress(BaseModel, table=True):
    """Tracks one user's counter and status for a challenge."""

    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_challenge_progress_user"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(
        sa_column=Column(String(length=36), nullable=False, index=True)
    )
    challenge_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("challenge.id", ondelete="CASCADE"), nullable=False
        )
    )
    current_progress: int = Field(default=0, ge=0, sa_column_kwargs={"nullable": False})
    status: ChallengeStatus = Field(
        default=ChallengeStatus.IN_PROGRESS, sa_column_kwargs={"nullable": False}
    )
    last_reset_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    claimed_at: datetime | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
