"""SQLModel declarations for achievements and their unlocks."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String
from sqlmodel import Field

from .base import BaseModel


class RequirementType(str, Enum):
    """User statistics an achievement can be measured against."""

    REVIEWS_COUNT = "reviews_count"
    LEVEL = "level"
    HIGH_RATINGS = "high_ratings"
    LOW_RATINGS = "low_ratings"
    COMMENTS_COUNT = "comments_count"
    GENRES_EXPLORED = "genres_explored"


class Achievement(BaseModel, table=True):
    """A permanent, statistic-triggered unlock."""

    __table_args__ = (
        CheckConstraint(
            "requirement_value > 0", name="ck_achievement_requirement_positive"
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(max_length=100, unique=True)
    name: str = Field(max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    icon: str | None = Field(default=None, max_length=100)
    requirement_type: RequirementType = Field(sa_column_kwargs={"nullable": False})
    requirement_value: int = Field(gt=0, sa_column_kwargs={"nullable": False})
    xp_reward: int = Field(default=0, ge=0, sa_column_kwargs={"nullable": False})
    is_active: bool = Field(default=True, sa_column_kwargs={"nullable": False})
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )


class AchievementUnlock(BaseModel, table=True):
    """Records that a user unlocked an achievement; one row per pair."""

    user_id: str = Field(
        sa_column=Column(String(length=36), primary_key=True)
    )
    achievement_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("achievement.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    unlocked_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
