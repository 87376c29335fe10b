"""SQLModel declarations for the XP ledger and per-user XP totals."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column, String, UniqueConstraint
from sqlmodel import Field

from .base import BaseModel


class XPEventType(str, Enum):
    """Actions that grant experience points."""

    FIRST_REVIEW_TITLE = "first_review_title"
    DAILY_REVIEW = "daily_review"
    EXTRA_COMMENT = "extra_comment"
    PROFILE_COMPLETE = "profile_complete"
    CHALLENGE_COMPLETE = "challenge_complete"


class XPEvent(BaseModel, table=True):
    """Represents an immutable XP grant recorded for a user."""

    __table_args__ = (
        UniqueConstraint(
            "user_id", "event_type", "reference_id", name="uq_xp_event_reference"
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(
        sa_column=Column(String(length=36), nullable=False, index=True)
    )
    event_type: XPEventType = Field(sa_column_kwargs={"nullable": False})
    xp_amount: int = Field(ge=0, sa_column_kwargs={"nullable": False})
    reference_id: str = Field(max_length=100, sa_column_kwargs={"nullable": False})
    metadata_payload: dict[str, Any] | None = Field(
        default=None,
        alias="metadata",
        sa_column=Column("metadata", JSON, nullable=True),
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )


class UserXP(BaseModel, table=True):
    """Denormalised running XP total and derived level for a user."""

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(
        sa_column=Column(String(length=36), nullable=False, unique=True)
    )
    total_xp: int = Field(default=0, ge=0, sa_column_kwargs={"nullable": False})
    level: int = Field(default=1, ge=1, sa_column_kwargs={"nullable": False})
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
