"""SQLModel declaration for the admin moderation log."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, String
from sqlmodel import Field

from .base import BaseModel


class ModerationAction(str, Enum):
    """Moderation actions an admin can take on a review."""

    SOFT_DELETE = "soft_delete"
    RESTORE = "restore"


class ModerationLog(BaseModel, table=True):
    """Represents a moderation action recorded against a piece of content."""

    id: int | None = Field(default=None, primary_key=True)
    admin_id: str = Field(sa_column=Column(String(length=36), nullable=False))
    action: ModerationAction = Field(sa_column_kwargs={"nullable": False})
    target_type: str = Field(max_length=100)
    target_id: int = Field(sa_column_kwargs={"nullable": False})
    reason: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
