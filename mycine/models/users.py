"""SQLModel declarations for user profiles and roles.

Users themselves live in the identity provider; these tables only key on the
opaque user id it hands us.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, String, UniqueConstraint
from sqlmodel import Field

from .base import BaseModel


class AppRole(str, Enum):
    """Enumerates the supported application roles."""

    ADMIN = "admin"
    USER = "user"


class Profile(BaseModel, table=True):
    """Public profile details for a user."""

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(
        sa_column=Column(String(length=36), nullable=False, unique=True)
    )
    display_name: str | None = Field(default=None, max_length=200)
    username: str | None = Field(default=None, max_length=100)
    avatar_url: str | None = Field(default=None, max_length=500)
    profile_completed_at: datetime | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )


class UserRole(BaseModel, table=True):
    """Grants an application role to a user."""

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_role"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(
        sa_column=Column(String(length=36), nullable=False, index=True)
    )
    role: AppRole = Field(default=AppRole.USER, sa_column_kwargs={"nullable": False})
