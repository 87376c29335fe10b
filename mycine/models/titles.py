"""SQLModel declarations for the title catalog and user reviews."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlmodel import Field

from .base import BaseModel


class TitleType(str, Enum):
    """Kinds of catalog entries."""

    MOVIE = "movie"
    SERIES = "series"


class Title(BaseModel, table=True):
    """A movie or series users can review."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=300, index=True)
    type: TitleType = Field(sa_column_kwargs={"nullable": False})
    release_year: int | None = Field(default=None)
    synopsis: str | None = Field(default=None, max_length=4000)
    poster_url: str | None = Field(default=None, max_length=500)
    duration_minutes: int | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )


class Category(BaseModel, table=True):
    """A genre label attached to titles."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=100, unique=True)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )


class TitleCategory(BaseModel, table=True):
    """Association between titles and categories."""

    __table_args__ = (
        UniqueConstraint("title_id", "category_id", name="uq_title_category"),
    )

    id: int | None = Field(default=None, primary_key=True)
    title_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("title.id", ondelete="CASCADE"), nullable=False
        )
    )
    category_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("category.id", ondelete="CASCADE"), nullable=False
        )
    )


class Review(BaseModel, table=True):
    """A user's rating and optional comment for a title."""

    __table_args__ = (
        UniqueConstraint("user_id", "title_id", name="uq_review_user_title"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(
        sa_column=Column(String(length=36), nullable=False, index=True)
    )
    title_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("title.id", ondelete="CASCADE"), nullable=False
        )
    )
    rating: int = Field(ge=1, le=5, sa_column_kwargs={"nullable": False})
    comment: str | None = Field(default=None, max_length=2000)
    is_deleted: bool = Field(default=False, sa_column_kwargs={"nullable": False})
    created_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, sa_column_kwargs={"nullable": False}
    )
