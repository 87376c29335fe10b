"""Public catalog endpoints: titles, genres and title detail."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlmodel import Session

from mycine.core.catalog import TitleSummary, list_categories, list_titles, title_detail
from mycine.core.db import get_session

router = APIRouter()


def serialize_title(summary: TitleSummary) -> dict[str, Any]:
    title = summary.title
    return {
        "id": title.id,
        "name": title.name,
        "type": title.type.value,
        "release_year": title.release_year,
        "synopsis": title.synopsis,
        "poster_url": title.poster_url,
        "duration_minutes": title.duration_minutes,
        "categories": summary.categories,
        "average_rating": round(summary.average_rating, 2),
        "reviews_count": summary.reviews_count,
    }


@router.get("/titles")
def titles(
    search: str | None = None,
    type: str | None = None,
    category: str | None = None,
    sort: str = "name",
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Return catalog titles, optionally filtered by name, type and genre."""

    summaries = list_titles(
        session, search=search, title_type=type, category=category, sort=sort
    )
    return {"titles": [serialize_title(summary) for summary in summaries]}


@router.get("/categories")
def categories(session: Session = Depends(get_session)) -> dict[str, Any]:
    """Return every genre, alphabetically."""

    return {
        "categories": [
            {"id": category.id, "name": category.name} for category in list_categories(session)
        ]
    }


@router.get("/titles/{title_id}")
def title(title_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    """Return a title with its visible reviews."""

    detail = title_detail(session, title_id)
    payload = serialize_title(detail.summary)
    payload["reviews"] = [
        {
            "id": entry.review.id,
            "user_id": entry.review.user_id,
            "display_name": entry.display_name,
            "avatar_url": entry.avatar_url,
            "rating": entry.review.rating,
            "comment": entry.review.comment,
            "created_at": entry.review.created_at.isoformat(),
        }
        for entry in detail.reviews
    ]
    return payload
