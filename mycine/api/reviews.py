"""Review and profile endpoints that feed the gamification engine."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from mycine.core.db import get_session
from mycine.core.levels import progress_for_total_xp
from mycine.core.reviews import delete_review, submit_review, title_rating_summary, update_profile
from mycine.core.security import get_current_user_id
from mycine.core.xp import get_user_xp

router = APIRouter()


class ReviewPayload(BaseModel):
    rating: int
    comment: str | None = None


class ProfilePayload(BaseModel):
    display_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None


def _xp_snapshot(session: Session, user_id: str) -> dict[str, Any]:
    record = get_user_xp(session, user_id)
    progress = progress_for_total_xp(record.total_xp if record is not None else 0)
    return {
        "total_xp": progress.total_xp,
        "level": progress.level,
        "rank": progress.rank.label,
        "progress_percent": round(progress.progress_percent, 2),
    }


@router.post("/titles/{title_id}/reviews")
def post_review(
    title_id: int,
    payload: ReviewPayload,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Create or update the caller's review of a title."""

    outcome = submit_review(session, user_id, title_id, payload.rating, payload.comment)
    session.commit()

    review = outcome.review
    return {
        "ok": True,
        "created": outcome.created,
        "review": {
            "id": review.id,
            "title_id": review.title_id,
            "rating": review.rating,
            "comment": review.comment,
        },
        "xp_gained": outcome.xp_gained,
        "xp_events": [event.event_type.value for event in outcome.xp_events],
        "unlocked_achievements": [a.code for a in outcome.achievements],
        "xp": _xp_snapshot(session, user_id),
    }


@router.get("/titles/{title_id}/rating")
def title_rating(title_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    """Return the average rating for a title."""

    average, count = title_rating_summary(session, title_id)
    return {"title_id": title_id, "average_rating": round(average, 2), "reviews_count": count}


@router.delete("/reviews/{review_id}")
def remove_review(
    review_id: int,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Soft-delete one of the caller's reviews."""

    delete_review(session, user_id, review_id)
    session.commit()
    return {"ok": True, "review_id": review_id}


@router.put("/profile")
def put_profile(
    payload: ProfilePayload,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Update the caller's profile, granting the completion bonus once."""

    profile, event = update_profile(
        session,
        user_id,
        display_name=payload.display_name,
        username=payload.username,
        avatar_url=payload.avatar_url,
    )
    session.commit()
    return {
        "ok": True,
        "profile": {
            "display_name": profile.display_name,
            "username": profile.username,
            "avatar_url": profile.avatar_url,
            "completed": profile.profile_completed_at is not None,
        },
        "xp_gained": event.xp_amount if event is not None else 0,
        "xp": _xp_snapshot(session, user_id),
    }
