"""Administrative API endpoints for challenges and review moderation."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlmodel import Session, select

from mycine.api.catalog import serialize_title
from mycine.core.catalog import dashboard_stats
from mycine.core.challenges import create_challenge, delete_challenge, has_progress, update_challenge
from mycine.core.db import get_session
from mycine.core.moderation import moderate_review
from mycine.core.security import require_admin
from mycine.models.challenges import Challenge, ChallengeType
from mycine.models.moderation import ModerationAction, ModerationLog

router = APIRouter(prefix="/admin")

_LOG_PAGE_SIZE = 25


class ChallengeCreate(BaseModel):
    name: str
    type: ChallengeType
    target_value: int
    xp_reward: int = 0
    description: str | None = None
    is_active: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None


class ChallengeUpdate(BaseModel):
    name: str | None = None
    type: ChallengeType | None = None
    target_value: int | None = None
    xp_reward: int | None = None
    description: str | None = None
    is_active: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class ModerationPayload(BaseModel):
    reason: str | None = None


def _parse_int(raw: str | None) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _serialize_challenge(challenge: Challenge, *, locked: bool) -> dict[str, Any]:
    return {
        "id": challenge.id,
        "name": challenge.name,
        "description": challenge.description,
        "type": challenge.type.value,
        "target_value": challenge.target_value,
        "xp_reward": challenge.xp_reward,
        "is_active": challenge.is_active,
        "start_date": challenge.start_date.isoformat() if challenge.start_date else None,
        "end_date": challenge.end_date.isoformat() if challenge.end_date else None,
        "type_locked": locked,
    }


def _serialize_log_entry(entry: ModerationLog) -> dict[str, Any]:
    return {
        "id": entry.id,
        "admin_id": entry.admin_id,
        "action": entry.action.value,
        "target_type": entry.target_type,
        "target_id": entry.target_id,
        "reason": entry.reason,
        "created_at": entry.created_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
    }


@router.get("/challenges")
def list_challenges(
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Return every challenge, newest first."""

    rows = session.exec(select(Challenge).order_by(Challenge.created_at.desc())).all()
    return {
        "challenges": [
            _serialize_challenge(row, locked=has_progress(session, row.id)) for row in rows
        ]
    }


@router.post("/challenges")
def post_challenge(
    payload: ChallengeCreate,
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Create a challenge."""

    challenge = create_challenge(
        session,
        name=payload.name,
        challenge_type=payload.type,
        target_value=payload.target_value,
        xp_reward=payload.xp_reward,
        description=payload.description,
        is_active=payload.is_active,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    session.commit()
    session.refresh(challenge)
    return {"ok": True, "challenge": _serialize_challenge(challenge, locked=False)}


@router.patch("/challenges/{challenge_id}")
def patch_challenge(
    challenge_id: int,
    payload: ChallengeUpdate,
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Edit a challenge. Its type cannot change once users have progress."""

    changes = payload.model_dump(exclude_unset=True)
    challenge = update_challenge(session, challenge_id, **changes)
    session.commit()
    session.refresh(challenge)
    return {
        "ok": True,
        "challenge": _serialize_challenge(challenge, locked=has_progress(session, challenge_id)),
    }


@router.delete("/challenges/{challenge_id}")
def remove_challenge(
    challenge_id: int,
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Delete a challenge, or deactivate it when progress already exists."""

    deleted = delete_challenge(session, challenge_id)
    session.commit()
    return {"ok": True, "deleted": deleted, "deactivated": not deleted}


@router.post("/reviews/{review_id}/hide")
def hide_review(
    review_id: int,
    payload: ModerationPayload | None = None,
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Hide a review from the public catalog."""

    reason = payload.reason if payload else None
    moderate_review(
        session,
        admin_id=admin_id,
        review_id=review_id,
        action=ModerationAction.SOFT_DELETE,
        reason=reason,
    )
    session.commit()
    return {"ok": True, "review_id": review_id, "is_deleted": True}


@router.post("/reviews/{review_id}/restore")
def restore_review(
    review_id: int,
    payload: ModerationPayload | None = None,
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Restore a previously hidden review."""

    reason = payload.reason if payload else None
    moderate_review(
        session,
        admin_id=admin_id,
        review_id=review_id,
        action=ModerationAction.RESTORE,
        reason=reason,
    )
    session.commit()
    return {"ok": True, "review_id": review_id, "is_deleted": False}


@router.get("/moderation-log")
def moderation_log(
    request: Request,
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Return a page of moderation log entries, newest first."""

    page = max(_parse_int(request.query_params.get("page")) or 1, 1)
    offset = (page - 1) * _LOG_PAGE_SIZE
    stmt = (
        select(ModerationLog)
        .order_by(ModerationLog.created_at.desc(), ModerationLog.id.desc())
        .offset(offset)
        .limit(_LOG_PAGE_SIZE + 1)
    )
    rows = session.exec(stmt).all()

    has_next = len(rows) > _LOG_PAGE_SIZE
    return {
        "entries": [_serialize_log_entry(row) for row in rows[:_LOG_PAGE_SIZE]],
        "pagination": {
            "page": page,
            "has_next": has_next,
            "has_previous": page > 1,
            "next_page": page + 1 if has_next else None,
            "previous_page": page - 1 if page > 1 else None,
        },
    }


@router.get("/stats")
def stats(
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Return the dashboard counters."""

    counters = dashboard_stats(session)
    return {
        "total_titles": counters.total_titles,
        "total_users": counters.total_users,
        "total_reviews": counters.total_reviews,
        "hidden_reviews": counters.hidden_reviews,
        "reviews_today": counters.reviews_today,
        "active_users_today": counters.active_users_today,
        "average_xp": counters.average_xp,
        "top_titles": [serialize_title(summary) for summary in counters.top_titles],
    }
