"""XP, challenge, achievement and leaderboard endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlmodel import Session

from mycine.core.achievements import (
    collect_user_stats,
    evaluate_achievements,
    list_user_achievements,
    rarity_for_xp,
)
from mycine.core.challenges import (
    ChallengeView,
    claim_challenge,
    initialize_user_challenges,
    list_user_challenges,
    summarize_challenges,
)
from mycine.core.config import settings
from mycine.core.db import get_session
from mycine.core.leaderboard import (
    LeaderboardEntry,
    leaderboard,
    leaderboard_stats,
    user_position,
)
from mycine.core.levels import LevelProgress, progress_for_total_xp, rank_legend
from mycine.core.security import get_current_user_id
from mycine.core.xp import get_user_xp, reason_label, xp_history
from mycine.models.achievements import Achievement
from mycine.models.xp import XPEvent

router = APIRouter()


def _serialize_level(progress: LevelProgress) -> dict[str, Any]:
    return {
        "total_xp": progress.total_xp,
        "level": progress.level,
        "rank": progress.rank.tier.value,
        "rank_label": progress.rank.label,
        "current_level_xp": progress.current_level_xp,
        "next_level_xp": progress.next_level_xp,
        "xp_to_next_level": progress.xp_to_next_level,
        "progress_percent": round(progress.progress_percent, 2),
        "is_max_level": progress.is_max_level,
    }


def _serialize_event(event: XPEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "event_type": event.event_type.value,
        "label": reason_label(event.event_type),
        "xp_amount": event.xp_amount,
        "reference_id": event.reference_id,
        "metadata": event.metadata_payload,
        "created_at": event.created_at.isoformat(),
    }


def _serialize_challenge(view: ChallengeView) -> dict[str, Any]:
    challenge = view.challenge
    return {
        "id": challenge.id,
        "name": challenge.name,
        "description": challenge.description,
        "type": challenge.type.value,
        "target_value": challenge.target_value,
        "xp_reward": challenge.xp_reward,
        "current_progress": view.current_progress,
        "status": view.status.value,
        "percent_complete": view.percent_complete,
    }


def _serialize_achievement(achievement: Achievement) -> dict[str, Any]:
    rarity = rarity_for_xp(achievement.xp_reward)
    return {
        "id": achievement.id,
        "code": achievement.code,
        "name": achievement.name,
        "description": achievement.description,
        "icon": achievement.icon,
        "requirement_type": achievement.requirement_type.value,
        "requirement_value": achievement.requirement_value,
        "xp_reward": achievement.xp_reward,
        "rarity": rarity.value,
    }


def _serialize_entry(entry: LeaderboardEntry) -> dict[str, Any]:
    return {
        "position": entry.position,
        "user_id": entry.user_id,
        "display_name": entry.display_name,
        "avatar_url": entry.avatar_url,
        "total_xp": entry.total_xp,
        "level": entry.level,
        "rank": entry.rank.label,
        "reviews_count": entry.reviews_count,
    }


@router.get("/me/xp")
def my_xp(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Return the caller's total XP, level and rank."""

    record = get_user_xp(session, user_id)
    total_xp = record.total_xp if record is not None else 0
    return _serialize_level(progress_for_total_xp(total_xp))


@router.get("/me/xp/history")
def my_xp_history(
    limit: int = 20,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Return the caller's most recent XP events."""

    limit = max(1, min(limit, 100))
    return {"events": [_serialize_event(event) for event in xp_history(session, user_id, limit)]}


@router.get("/challenges")
def challenges(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Return open challenges with the caller's progress."""

    views = list_user_challenges(session, user_id)
    summary = summarize_challenges(views)
    return {
        "challenges": [_serialize_challenge(view) for view in views],
        "summary": {
            "total": summary.total,
            "in_progress": summary.in_progress,
            "completed": summary.completed,
            "claimed": summary.claimed,
            "available_xp": summary.available_xp,
        },
    }


@router.post("/challenges/initialize")
def initialize_challenges(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Create progress rows for every open challenge the caller has not started."""

    rows = initialize_user_challenges(session, user_id)
    session.commit()
    return {"ok": True, "initialized": len(rows)}


@router.post("/challenges/{challenge_id}/claim")
def claim(
    challenge_id: int,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Claim the XP reward of a completed challenge."""

    progress, event = claim_challenge(session, user_id, challenge_id)
    session.commit()

    record = get_user_xp(session, user_id)
    return {
        "ok": True,
        "challenge_id": challenge_id,
        "status": progress.status.value,
        "xp_gained": event.xp_amount if event is not None else 0,
        "xp": _serialize_level(progress_for_total_xp(record.total_xp if record else 0)),
    }


@router.get("/achievements")
def achievements(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Return active achievements with the caller's progress."""

    stats = collect_user_stats(session, user_id)
    items = []
    for view in list_user_achievements(session, user_id, stats):
        payload = _serialize_achievement(view.achievement)
        payload.update(
            {
                "progress": view.progress,
                "unlocked": view.unlocked,
                "unlocked_at": view.unlocked_at.isoformat() if view.unlocked_at else None,
                "rarity_label": view.rarity_label,
            }
        )
        items.append(payload)

    return {
        "achievements": items,
        "unlocked_count": sum(1 for item in items if item["unlocked"]),
        "total_count": len(items),
    }


@router.post("/achievements/evaluate")
def evaluate(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Unlock any achievements the caller now qualifies for."""

    unlocked = evaluate_achievements(session, user_id)
    session.commit()
    return {"ok": True, "unlocked": [_serialize_achievement(a) for a in unlocked]}


@router.get("/leaderboard")
def ranking(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Return the top users, the caller's standing and community totals."""

    entries = leaderboard(session, settings.leaderboard_limit)
    me = user_position(session, user_id)
    stats = leaderboard_stats(session)
    return {
        "entries": [_serialize_entry(entry) for entry in entries],
        "me": _serialize_entry(me) if me is not None else None,
        "stats": {
            "total_users": stats.total_users,
            "total_reviews": stats.total_reviews,
            "average_rating": stats.average_rating,
            "legend_users": stats.legend_users,
        },
        "ranks": rank_legend(),
    }
