"""Leaderboard rankings and community statistics."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func
from sqlmodel import Session, select

from mycine.core.levels import MAX_LEVEL, RankBand, rank_for_level
from mycine.core.xp import get_user_xp
from mycine.models.titles import Review
from mycine.models.users import Profile
from mycine.models.xp import UserXP

DEFAULT_DISPLAY_NAME = "Usuário"


@dataclass(frozen=True)
class LeaderboardEntry:
    """A user's standing on the leaderboard."""

    position: int
    user_id: str
    display_name: str
    avatar_url: str | None
    total_xp: int
    level: int
    rank: RankBand
    reviews_count: int


@dataclass(frozen=True)
class LeaderboardStats:
    """Community-wide totals shown next to the leaderboard."""

    total_users: int
    total_reviews: int
    average_rating: str
    legend_users: int


def _review_counts(session: Session, user_ids: list[str]) -> dict[str, int]:
    if not user_ids:
        return {}
    rows = session.exec(
        select(Review.user_id, func.count(Review.id))
        .where(Review.user_id.in_(user_ids), Review.is_deleted.is_(False))
        .group_by(Review.user_id)
    ).all()
    return {user_id: count for user_id, count in rows}


def _profiles(session: Session, user_ids: list[str]) -> dict[str, Profile]:
    if not user_ids:
        return {}
    rows = session.exec(select(Profile).where(Profile.user_id.in_(user_ids))).all()
    return {profile.user_id: profile for profile in rows}


def leaderboard(session: Session, limit: int = 50) -> list[LeaderboardEntry]:
    """Return the top ``limit`` users ordered by total XP."""

    records = session.exec(
        select(UserXP).order_by(UserXP.total_xp.desc(), UserXP.created_at).limit(limit)
    ).all()
    user_ids = [record.user_id for record in records]
    profiles = _profiles(session, user_ids)
    review_counts = _review_counts(session, user_ids)

    entries: list[LeaderboardEntry] = []
    for index, record in enumerate(records):
        profile = profiles.get(record.user_id)
        entries.append(
            LeaderboardEntry(
                position=index + 1,
                user_id=record.user_id,
                display_name=(profile.display_name if profile else None) or DEFAULT_DISPLAY_NAME,
                avatar_url=profile.avatar_url if profile else None,
                total_xp=record.total_xp,
                level=record.level,
                rank=rank_for_level(record.level),
                reviews_count=review_counts.get(record.user_id, 0),
            )
        )
    return entries


def user_position(session: Session, user_id: str) -> LeaderboardEntry | None:
    """Return the caller's standing; position is one more than users ahead."""

    record = get_user_xp(session, user_id)
    if record is None:
        return None

    users_ahead = session.exec(
        select(func.count(UserXP.id)).where(UserXP.total_xp > record.total_xp)
    ).one()
    profile = _profiles(session, [user_id]).get(user_id)

    return LeaderboardEntry(
        position=(users_ahead or 0) + 1,
        user_id=user_id,
        display_name=(profile.display_name if profile else None) or DEFAULT_DISPLAY_NAME,
        avatar_url=profile.avatar_url if profile else None,
        total_xp=record.total_xp,
        level=record.level,
        rank=rank_for_level(record.level),
        reviews_count=_review_counts(session, [user_id]).get(user_id, 0),
    )


def leaderboard_stats(session: Session) -> LeaderboardStats:
    """Return totals for the leaderboard sidebar."""

    total_users = session.exec(select(func.count(UserXP.id))).one()
    total_reviews, average = session.exec(
        select(func.count(Review.id), func.avg(Review.rating)).where(
            Review.is_deleted.is_(False)
        )
    ).one()
    legend_users = session.exec(
        select(func.count(UserXP.id)).where(UserXP.level >= MAX_LEVEL)
    ).one()

    return LeaderboardStats(
        total_users=total_users or 0,
        total_reviews=total_reviews or 0,
        average_rating=f"{float(average or 0.0):.1f}",
        legend_users=legend_users or 0,
    )
