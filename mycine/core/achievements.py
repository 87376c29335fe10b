"""Achievement evaluation over request-scoped user statistics."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from mycine.core.xp import get_user_xp
from mycine.models.achievements import Achievement, AchievementUnlock, RequirementType
from mycine.models.titles import Category, Review, TitleCategory

logger = logging.getLogger(__name__)

HIGH_RATING_MIN = 5
LOW_RATING_MAX = 2


class Rarity(str, Enum):
    """Presentation tiers derived from an achievement's XP reward."""

    LEGENDARY = "legendary"
    EPIC = "epic"
    RARE = "rare"
    COMMON = "common"


RARITY_LABELS: dict[Rarity, str] = {
    Rarity.LEGENDARY: "Lendária",
    Rarity.EPIC: "Épica",
    Rarity.RARE: "Rara",
    Rarity.COMMON: "Comum",
}


@dataclass(frozen=True)
class UserStats:
    """Statistics achievements are measured against, computed once per request."""

    reviews_count: int = 0
    level: int = 1
    high_ratings: int = 0
    low_ratings: int = 0
    comments_count: int = 0
    genres_explored: int = 0

    def value_for(self, requirement_type: RequirementType | str) -> int:
        """Return the statistic matching ``requirement_type``."""

        return getattr(self, RequirementType(requirement_type).value)


@dataclass(frozen=True)
class AchievementView:
    """An achievement together with the user's progress toward it."""

    achievement: Achievement
    progress: int
    unlocked: bool
    unlocked_at: datetime | None
    rarity: Rarity

    @property
    def rarity_label(self) -> str:
        return RARITY_LABELS[self.rarity]


def rarity_for_xp(xp_reward: int) -> Rarity:
    """Return the rarity tier for an achievement worth ``xp_reward`` XP."""

    if xp_reward >= 300:
        return Rarity.LEGENDARY
    if xp_reward >= 150:
        return Rarity.EPIC
    if xp_reward >= 75:
        return Rarity.RARE
    return Rarity.COMMON


def achievement_progress(achievement: Achievement, stats: UserStats) -> int:
    """Return progress toward ``achievement`` capped at its requirement."""

    return min(stats.value_for(achievement.requirement_type), achievement.requirement_value)


def is_requirement_met(achievement: Achievement, stats: UserStats) -> bool:
    """Return ``True`` when ``stats`` satisfy the achievement's requirement."""

    return achievement_progress(achievement, stats) >= achievement.requirement_value


def collect_user_stats(session: Session, user_id: str) -> UserStats:
    """Build :class:`UserStats` for ``user_id`` from visible reviews and XP."""

    reviews = session.exec(
        select(Review).where(Review.user_id == user_id, Review.is_deleted.is_(False))
    ).all()

    genres_explored = session.exec(
        select(func.count(func.distinct(Category.name)))
        .select_from(Review)
        .join(TitleCategory, TitleCategory.title_id == Review.title_id)
        .join(Category, Category.id == TitleCategory.category_id)
        .where(Review.user_id == user_id, Review.is_deleted.is_(False))
    ).one()

    xp_record = get_user_xp(session, user_id)

    return UserStats(
        reviews_count=len(reviews),
        level=xp_record.level if xp_record is not None else 1,
        high_ratings=sum(1 for review in reviews if review.rating >= HIGH_RATING_MIN),
        low_ratings=sum(1 for review in reviews if review.rating <= LOW_RATING_MAX),
        comments_count=sum(1 for review in reviews if review.comment and review.comment.strip()),
        genres_explored=genres_explored or 0,
    )


def active_achievements(session: Session) -> list[Achievement]:
    stmt = (
        select(Achievement)
        .where(Achievement.is_active.is_(True))
        .order_by(Achievement.requirement_value, Achievement.id)
    )
    return list(session.exec(stmt).all())


def _unlocks_by_achievement(session: Session, user_id: str) -> dict[int, AchievementUnlock]:
    rows = session.exec(
        select(AchievementUnlock).where(AchievementUnlock.user_id == user_id)
    ).all()
    return {row.achievement_id: row for row in rows}


def evaluate_achievements(
    session: Session,
    user_id: str,
    stats: UserStats | None = None,
    *,
    commit: bool = False,
) -> list[Achievement]:
    """Unlock every achievement ``stats`` now satisfy and return the new ones.

    Each unlock is inserted in its own savepoint; a uniqueness conflict means
    another evaluation got there first and is treated as done.
    """

    if stats is None:
        stats = collect_user_stats(session, user_id)

    unlocked = _unlocks_by_achievement(session, user_id)
    newly_unlocked: list[Achievement] = []

    for achievement in active_achievements(session):
        if achievement.id in unlocked or not is_requirement_met(achievement, stats):
            continue

        try:
            with session.begin_nested():
                session.add(AchievementUnlock(user_id=user_id, achievement_id=achievement.id))
        except IntegrityError:
            logger.info(
                "Achievement %s already unlocked for user=%s", achievement.code, user_id
            )
            continue

        logger.info("User=%s unlocked achievement %s", user_id, achievement.code)
        newly_unlocked.append(achievement)

    if commit:
        session.commit()

    return newly_unlocked


def list_user_achievements(
    session: Session, user_id: str, stats: UserStats
) -> list[AchievementView]:
    """Return active achievements with progress and unlock state, without writing."""

    unlocked = _unlocks_by_achievement(session, user_id)
    views: list[AchievementView] = []
    for achievement in active_achievements(session):
        unlock = unlocked.get(achievement.id)
        views.append(
            AchievementView(
                achievement=achievement,
                progress=achievement_progress(achievement, stats),
                unlocked=unlock is not None,
                unlocked_at=unlock.unlocked_at if unlock is not None else None,
                rarity=rarity_for_xp(achievement.xp_reward),
            )
        )
    return views
