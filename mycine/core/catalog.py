"""Read paths over the title catalog, plus the admin dashboard counters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlmodel import Session, select

from mycine.core.errors import NotFoundError, XPValidationError
from mycine.core.leaderboard import DEFAULT_DISPLAY_NAME
from mycine.models.titles import Category, Review, Title, TitleCategory, TitleType
from mycine.models.users import Profile
from mycine.models.xp import UserXP

SORT_OPTIONS = ("name", "rating", "year")
TOP_TITLES_LIMIT = 5


@dataclass(frozen=True)
class TitleSummary:
    """A catalog title with its genres and visible-review rating."""

    title: Title
    categories: list[str]
    average_rating: float
    reviews_count: int


@dataclass(frozen=True)
class ReviewEntry:
    """A visible review with the author's public profile details."""

    review: Review
    display_name: str
    avatar_url: str | None


@dataclass(frozen=True)
class TitleDetail:
    summary: TitleSummary
    reviews: list[ReviewEntry]


@dataclass(frozen=True)
class DashboardStats:
    """Counters for the admin dashboard."""

    total_titles: int
    total_users: int
    total_reviews: int
    hidden_reviews: int
    reviews_today: int
    active_users_today: int
    average_xp: int
    top_titles: list[TitleSummary]


def list_categories(session: Session) -> list[Category]:
    return list(session.exec(select(Category).order_by(Category.name)).all())


def _categories_by_title(session: Session, title_ids: list[int]) -> dict[int, list[str]]:
    if not title_ids:
        return {}
    rows = session.exec(
        select(TitleCategory.title_id, Category.name)
        .join(Category, Category.id == TitleCategory.category_id)
        .where(TitleCategory.title_id.in_(title_ids))
        .order_by(Category.name)
    ).all()
    names: dict[int, list[str]] = {}
    for title_id, name in rows:
        names.setdefault(title_id, []).append(name)
    return names


def _ratings_by_title(session: Session, title_ids: list[int]) -> dict[int, tuple[float, int]]:
    if not title_ids:
        return {}
    rows = session.exec(
        select(Review.title_id, func.avg(Review.rating), func.count(Review.id))
        .where(Review.title_id.in_(title_ids), Review.is_deleted.is_(False))
        .group_by(Review.title_id)
    ).all()
    return {title_id: (float(average or 0.0), count) for title_id, average, count in rows}


def _summaries(session: Session, titles: list[Title]) -> list[TitleSummary]:
    title_ids = [title.id for title in titles]
    categories = _categories_by_title(session, title_ids)
    ratings = _ratings_by_title(session, title_ids)
    return [
        TitleSummary(
            title=title,
            categories=categories.get(title.id, []),
            average_rating=ratings.get(title.id, (0.0, 0))[0],
            reviews_count=ratings.get(title.id, (0.0, 0))[1],
        )
        for title in titles
    ]


def list_titles(
    session: Session,
    *,
    search: str | None = None,
    title_type: TitleType | str | None = None,
    category: str | None = None,
    sort: str = "name",
) -> list[TitleSummary]:
    """Return catalog titles filtered by name, type and genre.

    ``sort`` is ``name`` (A-Z), ``rating`` (best rated first) or ``year``
    (newest first).
    """

    if sort not in SORT_OPTIONS:
        raise XPValidationError("catalog.invalid_sort", f"Unknown sort option: {sort}")

    stmt = select(Title)
    if search and search.strip():
        stmt = stmt.where(Title.name.ilike(f"%{search.strip()}%"))
    if title_type:
        try:
            stmt = stmt.where(Title.type == TitleType(title_type))
        except ValueError as exc:
            raise XPValidationError(
                "catalog.invalid_type", f"Unknown title type: {title_type}"
            ) from exc
    if category:
        tagged = (
            select(TitleCategory.title_id)
            .join(Category, Category.id == TitleCategory.category_id)
            .where(Category.name == category)
        )
        stmt = stmt.where(Title.id.in_(tagged))

    titles = list(session.exec(stmt.order_by(Title.name, Title.id)).all())
    summaries = _summaries(session, titles)

    if sort == "rating":
        summaries.sort(key=lambda s: (-s.average_rating, s.title.name))
    elif sort == "year":
        summaries.sort(key=lambda s: (-(s.title.release_year or 0), s.title.name))
    return summaries


def title_detail(session: Session, title_id: int) -> TitleDetail:
    """Return a title with its visible reviews, newest first."""

    title = session.get(Title, title_id)
    if title is None:
        raise NotFoundError("title.not_found", "Title not found.")

    reviews = session.exec(
        select(Review)
        .where(Review.title_id == title_id, Review.is_deleted.is_(False))
        .order_by(Review.created_at.desc(), Review.id.desc())
    ).all()
    user_ids = [review.user_id for review in reviews]
    profiles = {}
    if user_ids:
        rows = session.exec(select(Profile).where(Profile.user_id.in_(user_ids))).all()
        profiles = {profile.user_id: profile for profile in rows}

    entries = []
    for review in reviews:
        profile = profiles.get(review.user_id)
        entries.append(
            ReviewEntry(
                review=review,
                display_name=(profile.display_name if profile else None) or DEFAULT_DISPLAY_NAME,
                avatar_url=profile.avatar_url if profile else None,
            )
        )
    return TitleDetail(summary=_summaries(session, [title])[0], reviews=entries)


def dashboard_stats(session: Session, now: datetime | None = None) -> DashboardStats:
    """Return catalog, review and XP counters; "today" is the current UTC day."""

    now = now or datetime.utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    total_titles = session.exec(select(func.count(Title.id))).one()
    total_users = session.exec(select(func.count(UserXP.id))).one()
    average_xp = session.exec(select(func.avg(UserXP.total_xp))).one()
    total_reviews = session.exec(
        select(func.count(Review.id)).where(Review.is_deleted.is_(False))
    ).one()
    hidden_reviews = session.exec(
        select(func.count(Review.id)).where(Review.is_deleted.is_(True))
    ).one()
    reviews_today, active_users_today = session.exec(
        select(func.count(Review.id), func.count(func.distinct(Review.user_id))).where(
            Review.created_at >= midnight
        )
    ).one()

    rated = session.exec(
        select(Review.title_id)
        .where(Review.is_deleted.is_(False))
        .group_by(Review.title_id)
        .order_by(func.avg(Review.rating).desc(), func.count(Review.id).desc(), Review.title_id)
        .limit(TOP_TITLES_LIMIT)
    ).all()
    titles = {t.id: t for t in session.exec(select(Title).where(Title.id.in_(rated))).all()}
    top_titles = _summaries(session, [titles[title_id] for title_id in rated if title_id in titles])

    return DashboardStats(
        total_titles=total_titles or 0,
        total_users=total_users or 0,
        total_reviews=total_reviews or 0,
        hidden_reviews=hidden_reviews or 0,
        reviews_today=reviews_today or 0,
        active_users_today=active_users_today or 0,
        average_xp=round(float(average_xp or 0.0)),
        top_titles=top_titles,
    )
