"""Review and profile actions, and the gamification side effects they trigger."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from mycine.core.achievements import evaluate_achievements
from mycine.core.challenges import increment_progress
from mycine.core.errors import ConflictError, NotFoundError, XPValidationError
from mycine.core.xp import award_xp
from mycine.models.achievements import Achievement
from mycine.models.challenges import ChallengeProgress, ChallengeType
from mycine.models.titles import Review, Title
from mycine.models.users import Profile
from mycine.models.xp import XPEvent, XPEventType

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
COMMENT_MIN_LENGTH = 20


@dataclass
class ReviewOutcome:
    """What a review submission changed."""

    review: Review
    created: bool
    xp_events: list[XPEvent] = field(default_factory=list)
    challenges: list[ChallengeProgress] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)

    @property
    def xp_gained(self) -> int:
        return sum(event.xp_amount for event in self.xp_events)


def _clean_comment(comment: str | None) -> str | None:
    if comment is None:
        return None
    cleaned = comment.strip()
    if not cleaned:
        return None
    if len(cleaned) < COMMENT_MIN_LENGTH:
        raise XPValidationError(
            "review.comment_too_short",
            f"Comments must be at least {COMMENT_MIN_LENGTH} characters long.",
        )
    return cleaned


def _validate_rating(rating: int) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise XPValidationError("review.rating_invalid", "Rating must be an integer.")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise XPValidationError(
            "review.rating_out_of_range",
            f"Rating must be between {MIN_RATING} and {MAX_RATING}.",
        )
    return rating


def _find_review(session: Session, user_id: str, title_id: int) -> Review | None:
    return session.exec(
        select(Review).where(Review.user_id == user_id, Review.title_id == title_id)
    ).one_or_none()


def submit_review(
    session: Session,
    user_id: str,
    title_id: int,
    rating: int,
    comment: str | None = None,
    *,
    now: datetime | None = None,
) -> ReviewOutcome:
    """Create, restore or update the user's review of a title.

    New (or restored) reviews earn the daily bonus. The first review a user
    ever writes for a title also earns the first-review bonus and pushes every
    challenge type forward by one. Any review carrying a comment earns
    the comment bonus once. Achievements are re-evaluated afterwards.
    """

    rating = _validate_rating(rating)
    cleaned_comment = _clean_comment(comment)
    now = now or datetime.utcnow()

    if session.get(Title, title_id) is None:
        raise NotFoundError("title.not_found", "Title not found.")

    review = _find_review(session, user_id, title_id)
    created = review is None or review.is_deleted

    if review is None:
        review = Review(
            user_id=user_id,
            title_id=title_id,
            rating=rating,
            comment=cleaned_comment,
            created_at=now,
            updated_at=now,
        )
        try:
            with session.begin_nested():
                session.add(review)
        except IntegrityError as exc:
            raise ConflictError("review.exists", "You have already reviewed this title.") from exc
    else:
        review.rating = rating
        review.comment = cleaned_comment
        review.is_deleted = False
        review.updated_at = now
        session.add(review)
        session.flush()

    outcome = ReviewOutcome(review=review, created=created)

    if created:
        metadata = {"title_id": title_id, "review_id": review.id}
        first_review = award_xp(
            session,
            user_id,
            XPEventType.FIRST_REVIEW_TITLE,
            reference_id=str(title_id),
            metadata=metadata,
        )
        daily = award_xp(
            session,
            user_id,
            XPEventType.DAILY_REVIEW,
            reference_id=now.date().isoformat(),
            metadata=metadata,
        )
        outcome.xp_events.extend(event for event in (first_review, daily) if event is not None)

        # Only the first review of a title counts; restoring a deleted one does not.
        if first_review is not None:
            for challenge_type in ChallengeType:
                outcome.challenges.extend(
                    increment_progress(session, user_id, challenge_type, 1, now=now)
                )

    if cleaned_comment:
        event = award_xp(
            session,
            user_id,
            XPEventType.EXTRA_COMMENT,
            reference_id=str(review.id),
            metadata={"title_id": title_id},
        )
        if event is not None:
            outcome.xp_events.append(event)

    outcome.achievements = evaluate_achievements(session, user_id)

    logger.info(
        "Review %s by user=%s on title=%s (%s), xp=%s",
        review.id,
        user_id,
        title_id,
        "created" if created else "updated",
        outcome.xp_gained,
    )
    return outcome


def delete_review(session: Session, user_id: str, review_id: int) -> Review:
    """Soft-delete the caller's own review. Earned XP is kept."""

    review = session.get(Review, review_id)
    if review is None or review.user_id != user_id or review.is_deleted:
        raise NotFoundError("review.not_found", "Review not found.")

    review.is_deleted = True
    review.updated_at = datetime.utcnow()
    session.add(review)
    return review


def title_rating_summary(session: Session, title_id: int) -> tuple[float, int]:
    """Return the average rating and the number of visible reviews for a title."""

    average, count = session.exec(
        select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.title_id == title_id, Review.is_deleted.is_(False)
        )
    ).one()
    return float(average or 0.0), count or 0


def is_profile_complete(profile: Profile) -> bool:
    """Return ``True`` once the profile has a display name and a username."""

    return bool(
        (profile.display_name or "").strip() and (profile.username or "").strip()
    )


def update_profile(
    session: Session,
    user_id: str,
    *,
    display_name: str | None = None,
    username: str | None = None,
    avatar_url: str | None = None,
    now: datetime | None = None,
) -> tuple[Profile, XPEvent | None]:
    """Upsert the user's profile and grant the completion bonus the first time."""

    now = now or datetime.utcnow()
    profile = session.exec(select(Profile).where(Profile.user_id == user_id)).one_or_none()
    if profile is None:
        profile = Profile(user_id=user_id, created_at=now)

    if display_name is not None:
        profile.display_name = display_name.strip() or None
    if username is not None:
        profile.username = username.strip() or None
    if avatar_url is not None:
        profile.avatar_url = avatar_url.strip() or None
    profile.updated_at = now

    event: XPEvent | None = None
    if profile.profile_completed_at is None and is_profile_complete(profile):
        profile.profile_completed_at = now
        session.add(profile)
        session.flush()
        event = award_xp(
            session,
            user_id,
            XPEventType.PROFILE_COMPLETE,
            reference_id=user_id,
        )
    else:
        session.add(profile)
        session.flush()

    return profile, event
