"""Challenge progress tracking: counters, completion, claims and periodic resets."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import case, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from mycine.core.errors import ConflictError, NotFoundError, XPValidationError
from mycine.core.xp import award_xp
from mycine.models.challenges import (
    Challenge,
    ChallengeProgress,
    ChallengeStatus,
    ChallengeType,
)
from mycine.models.xp import XPEvent, XPEventType

logger = logging.getLogger(__name__)

RESETTING_TYPES = (ChallengeType.DAILY, ChallengeType.WEEKLY)


@dataclass(frozen=True)
class ChallengeView:
    """A challenge merged with the user's effective progress."""

    challenge: Challenge
    current_progress: int
    status: ChallengeStatus

    @property
    def percent_complete(self) -> int:
        if self.challenge.target_value <= 0:
            return 100
        return min(100, round(self.current_progress / self.challenge.target_value * 100))

    @property
    def remaining(self) -> int:
        return max(0, self.challenge.target_value - self.current_progress)


@dataclass(frozen=True)
class ChallengeSummary:
    """Aggregate counts for a user's challenge board."""

    total: int
    in_progress: int
    completed: int
    claimed: int
    available_xp: int


def period_start(challenge_type: ChallengeType, now: datetime) -> datetime | None:
    """Return the start of the reset period containing ``now``.

    Days start at midnight UTC and weeks on Monday. Unique challenges never
    reset and have no period.
    """

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if challenge_type == ChallengeType.DAILY:
        return midnight
    if challenge_type == ChallengeType.WEEKLY:
        return midnight - timedelta(days=midnight.weekday())
    return None


def is_challenge_open(challenge: Challenge, now: datetime) -> bool:
    """Return ``True`` when ``challenge`` is active and inside its window."""

    if not challenge.is_active:
        return False
    if challenge.start_date is not None and now < challenge.start_date:
        return False
    if challenge.end_date is not None and now > challenge.end_date:
        return False
    return True


def claim_reference(challenge: Challenge, now: datetime) -> str:
    """Return the XP ledger reference for claiming ``challenge`` at ``now``."""

    start = period_start(challenge.type, now)
    if start is None:
        return str(challenge.id)
    return f"{challenge.id}:{start.date().isoformat()}"


def open_challenges(
    session: Session,
    now: datetime,
    challenge_type: ChallengeType | None = None,
) -> list[Challenge]:
    """Return active challenges whose window contains ``now``."""

    stmt = select(Challenge).where(Challenge.is_active.is_(True))
    if challenge_type is not None:
        stmt = stmt.where(Challenge.type == challenge_type)
    stmt = stmt.order_by(Challenge.id)
    return [c for c in session.exec(stmt).all() if is_challenge_open(c, now)]


def reset_expired_progress(session: Session, user_id: str, now: datetime | None = None) -> int:
    """Reset daily and weekly rows whose last reset predates the current period.

    Returns the number of rows reset.
    """

    now = now or datetime.utcnow()
    total = 0
    for challenge_type in RESETTING_TYPES:
        start = period_start(challenge_type, now)
        challenge_ids = select(Challenge.id).where(Challenge.type == challenge_type)
        result = session.execute(
            update(ChallengeProgress)
            .where(
                ChallengeProgress.user_id == user_id,
                ChallengeProgress.challenge_id.in_(challenge_ids),
                or_(
                    ChallengeProgress.last_reset_at.is_(None),
                    ChallengeProgress.last_reset_at < start,
                ),
            )
            .values(
                current_progress=0,
                status=ChallengeStatus.IN_PROGRESS,
                completed_at=None,
                claimed_at=None,
                last_reset_at=start,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        total += result.rowcount or 0

    if total:
        logger.info("Reset %s expired challenge rows for user=%s", total, user_id)
    return total


def _get_progress(session: Session, user_id: str, challenge_id: int) -> ChallengeProgress | None:
    stmt = (
        select(ChallengeProgress)
        .where(
            ChallengeProgress.user_id == user_id,
            ChallengeProgress.challenge_id == challenge_id,
        )
        .execution_options(populate_existing=True)
    )
    return session.exec(stmt).one_or_none()


def ensure_progress(
    session: Session, user_id: str, challenge: Challenge, now: datetime
) -> ChallengeProgress:
    """Return the progress row for ``challenge``, creating it when missing."""

    progress = _get_progress(session, user_id, challenge.id)
    if progress is not None:
        return progress

    try:
        with session.begin_nested():
            progress = ChallengeProgress(
                user_id=user_id,
                challenge_id=challenge.id,
                current_progress=0,
                status=ChallengeStatus.IN_PROGRESS,
                last_reset_at=period_start(challenge.type, now),
                created_at=now,
                updated_at=now,
            )
            session.add(progress)
    except IntegrityError:
        progress = _get_progress(session, user_id, challenge.id)
    return progress


def _resolve_targets(
    session: Session, target: ChallengeType | str | int, now: datetime
) -> list[Challenge]:
    if isinstance(target, int) and not isinstance(target, bool):
        challenge = session.get(Challenge, target)
        if challenge is None:
            raise NotFoundError("challenge.not_found", "Challenge not found.")
        if not is_challenge_open(challenge, now):
            raise ConflictError("challenge.closed", "Challenge is not currently active.")
        return [challenge]

    try:
        challenge_type = ChallengeType(target)
    except ValueError as exc:
        raise XPValidationError(
            "challenge.invalid_target", f"Unknown challenge type: {target}"
        ) from exc
    return open_challenges(session, now, challenge_type)


def increment_progress(
    session: Session,
    user_id: str,
    target: ChallengeType | str | int,
    amount: int = 1,
    *,
    now: datetime | None = None,
) -> list[ChallengeProgress]:
    """Add ``amount`` to the user's progress on every challenge ``target`` names.

    ``target`` is either a challenge type (all open challenges of that type) or
    a challenge id. Only ``in_progress`` rows move. Reaching the target value
    completes the row and clamps its counter; no XP is granted until the user
    claims it.
    """

    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise XPValidationError("challenge.invalid_amount", "Increments must be integers >= 0.")

    now = now or datetime.utcnow()
    reset_expired_progress(session, user_id, now)

    updated: list[ChallengeProgress] = []
    for challenge in _resolve_targets(session, target, now):
        ensure_progress(session, user_id, challenge, now)

        row_filter = (
            ChallengeProgress.user_id == user_id,
            ChallengeProgress.challenge_id == challenge.id,
            ChallengeProgress.status == ChallengeStatus.IN_PROGRESS,
        )
        incremented = ChallengeProgress.current_progress + amount
        session.execute(
            update(ChallengeProgress)
            .where(*row_filter)
            .values(
                current_progress=case(
                    (incremented > challenge.target_value, challenge.target_value),
                    else_=incremented,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        completed = session.execute(
            update(ChallengeProgress)
            .where(
                *row_filter,
                ChallengeProgress.current_progress >= challenge.target_value,
            )
            .values(status=ChallengeStatus.COMPLETED, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        if completed.rowcount:
            logger.info("User=%s completed challenge=%s", user_id, challenge.id)

        updated.append(_get_progress(session, user_id, challenge.id))

    return updated


def claim_challenge(
    session: Session,
    user_id: str,
    challenge_id: int,
    *,
    now: datetime | None = None,
) -> tuple[ChallengeProgress, XPEvent | None]:
    """Move a completed challenge to ``claimed`` and grant its XP reward."""

    now = now or datetime.utcnow()
    challenge = session.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFoundError("challenge.not_found", "Challenge not found.")

    reset_expired_progress(session, user_id, now)

    result = session.execute(
        update(ChallengeProgress)
        .where(
            ChallengeProgress.user_id == user_id,
            ChallengeProgress.challenge_id == challenge_id,
            ChallengeProgress.status == ChallengeStatus.COMPLETED,
        )
        .values(status=ChallengeStatus.CLAIMED, claimed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )

    progress = _get_progress(session, user_id, challenge_id)
    if not result.rowcount:
        if progress is not None and progress.status == ChallengeStatus.CLAIMED:
            raise ConflictError("challenge.already_claimed", "Challenge reward already claimed.")
        raise ConflictError("challenge.not_completed", "Challenge has not been completed yet.")

    event = award_xp(
        session,
        user_id,
        XPEventType.CHALLENGE_COMPLETE,
        challenge.xp_reward,
        reference_id=claim_reference(challenge, now),
        metadata={"challenge_id": challenge.id, "challenge_name": challenge.name},
    )
    logger.info("User=%s claimed challenge=%s", user_id, challenge.id)
    return progress, event


def initialize_user_challenges(
    session: Session, user_id: str, *, now: datetime | None = None
) -> list[ChallengeProgress]:
    """Create progress rows for every open challenge the user has not started."""

    now = now or datetime.utcnow()
    return [ensure_progress(session, user_id, c, now) for c in open_challenges(session, now)]


def _effective_state(
    progress: ChallengeProgress | None, challenge: Challenge, now: datetime
) -> tuple[int, ChallengeStatus]:
    if progress is None:
        return 0, ChallengeStatus.IN_PROGRESS

    start = period_start(challenge.type, now)
    if start is not None and (progress.last_reset_at is None or progress.last_reset_at < start):
        return 0, ChallengeStatus.IN_PROGRESS

    return progress.current_progress, progress.status


def list_user_challenges(
    session: Session, user_id: str, *, now: datetime | None = None
) -> list[ChallengeView]:
    """Return open challenges with the user's progress, without writing."""

    now = now or datetime.utcnow()
    challenges = open_challenges(session, now)
    rows = session.exec(
        select(ChallengeProgress)
        .where(ChallengeProgress.user_id == user_id)
        .execution_options(populate_existing=True)
    ).all()
    by_challenge = {row.challenge_id: row for row in rows}

    views: list[ChallengeView] = []
    for challenge in challenges:
        current, status = _effective_state(by_challenge.get(challenge.id), challenge, now)
        views.append(ChallengeView(challenge=challenge, current_progress=current, status=status))
    return views


def summarize_challenges(views: Iterable[ChallengeView]) -> ChallengeSummary:
    """Return board totals for ``views``."""

    views = list(views)
    return ChallengeSummary(
        total=len(views),
        in_progress=sum(1 for v in views if v.status == ChallengeStatus.IN_PROGRESS),
        completed=sum(1 for v in views if v.status == ChallengeStatus.COMPLETED),
        claimed=sum(1 for v in views if v.status == ChallengeStatus.CLAIMED),
        available_xp=sum(v.challenge.xp_reward for v in views),
    )


def has_progress(session: Session, challenge_id: int) -> bool:
    """Return ``True`` when any user has a progress row for the challenge."""

    stmt = select(ChallengeProgress.id).where(ChallengeProgress.challenge_id == challenge_id)
    return session.exec(stmt.limit(1)).first() is not None


def _validate_definition(
    target_value: int | None,
    xp_reward: int | None,
    start_date: datetime | None,
    end_date: datetime | None,
) -> None:
    if target_value is not None and target_value <= 0:
        raise XPValidationError("challenge.invalid_target", "Target value must be greater than zero.")
    if xp_reward is not None and xp_reward < 0:
        raise XPValidationError("challenge.invalid_reward", "XP reward cannot be negative.")
    if start_date is not None and end_date is not None and end_date < start_date:
        raise XPValidationError("challenge.invalid_window", "End date must not precede start date.")


def create_challenge(
    session: Session,
    *,
    name: str,
    challenge_type: ChallengeType,
    target_value: int,
    xp_reward: int = 0,
    description: str | None = None,
    is_active: bool = True,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> Challenge:
    """Validate and add a new challenge definition."""

    _validate_definition(target_value, xp_reward, start_date, end_date)
    challenge = Challenge(
        name=name.strip(),
        description=(description or "").strip() or None,
        type=ChallengeType(challenge_type),
        target_value=target_value,
        xp_reward=xp_reward,
        is_active=is_active,
        start_date=start_date,
        end_date=end_date,
    )
    session.add(challenge)
    session.flush()
    return challenge


_EDITABLE_FIELDS = (
    "name",
    "description",
    "target_value",
    "xp_reward",
    "is_active",
    "start_date",
    "end_date",
)
_REQUIRED_FIELDS = ("name", "target_value", "xp_reward", "is_active")


def update_challenge(session: Session, challenge_id: int, **changes) -> Challenge:
    """Apply ``changes`` to a challenge; its type is frozen once progress exists."""

    challenge = session.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFoundError("challenge.not_found", "Challenge not found.")

    new_type = changes.pop("type", None)
    if new_type is not None and ChallengeType(new_type) != challenge.type:
        if has_progress(session, challenge_id):
            raise ConflictError(
                "challenge.type_locked",
                "Challenge type cannot change once users have progress.",
            )
        challenge.type = ChallengeType(new_type)

    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise XPValidationError(
            "challenge.unknown_fields", f"Unknown fields: {', '.join(sorted(unknown))}"
        )
    missing = sorted(key for key in _REQUIRED_FIELDS if key in changes and changes[key] is None)
    if missing:
        raise XPValidationError(
            "challenge.required_fields", f"Fields cannot be null: {', '.join(missing)}"
        )

    _validate_definition(
        changes.get("target_value"),
        changes.get("xp_reward"),
        changes.get("start_date", challenge.start_date),
        changes.get("end_date", challenge.end_date),
    )
    for key, value in changes.items():
        setattr(challenge, key, value)
    challenge.updated_at = datetime.utcnow()
    session.add(challenge)
    return challenge


def delete_challenge(session: Session, challenge_id: int) -> bool:
    """Delete a challenge, or deactivate it when users already have progress.

    Returns ``True`` when the row was removed and ``False`` when it was only
    deactivated.
    """

    challenge = session.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFoundError("challenge.not_found", "Challenge not found.")

    if has_progress(session, challenge_id):
        challenge.is_active = False
        challenge.updated_at = datetime.utcnow()
        session.add(challenge)
        logger.info("Deactivated challenge=%s instead of deleting it", challenge_id)
        return False

    session.delete(challenge)
    return True
