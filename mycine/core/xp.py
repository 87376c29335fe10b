"""XP ledger: append-only grants kept in step with each user's running total."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from mycine.core.errors import XPValidationError
from mycine.core.levels import calculate_level
from mycine.models.xp import UserXP, XPEvent, XPEventType

logger = logging.getLogger(__name__)

XP_EVENT_AMOUNTS: dict[XPEventType, int] = {
    XPEventType.FIRST_REVIEW_TITLE: 50,
    XPEventType.DAILY_REVIEW: 20,
    XPEventType.EXTRA_COMMENT: 10,
    XPEventType.PROFILE_COMPLETE: 100,
}

XP_REASON_LABELS: dict[XPEventType, str] = {
    XPEventType.FIRST_REVIEW_TITLE: "First review of a title",
    XPEventType.DAILY_REVIEW: "Daily review bonus",
    XPEventType.EXTRA_COMMENT: "Review comment",
    XPEventType.PROFILE_COMPLETE: "Profile completed",
    XPEventType.CHALLENGE_COMPLETE: "Challenge reward",
}


def _resolve_amount(event_type: XPEventType, amount: int | None) -> int:
    fixed = XP_EVENT_AMOUNTS.get(event_type)
    if fixed is not None:
        if amount is not None and amount != fixed:
            raise XPValidationError(
                "xp.amount_fixed",
                f"{event_type.value} always grants {fixed} XP.",
            )
        return fixed

    if amount is None:
        raise XPValidationError(
            "xp.amount_required", f"{event_type.value} requires an explicit amount."
        )
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise XPValidationError("xp.amount_invalid", "XP amounts must be integers >= 0.")
    return amount


def get_user_xp(session: Session, user_id: str) -> UserXP | None:
    """Return the XP record for ``user_id`` without creating it."""

    return session.exec(select(UserXP).where(UserXP.user_id == user_id)).one_or_none()


def get_or_create_user_xp(session: Session, user_id: str) -> UserXP:
    """Return the XP record for ``user_id``, inserting an empty one if missing."""

    record = get_user_xp(session, user_id)
    if record is not None:
        return record

    try:
        with session.begin_nested():
            record = UserXP(user_id=user_id, total_xp=0, level=1)
            session.add(record)
    except IntegrityError:
        # Another request created the row first.
        record = get_user_xp(session, user_id)
    return record


def award_xp(
    session: Session,
    user_id: str,
    event_type: XPEventType | str,
    amount: int | None = None,
    *,
    reference_id: str | None = None,
    metadata: Mapping[str, Any] | None = None,
    commit: bool = False,
) -> XPEvent | None:
    """Append an XP event and increment the user's running total together.

    Returns the new :class:`XPEvent`, or ``None`` when an event with the same
    ``(user_id, event_type, reference_id)`` already exists. A duplicate rolls
    back only its own savepoint so the caller's transaction stays usable.
    Every event type is granted once per reference, so ``reference_id`` is
    required.
    """

    try:
        event_type = XPEventType(event_type)
    except ValueError as exc:
        raise XPValidationError("xp.unknown_event", f"Unknown XP event type: {event_type}") from exc
    xp_amount = _resolve_amount(event_type, amount)
    if not reference_id:
        raise XPValidationError(
            "xp.reference_required", f"{event_type.value} requires a reference id."
        )

    get_or_create_user_xp(session, user_id)

    event = XPEvent(
        user_id=user_id,
        event_type=event_type,
        xp_amount=xp_amount,
        reference_id=reference_id,
        metadata_payload=dict(metadata) if metadata else None,
    )

    try:
        with session.begin_nested():
            session.add(event)
            session.flush()
            session.execute(
                update(UserXP)
                .where(UserXP.user_id == user_id)
                .values(total_xp=UserXP.total_xp + xp_amount, updated_at=datetime.utcnow())
            )
            total_xp = session.exec(
                select(UserXP.total_xp).where(UserXP.user_id == user_id)
            ).one()
            session.execute(
                update(UserXP)
                .where(UserXP.user_id == user_id)
                .values(level=calculate_level(total_xp))
            )
    except IntegrityError:
        logger.info(
            "Duplicate XP grant ignored user=%s event=%s reference=%s",
            user_id,
            event_type.value,
            reference_id,
        )
        return None

    logger.info(
        "Awarded %s XP to user=%s event=%s reference=%s",
        xp_amount,
        user_id,
        event_type.value,
        reference_id,
    )

    if commit:
        session.commit()

    return event


def calculate_user_total_xp(events: Iterable[XPEvent]) -> int:
    """Aggregate ``events`` into a total XP value."""

    return sum(event.xp_amount for event in events)


def ledger_total(session: Session, user_id: str) -> int:
    """Return the XP total recomputed from the ledger for ``user_id``."""

    events = session.exec(select(XPEvent).where(XPEvent.user_id == user_id)).all()
    return calculate_user_total_xp(events)


def xp_history(session: Session, user_id: str, limit: int = 20) -> list[XPEvent]:
    """Return the most recent XP events for ``user_id``."""

    stmt = (
        select(XPEvent)
        .where(XPEvent.user_id == user_id)
        .order_by(XPEvent.created_at.desc(), XPEvent.id.desc())
        .limit(limit)
    )
    return list(session.exec(stmt).all())


def reason_label(event_type: XPEventType | str) -> str:
    """Return a human-friendly label for an XP event type."""

    try:
        return XP_REASON_LABELS[XPEventType(event_type)]
    except ValueError:
        return str(event_type).replace("_", " ").replace(".", " ").title()
