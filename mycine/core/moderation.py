"""Helpers for moderating reviews and recording moderation log entries."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlmodel import Session

from mycine.core.errors import ConflictError, NotFoundError
from mycine.models.moderation import ModerationAction, ModerationLog
from mycine.models.titles import Review

logger = logging.getLogger(__name__)


def log_moderation(
    session: Session,
    *,
    admin_id: str,
    action: ModerationAction,
    target_type: str,
    target_id: int,
    reason: str | None = None,
    commit: bool = False,
) -> ModerationLog:
    """Persist a ``ModerationLog`` row and optionally commit the transaction.

    Parameters
    ----------
    session:
        The open database session that will persist the log entry.
    admin_id:
        Identifier of the admin who acted.
    action:
        What was done to the target (``soft_delete`` or ``restore``).
    target_type / target_id:
        The moderated entity, for example ``review`` and its id.
    reason:
        Optional free-form note. Blank strings are stored as ``None``.
    commit:
        When ``True`` the helper commits the session after adding the log.
    """

    entry = ModerationLog(
        admin_id=admin_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        reason=(reason or "").strip() or None,
    )
    session.add(entry)

    if commit:
        session.commit()

    return entry


def moderate_review(
    session: Session,
    *,
    admin_id: str,
    review_id: int,
    action: ModerationAction,
    reason: str | None = None,
) -> Review:
    """Hide or restore a review and record the action."""

    review = session.get(Review, review_id)
    if review is None:
        raise NotFoundError("review.not_found", "Review not found.")

    hide = action == ModerationAction.SOFT_DELETE
    if review.is_deleted == hide:
        state = "hidden" if hide else "visible"
        raise ConflictError("review.unchanged", f"Review is already {state}.")

    review.is_deleted = hide
    review.updated_at = datetime.utcnow()
    session.add(review)

    log_moderation(
        session,
        admin_id=admin_id,
        action=action,
        target_type="review",
        target_id=review.id,
        reason=reason,
    )
    logger.info("Admin=%s applied %s to review=%s", admin_id, action.value, review.id)
    return review


__all__ = ["log_moderation", "moderate_review"]
