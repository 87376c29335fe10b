"""Identity and authorisation helpers.

The identity provider verifies callers upstream and forwards the opaque user id
in a request header; these dependencies only read it.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlmodel import Session, select

from mycine.core.config import settings
from mycine.core.db import get_session
from mycine.models.users import AppRole, UserRole

MAX_USER_ID_LENGTH = 36


def get_current_user_id(request: Request) -> str:
    """Return the verified user id forwarded by the identity provider."""

    user_id = (request.headers.get(settings.user_header) or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required."
        )
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed user id.")
    return user_id


def has_role(session: Session, user_id: str, role: AppRole) -> bool:
    """Return ``True`` when ``user_id`` has been granted ``role``."""

    stmt = select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role)
    return session.exec(stmt.limit(1)).first() is not None


def require_admin(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> str:
    """Return the caller's id if they are an admin, otherwise reject the request."""

    if not has_role(session, user_id, AppRole.ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required.")
    return user_id
