"""Error types raised by the gamification core."""

from __future__ import annotations

from typing import Any


class GamificationError(Exception):
    """Base error carrying an HTTP status and a serialisable detail payload."""

    status_code = 400

    def __init__(
        self, code: str, message: str, *, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.code = code
        self.message = message

    @property
    def detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class XPValidationError(GamificationError, ValueError):
    """Raised when input to a derivation or mutation is malformed."""

    status_code = 422


class NotFoundError(GamificationError):
    """Raised when a referenced challenge, review or title does not exist."""

    status_code = 404


class ConflictError(GamificationError):
    """Raised when a request conflicts with the current state of a row."""

    status_code = 409


class UpstreamUnavailableError(GamificationError):
    """Raised when the database cannot be reached; callers may retry."""

    status_code = 503

    @property
    def detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "retryable": True}


__all__ = [
    "ConflictError",
    "GamificationError",
    "NotFoundError",
    "UpstreamUnavailableError",
    "XPValidationError",
]
