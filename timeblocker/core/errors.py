"""Application error hierarchy.

Core modules raise these; the HTTP layer maps each class to a status code.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed or missing input."""

    status_code = 400


class OverlapError(AppError):
    """A time block would overlap another block of the same user."""

    status_code = 400

    def __init__(
        self,
        message: str = "Time block overlaps with existing block",
        conflicting_ids: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []


class AuthError(AppError):
    """Missing, invalid or expired credentials."""

    status_code = 401


class NotFoundError(AppError):
    """Referenced entity is absent or not owned by the caller."""

    status_code = 404
