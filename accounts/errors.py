"""Failures raised by the user update engine."""

from __future__ import annotations

from typing import Dict, Optional


class UserUpdateError(Exception):
    """Base class for rejected user updates. None of these are retried."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(UserUpdateError):
    status_code = 404

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class Forbidden(UserUpdateError):
    status_code = 403

    def __init__(self) -> None:
        super().__init__("You are not allowed to update this user")


class ValidationFailed(UserUpdateError):
    status_code = 422

    def __init__(self, errors: Dict[str, str]) -> None:
        super().__init__("Invalid update: " + "; ".join(f"{k}: {v}" for k, v in sorted(errors.items())))
        self.errors = dict(errors)


class VersionConflict(UserUpdateError):
    status_code = 409

    def __init__(self, user_id: int, expected: int, actual: Optional[int] = None) -> None:
        super().__init__(
            f"User {user_id} was modified concurrently; re-read it and retry"
        )
        self.user_id = user_id
        self.expected = expected
        self.actual = actual


class InvalidCredentials(ValueError):
    """Raised when an authentication token cannot be verified."""


__all__ = [
    "Forbidden",
    "InvalidCredentials",
    "NotFound",
    "UserUpdateError",
    "ValidationFailed",
    "VersionConflict",
]
