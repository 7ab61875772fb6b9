"""Validate and apply partial updates to user records."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Mapping, Optional

from .authorization import NAME_FIELD, ROLES_FIELD
from .database import new_verification_code
from .errors import ValidationFailed, VersionConflict
from .models import Role, User


@dataclass(frozen=True)
class UserPatch:
    """Requested changes plus the version the caller read the record at.

    ``changes`` only holds keys the client actually sent, so an explicit
    ``null`` can be told apart from an absent field.
    """

    version: int
    changes: Mapping[str, object] = field(default_factory=dict)

    @property
    def fields(self) -> FrozenSet[str]:
        return frozenset(self.changes)


def _validate_name(value: object, max_length: int) -> Optional[str]:
    if value is None:
        return "must not be null"
    if not isinstance(value, str):
        return "must be a string"
    stripped = value.strip()
    if not stripped:
        return "must not be blank"
    if len(stripped) > max_length:
        return f"must be at most {max_length} characters"
    return None


def _validate_roles(value: object) -> Optional[str]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return "must be a list of role names"
    items = list(value)
    if not items:
        return "must contain at least one role"
    unknown = sorted({str(item) for item in items if str(item) not in Role.__members__})
    if unknown:
        return f"unknown role(s): {', '.join(unknown)}"
    return None


def validate_patch(mask: FrozenSet[str], patch: UserPatch, *, name_max_length: int) -> None:
    """Check every masked field before anything is applied.

    All problems are collected and reported together in one
    :class:`ValidationFailed`.
    """

    errors: Dict[str, str] = {}
    if NAME_FIELD in mask:
        problem = _validate_name(patch.changes[NAME_FIELD], name_max_length)
        if problem:
            errors[NAME_FIELD] = problem
    if ROLES_FIELD in mask:
        problem = _validate_roles(patch.changes[ROLES_FIELD])
        if problem:
            errors[ROLES_FIELD] = problem
    if errors:
        raise ValidationFailed(errors)


def check_version(record: User, patch: UserPatch) -> None:
    if patch.version != record.version:
        raise VersionConflict(record.id, expected=patch.version, actual=record.version)


def apply_patch(record: User, mask: FrozenSet[str], patch: UserPatch) -> User:
    """Return a copy of ``record`` with the masked fields applied and the version bumped."""

    updates: Dict[str, object] = {"version": record.version + 1}
    if NAME_FIELD in mask:
        updates["name"] = str(patch.changes[NAME_FIELD]).strip()
    if ROLES_FIELD in mask:
        updates["roles"] = frozenset(Role[str(item)] for item in patch.changes[ROLES_FIELD])  # type: ignore[union-attr]
    return replace(record, **updates)


def reconcile_roles(before: User, after: User) -> User:
    """Keep the verification code in step with the UNVERIFIED role."""

    if after.unverified and not before.unverified:
        return replace(after, verification_code=new_verification_code())
    if before.unverified and not after.unverified:
        return replace(after, verification_code=None)
    return after


__all__ = ["UserPatch", "apply_patch", "check_version", "reconcile_roles", "validate_patch"]
