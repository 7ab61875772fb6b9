"""Decide which fields of a user record a caller may change."""

from __future__ import annotations

import logging
from typing import FrozenSet, Iterable

from .errors import Forbidden
from .models import Principal, User

logger = logging.getLogger("accounts.authorization")

NAME_FIELD = "name"
ROLES_FIELD = "roles"

SELF_EDITABLE_FIELDS: FrozenSet[str] = frozenset({NAME_FIELD})
ADMIN_EDITABLE_FIELDS: FrozenSet[str] = frozenset({NAME_FIELD, ROLES_FIELD})


def permitted_fields(principal: Principal, target: User) -> FrozenSet[str]:
    """Return every field ``principal`` may touch on ``target``.

    Users may rename themselves but never change their own roles, admins
    included. Only a good admin may edit somebody else, and then both the
    name and the roles are editable.
    """

    if principal.id == target.id:
        return SELF_EDITABLE_FIELDS
    if principal.good_admin:
        return ADMIN_EDITABLE_FIELDS
    raise Forbidden()


def authorize_patch(principal: Principal, target: User, requested: Iterable[str]) -> FrozenSet[str]:
    """Return the field mask for this caller/target pair.

    Requested fields outside the caller's permissions are dropped silently.
    Raises :class:`Forbidden` if the caller may not edit ``target`` at all.
    """

    try:
        allowed = permitted_fields(principal, target)
    except Forbidden:
        logger.warning("User %s is not allowed to update user %s", principal.id, target.id)
        raise

    requested_set = frozenset(requested)
    mask = requested_set & allowed
    ignored = requested_set - allowed
    if ignored:
        logger.info(
            "Ignoring fields %s in update of user %s by user %s",
            ", ".join(sorted(ignored)),
            target.id,
            principal.id,
        )
    return mask


__all__ = [
    "ADMIN_EDITABLE_FIELDS",
    "NAME_FIELD",
    "ROLES_FIELD",
    "SELF_EDITABLE_FIELDS",
    "authorize_patch",
    "permitted_fields",
]
