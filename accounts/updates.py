"""Run a user patch from authorization through persistence and token refresh."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .authorization import ROLES_FIELD, authorize_patch
from .database import Database
from .errors import NotFound, VersionConflict
from .models import Principal, User
from .patching import UserPatch, apply_patch, check_version, reconcile_roles, validate_patch
from .tokens import TokenIssuer

logger = logging.getLogger("accounts.updates")


@dataclass(frozen=True)
class UpdateResult:
    user: User
    token: Optional[str] = None


class UserUpdater:
    """Apply caller-authorized patches to user records.

    A request moves through authorize, validate, persist and (for
    self-updates) token reissue. Any rejection leaves the stored record
    untouched and is raised once; nothing is retried here.
    """

    def __init__(self, database: Database, tokens: TokenIssuer, *, name_max_length: int) -> None:
        self._database = database
        self._tokens = tokens
        self._name_max_length = name_max_length

    def update_user(self, principal: Principal, user_id: int, patch: UserPatch) -> UpdateResult:
        current = self._database.get_user(user_id)
        if current is None:
            logger.info("Update of unknown user %s requested by user %s", user_id, principal.id)
            raise NotFound(user_id)

        mask = authorize_patch(principal, current, patch.fields)
        logger.debug("User %s may update fields %s of user %s", principal.id, sorted(mask), user_id)

        validate_patch(mask, patch, name_max_length=self._name_max_length)
        check_version(current, patch)

        updated = apply_patch(current, mask, patch)
        if ROLES_FIELD in mask:
            updated = reconcile_roles(current, updated)

        if not self._database.save_user(updated, expected_version=current.version):
            logger.info("Concurrent modification of user %s detected at version %s", user_id, current.version)
            raise VersionConflict(user_id, expected=patch.version)

        logger.info(
            "User %s updated user %s to version %s",
            principal.id,
            user_id,
            updated.version,
        )

        token: Optional[str] = None
        if principal.id == updated.id:
            token = self._tokens.issue(updated)
        return UpdateResult(user=updated, token=token)


__all__ = ["UpdateResult", "UserUpdater"]
