from __future__ import annotations

from datetime import datetime, timezone

import pytest

from accounts.authorization import authorize_patch, permitted_fields
from accounts.errors import Forbidden
from accounts.models import Principal, Role, User


def _user(user_id: int, *roles: Role) -> User:
    return User(
        id=user_id,
        email=f"user{user_id}@example.com",
        name=f"User {user_id}",
        roles=frozenset(roles),
        verification_code="code" if Role.UNVERIFIED in roles else None,
        version=1,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def _principal(user: User) -> Principal:
    return Principal.from_user(user)


def test_self_update_never_includes_roles() -> None:
    admin = _user(1, Role.ADMIN)

    mask = authorize_patch(_principal(admin), admin, {"name", "roles"})

    assert mask == frozenset({"name"})


def test_good_admin_may_edit_name_and_roles_of_others() -> None:
    admin = _user(1, Role.ADMIN)
    target = _user(2, Role.UNVERIFIED)

    assert authorize_patch(_principal(admin), target, {"name", "roles"}) == frozenset({"name", "roles"})
    assert authorize_patch(_principal(admin), target, {"roles"}) == frozenset({"roles"})


def test_mask_drops_unknown_fields() -> None:
    admin = _user(1, Role.ADMIN)
    target = _user(2, Role.USER)

    assert authorize_patch(_principal(admin), target, {"name", "email"}) == frozenset({"name"})


@pytest.mark.parametrize(
    "roles",
    [
        (Role.USER,),
        (Role.UNVERIFIED,),
        (Role.ADMIN, Role.UNVERIFIED),
        (Role.ADMIN, Role.BLOCKED),
    ],
)
def test_non_privileged_callers_cannot_edit_others(roles) -> None:
    caller = _user(1, *roles)
    target = _user(2, Role.USER)

    with pytest.raises(Forbidden):
        authorize_patch(_principal(caller), target, {"name"})


def test_blocked_user_may_still_rename_self() -> None:
    blocked = _user(3, Role.USER, Role.BLOCKED)

    assert permitted_fields(_principal(blocked), blocked) == frozenset({"name"})
