"""Domain models for user accounts and authenticated callers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional


class Role(str, Enum):
    """Closed set of role tags a user account can hold."""

    USER = "USER"
    UNVERIFIED = "UNVERIFIED"
    BLOCKED = "BLOCKED"
    ADMIN = "ADMIN"


def parse_roles(raw: str) -> FrozenSet[Role]:
    """Decode the comma separated role column stored in the database."""

    return frozenset(Role(item) for item in raw.split(",") if item)


def serialize_roles(roles: Iterable[Role]) -> str:
    return ",".join(sorted(role.value for role in roles))


class _RoleFlags:
    roles: FrozenSet[Role]

    @property
    def unverified(self) -> bool:
        return Role.UNVERIFIED in self.roles

    @property
    def blocked(self) -> bool:
        return Role.BLOCKED in self.roles

    @property
    def admin(self) -> bool:
        return Role.ADMIN in self.roles

    @property
    def good_user(self) -> bool:
        return not (self.unverified or self.blocked)

    @property
    def good_admin(self) -> bool:
        # Holding ADMIN is not enough: an unverified or blocked admin has no privileges.
        return self.admin and self.good_user

    def role_names(self) -> List[str]:
        return sorted(role.value for role in self.roles)


@dataclass(frozen=True)
class User(_RoleFlags):
    """Represents a user account stored in the accounts database."""

    id: int
    email: str
    name: str
    roles: FrozenSet[Role]
    verification_code: Optional[str]
    version: int
    created_at: datetime


@dataclass(frozen=True)
class Principal(_RoleFlags):
    """The authenticated caller, resolved by the transport before an update runs."""

    id: int
    email: str
    name: str
    roles: FrozenSet[Role]

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(id=user.id, email=user.email, name=user.name, roles=user.roles)


__all__ = ["Principal", "Role", "User", "parse_roles", "serialize_roles"]
