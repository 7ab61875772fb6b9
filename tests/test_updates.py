from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from accounts.database import Database
from accounts.errors import Forbidden, NotFound, ValidationFailed, VersionConflict
from accounts.models import Principal, Role
from accounts.patching import UserPatch
from accounts.tokens import TokenIssuer
from accounts.updates import UserUpdater

PASSWORD = "Sup3rSecurePwd!"


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "accounts.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def updater(database: Database) -> UserUpdater:
    return UserUpdater(database, TokenIssuer("tests-secret-0123456789abcdefghij"), name_max_length=50)


def test_self_update_reissues_token_with_new_name(database: Database, updater: UserUpdater) -> None:
    user = database.create_user("Alice", "alice@example.com", PASSWORD)

    result = updater.update_user(Principal.from_user(user), user.id, UserPatch(version=1, changes={"name": "Alicia"}))

    assert result.user.name == "Alicia"
    assert result.user.version == 2
    assert result.token is not None
    assert TokenIssuer("tests-secret-0123456789abcdefghij").decode(result.token)["name"] == "Alicia"
    assert database.get_user(user.id) == result.user


def test_self_update_without_changes_still_reissues(database: Database, updater: UserUpdater) -> None:
    user = database.create_user("Alice", "alice@example.com", PASSWORD)

    result = updater.update_user(Principal.from_user(user), user.id, UserPatch(version=1))

    assert result.token is not None
    assert result.user.version == 2
    assert result.user.name == "Alice"


def test_admin_update_of_other_user_issues_no_token(database: Database, updater: UserUpdater) -> None:
    admin = database.create_user("Admin", "admin@example.com", PASSWORD, roles=[Role.ADMIN])
    target = database.create_user("Target", "target@example.com", PASSWORD, roles=[Role.UNVERIFIED])

    result = updater.update_user(
        Principal.from_user(admin),
        target.id,
        UserPatch(version=1, changes={"roles": ["ADMIN"]}),
    )

    assert result.token is None
    assert result.user.roles == frozenset({Role.ADMIN})
    assert result.user.verification_code is None
    assert database.get_user(admin.id) == admin


def test_unknown_target_is_not_found(database: Database, updater: UserUpdater) -> None:
    admin = database.create_user("Admin", "admin@example.com", PASSWORD, roles=[Role.ADMIN])

    with pytest.raises(NotFound):
        updater.update_user(Principal.from_user(admin), 99, UserPatch(version=1, changes={"name": "x"}))


def test_forbidden_is_raised_before_validation(database: Database, updater: UserUpdater) -> None:
    caller = database.create_user("Caller", "caller@example.com", PASSWORD)
    target = database.create_user("Target", "target@example.com", PASSWORD)

    with pytest.raises(Forbidden):
        updater.update_user(Principal.from_user(caller), target.id, UserPatch(version=1, changes={"name": None}))


def test_validation_failure_leaves_record_untouched(database: Database, updater: UserUpdater) -> None:
    admin = database.create_user("Admin", "admin@example.com", PASSWORD, roles=[Role.ADMIN])
    target = database.create_user("Target", "target@example.com", PASSWORD)

    with pytest.raises(ValidationFailed):
        updater.update_user(
            Principal.from_user(admin),
            target.id,
            UserPatch(version=1, changes={"name": "Valid", "roles": []}),
        )

    assert database.get_user(target.id) == target


def test_concurrent_writer_wins_race(database: Database, updater: UserUpdater, monkeypatch) -> None:
    user = database.create_user("Alice", "alice@example.com", PASSWORD)
    original_get_user = database.get_user

    def get_then_race(user_id: int):
        snapshot = original_get_user(user_id)
        # Another request commits between our read and our write.
        database.save_user(replace(snapshot, name="Winner", version=snapshot.version + 1), expected_version=snapshot.version)
        return snapshot

    monkeypatch.setattr(database, "get_user", get_then_race)

    with pytest.raises(VersionConflict):
        updater.update_user(Principal.from_user(user), user.id, UserPatch(version=1, changes={"name": "Loser"}))

    stored = original_get_user(user.id)
    assert stored is not None
    assert stored.name == "Winner"
    assert stored.version == 2
