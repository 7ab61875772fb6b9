"""SQLite-backed persistence for user accounts."""
from __future__ import annotations

import secrets
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from passlib.context import CryptContext

from .models import Role, User, parse_roles, serialize_roles


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the accounts database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "accounts.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def new_verification_code() -> str:
    return secrets.token_urlsafe(24)


_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


class Database:
    """Simple wrapper around SQLite for persisting user accounts."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    roles TEXT NOT NULL,
                    verification_code TEXT,
                    password_hash TEXT,
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(
        self,
        name: str,
        email: str,
        password: str,
        roles: Optional[Iterable[Role]] = None,
    ) -> User:
        """Create a new user account.

        Accounts without explicit roles get the base ``USER`` role. Accounts
        created as ``UNVERIFIED`` receive a verification code straight away.
        """

        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("Name must not be empty")
        normalized_email = email.strip().lower()
        if not normalized_email:
            raise ValueError("Email must not be empty")
        if not password:
            raise ValueError("Password must not be empty")

        role_set = frozenset(roles) if roles else frozenset({Role.USER})
        verification_code = new_verification_code() if Role.UNVERIFIED in role_set else None
        created_at = _current_timestamp()

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (email, name, roles, verification_code, password_hash, version, created_at)
                    VALUES (?, ?, ?, ?, ?, 1, ?)
                    """,
                    (
                        normalized_email,
                        normalized_name,
                        serialize_roles(role_set),
                        verification_code,
                        _hash_password(password),
                        _serialize_datetime(created_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError("A user with that email already exists") from exc
            user_id = cursor.lastrowid

        return User(
            id=user_id,
            email=normalized_email,
            name=normalized_name,
            roles=role_set,
            verification_code=verification_code,
            version=1,
            created_at=created_at,
        )

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        if row is None:
            return None
        stored_hash = row["password_hash"]
        if not stored_hash or not _verify_password(password, stored_hash):
            return None
        return self._row_to_user(row)

    def save_user(self, user: User, *, expected_version: int) -> bool:
        """Persist ``user`` only if the stored version still equals ``expected_version``.

        The compare and the version bump happen in a single ``UPDATE`` so two
        writers racing on the same version cannot both succeed. Returns
        ``False`` when the stored row has moved on (or no longer exists).
        """

        if user.version != expected_version + 1:
            raise ValueError("Saved records must carry the next version number")

        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE users
                   SET name = ?, roles = ?, verification_code = ?, version = version + 1
                 WHERE id = ? AND version = ?
                """,
                (
                    user.name,
                    serialize_roles(user.roles),
                    user.verification_code,
                    user.id,
                    expected_version,
                ),
            )
            return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            email=str(row["email"]),
            name=str(row["name"]),
            roles=parse_roles(str(row["roles"])),
            verification_code=row["verification_code"],
            version=int(row["version"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = ["Database", "new_verification_code", "resolve_database_path"]
