"""Configuration management for the accounts service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path

DEFAULT_TOKEN_HEADER = "X-Auth-Token"
DEFAULT_TOKEN_TTL = timedelta(days=10)
DEFAULT_NAME_MAX_LENGTH = 50
MIN_TOKEN_SECRET_BYTES = 32


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "accounts.yaml").resolve(strict=False)
    return candidate


def _resolve_settings_db_path(raw_db_path: object, base_path: Optional[Path]) -> Path:
    if not raw_db_path:
        return resolve_database_path(None)
    db_path = Path(str(raw_db_path)).expanduser()
    if not db_path.is_absolute() and base_path is not None:
        db_path = base_path / db_path
    return db_path.resolve(strict=False)


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the HTTP layer and the update engine."""

    database_path: Path
    token_secret: str
    token_algorithm: str = "HS256"
    token_ttl: timedelta = DEFAULT_TOKEN_TTL
    token_header: str = DEFAULT_TOKEN_HEADER
    name_max_length: int = DEFAULT_NAME_MAX_LENGTH

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""
        secret = data.get("token_secret")
        if not secret or not str(secret).strip():
            raise ValueError("A token secret must be configured (token_secret or ACCOUNTS_TOKEN_SECRET)")
        if len(str(secret).strip().encode("utf-8")) < MIN_TOKEN_SECRET_BYTES:
            raise ValueError(f"The token secret must be at least {MIN_TOKEN_SECRET_BYTES} bytes long")

        database_path = _resolve_settings_db_path(data.get("database_path"), base_path)

        name_max_length = int(data.get("name_max_length", DEFAULT_NAME_MAX_LENGTH))
        if name_max_length < 1:
            raise ValueError("name_max_length must be a positive integer")

        ttl_seconds = data.get("token_ttl_seconds")
        token_ttl = timedelta(seconds=int(ttl_seconds)) if ttl_seconds is not None else DEFAULT_TOKEN_TTL
        if token_ttl <= timedelta(0):
            raise ValueError("token_ttl_seconds must be a positive integer")

        return Settings(
            database_path=database_path,
            token_secret=str(secret).strip(),
            token_algorithm=str(data.get("token_algorithm", "HS256")),
            token_ttl=token_ttl,
            token_header=str(data.get("token_header", DEFAULT_TOKEN_HEADER)),
            name_max_length=name_max_length,
        )


_ENV_OVERRIDES = {
    "ACCOUNTS_DB_PATH": "database_path",
    "ACCOUNTS_TOKEN_SECRET": "token_secret",
    "ACCOUNTS_TOKEN_TTL_SECONDS": "token_ttl_seconds",
    "ACCOUNTS_TOKEN_HEADER": "token_header",
    "ACCOUNTS_NAME_MAX_LENGTH": "name_max_length",
}


def _load_raw(
    config_path: Optional[Path], environ: Optional[Mapping[str, str]]
) -> Tuple[Dict[str, object], Optional[Path]]:
    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("ACCOUNTS_CONFIG"))

    data: Dict[str, object] = {}
    base_path: Path | None = None
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")
        section = raw.get("accounts", {})
        if not isinstance(section, dict):
            raise ValueError("Configuration file must define a mapping under the 'accounts' key")
        data.update(section)
        base_path = path.parent

    for variable, key in _ENV_OVERRIDES.items():
        value = env.get(variable)
        if value:
            data[key] = value
            if key == "database_path":
                base_path = None

    return data, base_path


def load_settings(config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from an optional YAML file, overridden by environment variables."""

    data, base_path = _load_raw(config_path, environ)
    return Settings.from_dict(data, base_path=base_path)


def load_database_path(config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Path:
    """Resolve only the database location, without requiring a token secret."""

    data, base_path = _load_raw(config_path, environ)
    return _resolve_settings_db_path(data.get("database_path"), base_path)


__all__ = ["Settings", "load_database_path", "load_settings", "resolve_config_path"]
