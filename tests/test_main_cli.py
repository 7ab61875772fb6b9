from pathlib import Path

import pytest

from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_create_user_collects_roles() -> None:
    args = _parse_args(["create-user", "Admin", "admin@example.com", "--role", "ADMIN", "--role", "USER"])
    assert args.command == "create-user"
    assert args.roles == ["ADMIN", "USER"]


def test_init_db_subcommand_still_available() -> None:
    args = _parse_args(["init-db"])
    assert args.command == "init-db"


def test_init_db_runs_without_token_secret(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    db_path = tmp_path / "cli.sqlite3"
    monkeypatch.setenv("ACCOUNTS_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("ACCOUNTS_DB_PATH", str(db_path))
    monkeypatch.delenv("ACCOUNTS_TOKEN_SECRET", raising=False)

    assert main(["init-db"]) == 0
    assert db_path.exists()


def test_serve_requires_token_secret(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCOUNTS_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("ACCOUNTS_DB_PATH", str(tmp_path / "cli.sqlite3"))
    monkeypatch.delenv("ACCOUNTS_TOKEN_SECRET", raising=False)

    assert main(["serve"]) == 1
    assert not (tmp_path / "cli.sqlite3").exists()
