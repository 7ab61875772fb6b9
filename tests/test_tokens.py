from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from accounts.errors import InvalidCredentials
from accounts.models import Role, User
from accounts.tokens import TokenIssuer

SECRET = "tokens-secret-0123456789abcdefghij"


@pytest.fixture()
def user() -> User:
    return User(
        id=5,
        email="token@example.com",
        name="Token Holder",
        roles=frozenset({Role.ADMIN, Role.USER}),
        verification_code=None,
        version=1,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_issued_token_carries_identity_claims(user: User) -> None:
    issuer = TokenIssuer(SECRET)

    claims = issuer.decode(issuer.issue(user))

    assert claims["sub"] == "5"
    assert claims["email"] == "token@example.com"
    assert claims["name"] == "Token Holder"
    assert claims["roles"] == ["ADMIN", "USER"]
    assert issuer.subject_id(issuer.issue(user)) == 5


def test_consecutive_tokens_differ(user: User) -> None:
    issuer = TokenIssuer(SECRET)

    assert issuer.issue(user) != issuer.issue(user)


def test_token_signed_with_other_secret_is_rejected(user: User) -> None:
    token = TokenIssuer("other-secret-0123456789abcdefghij").issue(user)

    with pytest.raises(InvalidCredentials):
        TokenIssuer(SECRET).decode(token)


def test_expired_token_is_rejected(user: User) -> None:
    issuer = TokenIssuer(SECRET, ttl=timedelta(seconds=-30))

    with pytest.raises(InvalidCredentials, match="expired"):
        issuer.decode(issuer.issue(user))


def test_secret_is_required() -> None:
    with pytest.raises(ValueError):
        TokenIssuer("")
