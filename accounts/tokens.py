"""Signed authentication tokens carrying a user's identity claims."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from .errors import InvalidCredentials
from .models import User


class TokenIssuer:
    """Issue and verify HMAC-signed JWTs for user accounts.

    Issuing is pure: it only encodes the record it is given and never touches
    storage.
    """

    def __init__(self, secret: str, *, algorithm: str = "HS256", ttl: timedelta = timedelta(days=10)) -> None:
        if not secret:
            raise ValueError("A token signing secret must be provided")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl

    def issue(self, user: User) -> str:
        now = self._now()
        payload: Dict[str, Any] = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "roles": user.role_names(),
            "iat": now,
            "exp": now + self._ttl,
            # Two tokens minted in the same second must still differ.
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidCredentials("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidCredentials("Invalid authentication token") from exc
        return claims

    def subject_id(self, token: str) -> int:
        claims = self.decode(token)
        try:
            return int(claims["sub"])
        except (TypeError, ValueError) as exc:
            raise InvalidCredentials("Invalid token subject") from exc

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["TokenIssuer"]
