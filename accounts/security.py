"""Security helpers for the accounts API."""
from __future__ import annotations

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .database import Database
from .errors import InvalidCredentials
from .models import Principal
from .tokens import TokenIssuer


class TokenAuth:
    """Resolve the calling :class:`Principal` from a bearer token.

    The principal is re-read from the database on every request so that
    role changes made by an admin apply to tokens issued before them.
    """

    def __init__(self, database: Database, tokens: TokenIssuer):
        self._database = database
        self._tokens = tokens
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> Principal:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing bearer token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            user_id = self._tokens.subject_id(credentials.credentials)
        except InvalidCredentials as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=str(exc),
                headers={"WWW-Authenticate": "Bearer"},
            ) from exc

        user = self._database.get_user(user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return Principal.from_user(user)


__all__ = ["TokenAuth"]
