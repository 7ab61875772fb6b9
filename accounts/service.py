"""HTTP API for reading and patching user accounts."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import anyio
from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Settings, load_settings
from .database import Database
from .errors import NotFound, UserUpdateError, ValidationFailed
from .models import Principal, User
from .patching import UserPatch
from .security import TokenAuth
from .tokens import TokenIssuer
from .updates import UserUpdater

logger = logging.getLogger("accounts.service")


class UserTag(BaseModel):
    name: str


class UserResponse(BaseModel):
    id: int
    username: str
    name: str
    tag: UserTag
    roles: List[str]
    unverified: bool
    blocked: bool
    admin: bool
    good_user: bool
    good_admin: bool
    version: int


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class UserPatchRequest(BaseModel):
    """Partial update body. ``name`` and ``roles`` are validated by the update engine."""

    version: int
    name: Optional[Any] = None
    roles: Optional[Any] = None

    def to_patch(self) -> UserPatch:
        sent = self.model_fields_set - {"version"}
        return UserPatch(version=self.version, changes={key: getattr(self, key) for key in sent})


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.email,
        name=user.name,
        tag=UserTag(name=user.name),
        roles=user.role_names(),
        unverified=user.unverified,
        blocked=user.blocked,
        admin=user.admin,
        good_user=user.good_user,
        good_admin=user.good_admin,
        version=user.version,
    )


def _initialise_database(database: Database) -> Database:
    database.initialize()
    return database


def register_api_routes(
    app: FastAPI,
    database: Database,
    *,
    settings: Settings,
    tokens: TokenIssuer,
    updater: UserUpdater,
) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    current_principal = TokenAuth(database, tokens)

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/login", response_model=UserResponse)
    async def login(payload: LoginRequest, response: Response) -> UserResponse:
        user = database.authenticate_user(payload.email, payload.password)
        if user is None:
            logger.warning("Failed login attempt for %s", payload.email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
                headers={"WWW-Authenticate": "Bearer"},
            )
        response.headers[settings.token_header] = tokens.issue(user)
        logger.info("User %s signed in", user.id)
        return user_to_response(user)

    @app.get("/users/{user_id}", response_model=UserResponse)
    async def read_user(user_id: int, principal: Principal = Depends(current_principal)) -> UserResponse:
        user = database.get_user(user_id)
        if user is None:
            raise NotFound(user_id)
        return user_to_response(user)

    @app.patch("/users/{user_id}", response_model=UserResponse)
    async def update_user(
        user_id: int,
        payload: UserPatchRequest,
        response: Response,
        principal: Principal = Depends(current_principal),
    ) -> UserResponse:
        result = await anyio.to_thread.run_sync(updater.update_user, principal, user_id, payload.to_patch())
        if result.token is not None:
            response.headers[settings.token_header] = result.token
        return user_to_response(result.user)

    @app.exception_handler(UserUpdateError)
    async def handle_update_error(_request: Request, exc: UserUpdateError) -> JSONResponse:
        payload: Dict[str, object] = {"detail": exc.message}
        if isinstance(exc, ValidationFailed):
            payload["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=payload)


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the accounts service."""

    app_settings = settings or load_settings()
    db = database or Database(app_settings.database_path)
    _initialise_database(db)

    tokens = TokenIssuer(
        app_settings.token_secret,
        algorithm=app_settings.token_algorithm,
        ttl=app_settings.token_ttl,
    )
    updater = UserUpdater(db, tokens, name_max_length=app_settings.name_max_length)

    app = FastAPI(
        title="Accounts API",
        version="0.1.0",
        description="User accounts with role-aware partial updates.",
    )
    app.state.database = db
    app.state.settings = app_settings
    app.state.tokens = tokens

    register_api_routes(app, db, settings=app_settings, tokens=tokens, updater=updater)
    return app


__all__ = ["UserPatchRequest", "UserResponse", "create_app", "user_to_response"]
