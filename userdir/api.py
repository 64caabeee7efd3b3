"""FastAPI application exposing user account management endpoints."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictBool, StrictStr

from .config import Settings, load_settings
from .database import Database
from .directory import UserDirectory
from .errors import (
    DuplicateUsernameError,
    InvalidInputError,
    StoreUnavailableError,
    UserDirectoryError,
    UserNotFoundError,
)
from .models import Confirmation, UserSummary
from .passwords import PasswordHasher
from .security import TokenAuth

logger = logging.getLogger("userdir.api")


class CreateUserRequest(BaseModel):
    username: StrictStr
    password: StrictStr
    roles: List[StrictStr] = Field(..., min_length=1)


class UpdateUserRequest(BaseModel):
    username: StrictStr
    roles: List[StrictStr] = Field(..., min_length=1)
    active: StrictBool
    password: Optional[StrictStr] = None


class UserResponse(BaseModel):
    id: int
    username: str
    roles: List[str]
    active: bool
    created_at: Optional[datetime]


class ConfirmationResponse(BaseModel):
    message: str
    username: str
    id: int


def summary_to_response(summary: UserSummary) -> UserResponse:
    return UserResponse(
        id=summary.id,
        username=summary.username,
        roles=list(summary.roles),
        active=summary.active,
        created_at=summary.created_at,
    )


def confirmation_to_response(confirmation: Confirmation) -> ConfirmationResponse:
    return ConfirmationResponse(
        message=confirmation.message,
        username=confirmation.username,
        id=confirmation.id,
    )


def status_for_error(exc: UserDirectoryError) -> int:
    if isinstance(exc, InvalidInputError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, DuplicateUsernameError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, UserNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, StoreUnavailableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _describe_validation_error(exc: RequestValidationError) -> str:
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "path")]
        if location:
            return f"Invalid or missing field: {'.'.join(location)}"
    return "All fields must be required."


def _initialise_database(database: Database) -> Database:
    database.open()
    database.initialize()
    return database


def create_app(
    *,
    database: Database | None = None,
    hasher: PasswordHasher | None = None,
    settings: Settings | None = None,
    api_tokens: Iterable[str] | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the user directory.

    A database passed in by the caller is opened on startup but left open on
    shutdown; one built from ``settings`` is owned and closed by the app.
    """

    if settings is None and (database is None or hasher is None or api_tokens is None):
        settings = load_settings()

    owns_database = database is None
    db = database or Database(settings.database_path)
    password_hasher = hasher or PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = list(api_tokens if api_tokens is not None else settings.api_tokens)
    directory = UserDirectory(db, password_hasher)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        _initialise_database(db)
        try:
            yield
        finally:
            if owns_database:
                db.close()

    app = FastAPI(
        title="User Directory",
        description="Manage user accounts, credentials and roles",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.database = db
    app.state.directory = directory

    dependencies = []
    if tokens:
        dependencies.append(Depends(TokenAuth(tokens)))
    else:
        logger.warning(
            "No API tokens configured. User management routes are served without authentication;"
            " only do this for local development."
        )

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    router = APIRouter(prefix="/users", dependencies=dependencies)

    @router.get("", response_model=List[UserResponse])
    async def list_users() -> List[UserResponse]:
        summaries = await directory.list_users()
        return [summary_to_response(summary) for summary in summaries]

    @router.post("", response_model=ConfirmationResponse, status_code=status.HTTP_201_CREATED)
    async def create_user(payload: CreateUserRequest) -> ConfirmationResponse:
        confirmation = await directory.create_user(payload.username, payload.password, payload.roles)
        return confirmation_to_response(confirmation)

    @router.patch("/{user_id}", response_model=ConfirmationResponse)
    async def update_user(user_id: int, payload: UpdateUserRequest) -> ConfirmationResponse:
        confirmation = await directory.update_user(
            user_id,
            username=payload.username,
            roles=payload.roles,
            active=payload.active,
            password=payload.password,
        )
        return confirmation_to_response(confirmation)

    @router.delete("/{user_id}", response_model=ConfirmationResponse)
    async def delete_user(user_id: int) -> ConfirmationResponse:
        confirmation = await directory.delete_user(user_id)
        return confirmation_to_response(confirmation)

    app.include_router(router)

    @app.exception_handler(UserDirectoryError)
    async def handle_directory_error(_: Request, exc: UserDirectoryError):
        status_code = status_for_error(exc)
        if status_code >= 500:
            logger.error("User directory failure: %s", exc)
        return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": _describe_validation_error(exc), "code": InvalidInputError.code},
        )

    return app


__all__ = ["create_app", "status_for_error"]
