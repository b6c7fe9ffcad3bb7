# File: app/api/v1/routes_users.py

"""
User account routes: registration, login, token refresh, logout.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_credential_manager,
    get_current_user,
    get_db,
)
from app.core.config import settings
from app.core.security import CredentialManager
from app.models.user import User
from app.schemas.user import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    TokenPair,
    UserCreate,
    UserRead,
)
from app.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_CREDENTIALS = "Invalid username/email or password."
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _set_auth_cookies(response: Response, tokens: TokenPair, manager: CredentialManager) -> None:
    cookie_opts = dict(httponly=True, secure=settings.cookie_secure, samesite="lax")
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=int(manager.config.access_token_lifetime.total_seconds()),
        **cookie_opts,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=int(manager.config.refresh_token_lifetime.total_seconds()),
        **cookie_opts,
    )


async def registration_payload(request: Request) -> UserCreate:
    """
    Registration accepts a JSON body or an HTML form (urlencoded or
    multipart). Both go through UserCreate.
    """
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type in FORM_CONTENT_TYPES:
        form = await request.form()
        # Uploaded files are not stored; only the text fields count
        data = {key: value for key, value in form.items() if isinstance(value, str)}
    else:
        try:
            data = await request.json()
        except json.JSONDecodeError as exc:
            raise RequestValidationError(
                [{"type": "json_invalid", "loc": ("body", exc.pos), "msg": "JSON decode error", "input": {}}]
            )
    try:
        return UserCreate.model_validate(data)
    except PydanticValidationError as exc:
        errors = exc.errors(include_url=False)
        for error in errors:
            error["loc"] = ("body", *error["loc"])
        raise RequestValidationError(errors)


@router.post("/register", response_model=UserRead, summary="Register a new user")
def register(payload: UserCreate = Depends(registration_payload), db: Session = Depends(get_db)):
    if auth_service.user_exists(db, username=payload.username, email=payload.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this username or email already exists.",
        )
    try:
        return auth_service.register_user(db, payload)
    except IntegrityError:
        # Lost a race with a concurrent registration for the same name
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this username or email already exists.",
        )


@router.post("/login", response_model=AuthResponse, summary="Log in and receive tokens")
def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    manager: CredentialManager = Depends(get_credential_manager),
):
    user = auth_service.authenticate_user(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
    )
    if user is None:
        logger.info("Failed login for %s", payload.username or payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    tokens = auth_service.issue_tokens(db, user, manager)
    _set_auth_cookies(response, tokens, manager)
    return AuthResponse(user=UserRead.model_validate(user), **tokens.model_dump())


@router.post("/refresh-token", response_model=TokenPair, summary="Exchange a refresh token")
def refresh_token(
    request: Request,
    response: Response,
    payload: RefreshRequest | None = None,
    db: Session = Depends(get_db),
    manager: CredentialManager = Depends(get_credential_manager),
):
    # An explicit body token wins over the cookie
    token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token missing.")

    rotated = auth_service.rotate_refresh_token(db, token, manager)
    if rotated is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token is invalid, expired or already used.",
        )
    _, tokens = rotated
    _set_auth_cookies(response, tokens, manager)
    return tokens


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Log out")
def logout(
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    auth_service.revoke_refresh_token(db, user)
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    response.delete_cookie(REFRESH_TOKEN_COOKIE)


@router.get("/me", response_model=UserRead, summary="Current user")
def me(user: User = Depends(get_current_user)):
    return user
