# File: app/api/deps.py

from collections.abc import Generator
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core import security
from app.core.security import CredentialManager
from app.db.session import SessionLocal
from app.models.user import CREDENTIAL_MANAGER_KEY, User
from app.services.auth_service import get_user

ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"

bearer_scheme = HTTPBearer(auto_error=False)


def get_credential_manager() -> CredentialManager:
    """Overridden in tests to inject fixed secrets."""
    return security.get_credential_manager()


def get_db(
    manager: CredentialManager = Depends(get_credential_manager),
) -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a SQLAlchemy session.

    The request's CredentialManager rides along in Session.info so the
    password hooks hash with its configured cost factor.

    Usage in route functions:
        db: Session = Depends(get_db)
    """
    db = SessionLocal(info={CREDENTIAL_MANAGER_KEY: manager})
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    manager: CredentialManager = Depends(get_credential_manager),
) -> User:
    """
    Resolve the caller from an access token in the Authorization header,
    falling back to the access_token cookie.
    """
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired access token.",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise unauthorized

    claims = manager.decode_access_token(token)
    if not claims or "id" not in claims:
        raise unauthorized

    user = get_user(db, claims["id"])
    if user is None:
        raise unauthorized
    return user
