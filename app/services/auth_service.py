# File: app/services/auth_service.py

"""
Authentication service.

  - User lookup by username / email
  - Registration
  - Password verification
  - Token issuance and refresh-token rotation

Route handlers translate the None / False results here into 401 / 409
responses; nothing in this module knows about HTTP.
"""

import logging
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from app.core.security import CredentialManager
from app.models.user import User
from app.schemas.user import TokenPair, UserCreate

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def find_user(
    db: Session,
    *,
    username: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[User]:
    """
    Look up a login identifier (case-insensitive). The username wins when
    both are given, so the result never depends on row order.
    """
    if username:
        return db.scalars(select(User).where(User.username == username.strip().lower())).first()
    if email:
        return db.scalars(select(User).where(User.email == email.strip().lower())).first()
    return None


def user_exists(db: Session, *, username: str, email: str) -> bool:
    """True if either the username or the email is already taken."""
    clause = or_(User.username == username.strip().lower(), User.email == email.strip().lower())
    return db.scalars(select(User.id).where(clause).limit(1)).first() is not None


def register_user(db: Session, payload: UserCreate) -> User:
    """
    Persist a new user. The password is hashed by the model's
    before_insert listener during commit.

    Callers check for an existing username/email first (user_exists).
    """
    user = User(
        username=payload.username,
        email=payload.email,
        full_name=payload.full_name,
        password=payload.password,
        avatar_url=payload.avatar_url,
        cover_image_url=payload.cover_image_url,
    )
    db.add(user)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info("Registered user id=%s", user.id)
    return user


def authenticate_user(
    db: Session,
    *,
    password: str,
    username: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[User]:
    """
    Returns the user when the password matches, otherwise None. Unknown
    accounts and wrong passwords are indistinguishable to the caller.
    """
    user = find_user(db, username=username, email=email)
    if user is None or not user.verify_password(password):
        return None
    return user


def issue_tokens(db: Session, user: User, manager: CredentialManager) -> TokenPair:
    """Sign a new access/refresh pair and remember the refresh token on the user."""
    tokens = TokenPair(
        access_token=user.issue_access_token(manager),
        refresh_token=user.issue_refresh_token(manager),
    )
    # Unrelated to the password, so the before_update listener leaves the hash alone
    user.refresh_token = tokens.refresh_token
    db.commit()
    db.refresh(user)
    return tokens


def rotate_refresh_token(
    db: Session,
    refresh_token: str,
    manager: CredentialManager,
) -> Optional[tuple[User, TokenPair]]:
    """
    Exchange a refresh token for a new pair. The token must verify with the
    refresh secret and match the one stored for the user.
    """
    claims = manager.decode_refresh_token(refresh_token)
    if not claims or "id" not in claims:
        return None
    user = get_user(db, claims["id"])
    if user is None or user.refresh_token != refresh_token:
        logger.info("Rejected refresh token for user id=%s", claims.get("id"))
        return None

    tokens = TokenPair(
        access_token=user.issue_access_token(manager),
        refresh_token=user.issue_refresh_token(manager),
    )
    # Compare-and-swap: only one of several concurrent refreshes with the
    # same token can match the stored value.
    result = db.execute(
        update(User)
        .where(User.id == user.id, User.refresh_token == refresh_token)
        .values(refresh_token=tokens.refresh_token)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        logger.info("Refresh token for user id=%s was already used", user.id)
        return None
    db.commit()
    db.refresh(user)
    return user, tokens


def revoke_refresh_token(db: Session, user: User) -> None:
    user.refresh_token = None
    db.commit()
