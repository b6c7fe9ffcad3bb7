# File: app/models/user.py

"""
User model.

The password column only ever holds a bcrypt hash once a row is written:
the before_insert / before_update listeners below hash it on the way to the
database, and only when the value actually changed since the last write.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Integer, String, event, func, inspect
from sqlalchemy.orm import Mapped, mapped_column, object_session

from app.core.security import apply_password_hash, get_credential_manager, verify_password
from app.models.base import Base

if TYPE_CHECKING:
    from app.core.security import CredentialManager

# Session.info key for a CredentialManager that overrides the process default
CREDENTIAL_MANAGER_KEY = "credential_manager"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # bcrypt hash (60 chars); plaintext only between assignment and flush
    password: Mapped[str] = mapped_column(String(255), nullable=False)

    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    cover_image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # The one refresh token currently accepted for this user
    refresh_token: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def verify_password(self, attempt: str) -> bool:
        return verify_password(attempt, self.password)

    def issue_access_token(self, manager: Optional["CredentialManager"] = None) -> str:
        return (manager or get_credential_manager()).generate_access_token(self)

    def issue_refresh_token(self, manager: Optional["CredentialManager"] = None) -> str:
        return (manager or get_credential_manager()).generate_refresh_token(self)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


def password_changed(user: User) -> bool:
    """True if `password` differs from the last value written for this row."""
    return inspect(user).attrs.password.history.has_changes()


def bcrypt_rounds_for(user: User) -> int:
    """Cost factor from the session's CredentialManager, else the process one."""
    session = object_session(user)
    manager = session.info.get(CREDENTIAL_MANAGER_KEY) if session is not None else None
    return (manager or get_credential_manager()).config.bcrypt_rounds


@event.listens_for(User, "before_insert")
def hash_password_before_insert(mapper, connection, target: User) -> None:
    # A new row always carries a newly set password
    apply_password_hash(target, True, bcrypt_rounds_for(target))


@event.listens_for(User, "before_update")
def hash_password_before_update(mapper, connection, target: User) -> None:
    apply_password_hash(target, password_changed(target), bcrypt_rounds_for(target))
