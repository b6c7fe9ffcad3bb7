# File: app/core/security.py

"""
Credential handling for user accounts.

  - Password hashing and verification (bcrypt, salted, cost factor 10)
  - The pre-persist step that hashes a password only when it changed
  - Access / refresh JWT issuance and decoding (python-jose, HS256)

Access and refresh tokens are signed with different secrets, so a leaked
refresh secret cannot mint access tokens and vice versa.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Callable, Optional, Protocol

import bcrypt
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

from app.core.config import Settings, parse_duration, settings
from app.core.errors import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = settings.bcrypt_rounds
# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


class CredentialHolder(Protocol):
    id: Optional[int]
    username: str
    email: str
    full_name: str
    password: str


# ----------------------------------------------------
# Passwords
# ----------------------------------------------------
def hash_password(plaintext: str, rounds: int = BCRYPT_ROUNDS) -> str:
    if not isinstance(plaintext, str) or not plaintext:
        raise ValidationError("Password is required.")
    encoded = plaintext.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes.")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(attempt: str, stored_hash: Optional[str]) -> bool:
    """
    Check a plaintext attempt against a stored bcrypt hash.

    Every kind of failure comes back as False so callers cannot tell a wrong
    password from a broken hash.
    """
    if not attempt or not stored_hash:
        return False
    encoded = attempt.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        # Could never have been hashed, so it cannot match
        return False
    try:
        return bcrypt.checkpw(encoded, stored_hash.encode("utf-8"))
    except ValueError:
        # e.g. "Invalid salt" for a value that was never a bcrypt hash
        logger.warning("Stored password hash is malformed; rejecting login attempt")
        return False


def apply_password_hash(
    record: CredentialHolder,
    password_changed: bool,
    rounds: int = BCRYPT_ROUNDS,
) -> bool:
    """
    Replace record.password with its hash if the persistence layer reports
    the field changed since the last write. Returns whether it hashed.

    Errors propagate so the write is aborted instead of storing plaintext.
    """
    if not password_changed:
        return False
    record.password = hash_password(record.password, rounds)
    return True


# ----------------------------------------------------
# Tokens
# ----------------------------------------------------
class TokenConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token_secret: Optional[str] = None
    access_token_lifetime: timedelta = timedelta(minutes=15)
    refresh_token_secret: Optional[str] = None
    refresh_token_lifetime: timedelta = timedelta(days=7)
    algorithm: str = "HS256"
    bcrypt_rounds: int = BCRYPT_ROUNDS

    @classmethod
    def from_settings(cls, s: Settings) -> "TokenConfig":
        return cls(
            access_token_secret=s.access_token_secret,
            access_token_lifetime=parse_duration(s.access_token_expiry),
            refresh_token_secret=s.refresh_token_secret,
            refresh_token_lifetime=parse_duration(s.refresh_token_expiry),
            algorithm=s.algorithm,
            bcrypt_rounds=s.bcrypt_rounds,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialManager:
    """
    Hashes, verifies and issues credentials for user records.

    Built once from a TokenConfig. Secrets are checked when a token is
    requested, so a process missing ACCESS_TOKEN_SECRET can still start and
    hash passwords, but will refuse to sign anything.
    """

    def __init__(
        self,
        config: TokenConfig,
        *,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        if config.refresh_token_lifetime <= config.access_token_lifetime:
            raise ConfigurationError(
                "REFRESH_TOKEN_EXPIRY must be longer than ACCESS_TOKEN_EXPIRY."
            )
        if (
            config.access_token_secret
            and config.access_token_secret == config.refresh_token_secret
        ):
            raise ConfigurationError(
                "ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ."
            )
        self.config = config
        self._now = now

    # ---------- passwords ----------
    def hash_secret(self, plaintext: str) -> str:
        return hash_password(plaintext, self.config.bcrypt_rounds)

    def verify_secret(self, attempt: str, stored_hash: Optional[str]) -> bool:
        return verify_password(attempt, stored_hash)

    # ---------- issuance ----------
    def generate_access_token(self, user: CredentialHolder) -> str:
        claims = {
            "id": _require(user, "id"),
            "username": _require(user, "username"),
            "email": _require(user, "email"),
            "full_name": _require(user, "full_name"),
        }
        return self._sign(
            claims,
            self.config.access_token_secret,
            self.config.access_token_lifetime,
            "ACCESS_TOKEN_SECRET",
        )

    def generate_refresh_token(self, user: CredentialHolder) -> str:
        # Only the id: this token lives for days and is only good for
        # getting a new access token. jti keeps rotated tokens distinct.
        claims = {"id": _require(user, "id"), "jti": uuid.uuid4().hex}
        return self._sign(
            claims,
            self.config.refresh_token_secret,
            self.config.refresh_token_lifetime,
            "REFRESH_TOKEN_SECRET",
        )

    def _sign(
        self,
        claims: dict[str, Any],
        secret: Optional[str],
        lifetime: timedelta,
        secret_name: str,
    ) -> str:
        if not secret:
            logger.error("Refusing to issue token: %s is not configured", secret_name)
            raise ConfigurationError(f"{secret_name} is not configured.")
        issued_at = self._now()
        to_encode = dict(claims, iat=issued_at, exp=issued_at + lifetime)
        return jwt.encode(to_encode, secret, algorithm=self.config.algorithm)

    # ---------- decoding ----------
    def decode_access_token(self, token: str) -> Optional[dict[str, Any]]:
        return self._decode(token, self.config.access_token_secret)

    def decode_refresh_token(self, token: str) -> Optional[dict[str, Any]]:
        return self._decode(token, self.config.refresh_token_secret)

    def _decode(self, token: str, secret: Optional[str]) -> Optional[dict[str, Any]]:
        if not token or not secret:
            return None
        try:
            return jwt.decode(token, secret, algorithms=[self.config.algorithm])
        except JWTError:
            return None


def _require(user: CredentialHolder, field: str) -> Any:
    value = getattr(user, field, None)
    if value is None or value == "":
        raise ValidationError(f"Cannot issue token: user has no {field}.")
    return value


@lru_cache
def get_credential_manager() -> CredentialManager:
    return CredentialManager(TokenConfig.from_settings(settings))
