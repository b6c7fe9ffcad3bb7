# File: app/core/config.py

import os
import re
from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from app.core.errors import ConfigurationError


class Settings(BaseModel):
    model_config = ConfigDict(validate_default=True)

    # Basic app info
    PROJECT_NAME: str = "User Credential API"
    VERSION: str = "0.1.0"

    api_v1_prefix: str = "/api/v1"
    debug: bool = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")

    # CORS
    backend_cors_origins: List[str] = os.getenv("CORS_ORIGIN", "http://localhost:5173")

    # Auth cookies are HTTPS-only unless explicitly disabled for local dev
    cookie_secure: bool = os.getenv("COOKIE_SECURE", "true").lower() in ("1", "true", "yes")

    # Requests larger than this are rejected before reaching a route (16 KiB)
    max_body_size: int = int(os.getenv("MAX_BODY_SIZE", "16384"))

    static_dir: str = os.getenv("STATIC_DIR", "public")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./app.db")

    # Tokens
    access_token_secret: Optional[str] = os.getenv("ACCESS_TOKEN_SECRET") or None
    access_token_expiry: str = os.getenv("ACCESS_TOKEN_EXPIRY", "15m")
    refresh_token_secret: Optional[str] = os.getenv("REFRESH_TOKEN_SECRET") or None
    refresh_token_expiry: str = os.getenv("REFRESH_TOKEN_EXPIRY", "7d")
    algorithm: str = "HS256"

    # Password hashing cost factor
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

    @field_validator("backend_cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return v
        return []


_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([a-z]*)$", re.IGNORECASE)

_UNIT_SECONDS = {
    "ms": 0.001, "msec": 0.001, "msecs": 0.001,
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "d": 86400, "day": 86400, "days": 86400,
    "w": 604800, "week": 604800, "weeks": 604800,
    "y": 31557600, "yr": 31557600, "yrs": 31557600, "year": 31557600, "years": 31557600,
}


def parse_duration(value: str | int | timedelta) -> timedelta:
    """
    Convert an expiry setting into a timedelta.

    Accepts "15m", "7d", "12 hours", "90" (bare numbers are seconds) and
    plain ints. Raises ConfigurationError for anything else, or for a
    duration that is not positive.
    """
    if isinstance(value, timedelta):
        delta = value
    elif isinstance(value, int) and not isinstance(value, bool):
        delta = timedelta(seconds=value)
    elif isinstance(value, str):
        match = _DURATION_RE.match(value.strip())
        if not match:
            raise ConfigurationError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        unit = unit.lower() or "s"
        if unit not in _UNIT_SECONDS:
            raise ConfigurationError(f"Unknown duration unit {unit!r} in {value!r}")
        delta = timedelta(seconds=float(amount) * _UNIT_SECONDS[unit])
    else:
        raise ConfigurationError(f"Invalid duration: {value!r}")

    if delta <= timedelta(0):
        raise ConfigurationError(f"Duration must be positive: {value!r}")
    return delta


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
