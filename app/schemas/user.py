# File: app/schemas/user.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


class UserBase(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("username", "full_name", mode="before")
    @classmethod
    def strip_blank(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("username")
    @classmethod
    def lowercase_username(cls, v: str) -> str:
        return v.lower()

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UserCreate(UserBase):
    # bcrypt only reads 72 bytes; hash_password enforces the byte limit
    password: str = Field(..., min_length=1, max_length=72)
    avatar_url: Optional[str] = None
    cover_image_url: Optional[str] = None


class UserRead(BaseModel):
    id: int
    username: str
    email: EmailStr
    full_name: str
    avatar_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str

    @model_validator(mode="after")
    def require_identifier(self):
        if not (self.username or self.email):
            raise ValueError("username or email is required")
        return self


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenPair):
    user: UserRead
