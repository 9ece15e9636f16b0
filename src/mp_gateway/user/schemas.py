"""Pydantic request/response schemas for registration and token exchange."""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

_PASSWORD_RULES = (
    (r"[A-Z]", "an uppercase letter"),
    (r"[a-z]", "a lowercase letter"),
    (r"\d", "a digit"),
)


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    display_name: str | None = Field(None, max_length=128)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        """At least one uppercase letter, one lowercase letter and one digit."""
        for pattern, what in _PASSWORD_RULES:
            if not re.search(pattern, v):
                raise ValueError(f"Password must contain {what}")
        return v


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UserInfo(BaseModel):
    user_id: str
    username: str
    email: str
    display_name: str | None = None


class RegisterResponse(UserInfo):
    created_at: str


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int  # seconds
    user: UserInfo


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int
