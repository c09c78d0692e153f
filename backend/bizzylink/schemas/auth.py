"""
BizzyLink Backend: Authentication Schemas
===========================================
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from bizzylink.schemas.common import USERNAME_PATTERN
from bizzylink.schemas.user import UserPrivate
from bizzylink.security import MAX_PASSWORD_BYTES


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=6)
    email: Optional[EmailStr] = None

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=200)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class TokenPair(BaseModel):
    token: str = Field(description="Access token (send as Authorization: Bearer ...)")
    refresh_token: str = Field(description="Refresh token for POST /api/auth/refresh-token")


class AuthResponse(TokenPair):
    user: UserPrivate
