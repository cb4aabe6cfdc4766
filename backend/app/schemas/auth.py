"""
Auth request/response schemas.
"""
from datetime import datetime

from pydantic import BaseModel, EmailStr, field_validator


def _bcrypt_limit(v: str) -> str:
    if len(v.encode("utf-8")) > 72:
        raise ValueError("Password must be at most 72 bytes (bcrypt limit)")
    return v


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _bcrypt_limit(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _bcrypt_limit(v)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class UserUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are applied. role is admin-only."""
    name: str | None = None
    email: EmailStr | None = None
    password: str | None = None
    role: str | None = None

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str | None) -> str | None:
        return _bcrypt_limit(v) if v is not None else v


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
