"""Pydantic models for authentication domain."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

Role = Literal["user", "publisher", "admin"]

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"


class User(BaseModel):
    """Persisted user record, including fields never sent to clients."""

    user_id: str
    email: str
    name: str
    password_hash: str
    role: Role = "user"
    is_email_verified: bool = False
    is_active: bool = True
    last_login_at: int | None = None
    password_changed_at: int | None = None
    created_at: int = 0
    updated_at: int = 0

    refresh_token_hash: str | None = None
    refresh_token_expires_at: int | None = None
    password_reset_token_hash: str | None = None
    password_reset_expires_at: int | None = None
    email_verification_token_hash: str | None = None
    email_verification_expires_at: int | None = None
    failed_login_attempts: int = 0
    account_locked_until: int | None = None

    def to_public(self) -> "PublicUser":
        """Project the record onto client-safe fields."""
        return PublicUser(
            id=self.user_id,
            name=self.name,
            email=self.email,
            role=self.role,
            is_email_verified=self.is_email_verified,
            is_active=self.is_active,
            last_login_at=self.last_login_at,
            created_at=self.created_at,
        )


class PublicUser(BaseModel):
    """Client-visible user fields."""

    id: str
    name: str
    email: str
    role: Role
    is_email_verified: bool
    is_active: bool
    last_login_at: int | None = None
    created_at: int = 0


class RegisterRequest(BaseModel):
    """Registration request payload."""

    name: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)
    role: Literal["user", "publisher"] = "user"

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value


class LoginRequest(BaseModel):
    """Login request payload."""

    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    """Refresh request payload; the cookie is used when the body omits it."""

    refresh_token: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254, pattern=EMAIL_PATTERN)


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=8, max_length=128)


class UpdatePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


class UpdateDetailsRequest(BaseModel):
    """Profile update payload; omitted fields stay unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=50)
    email: str | None = Field(
        default=None, min_length=3, max_length=254, pattern=EMAIL_PATTERN
    )


class AuthSession(BaseModel):
    """Auth session response payload with tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_expires_in: int
    user: PublicUser
