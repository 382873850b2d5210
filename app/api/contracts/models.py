"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from app.auth.models import PublicUser


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]
    storage: Literal["mongodb", "file"]


class AuthSessionResponse(BaseModel):
    """Authentication session response payload."""

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int
    refresh_expires_in: int
    user: PublicUser


class AuthMeResponse(BaseModel):
    """Current user endpoint response payload."""

    user: PublicUser


class MessageResponse(BaseModel):
    """Plain acknowledgement payload."""

    status: Literal["ok"]
    message: str
