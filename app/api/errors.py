"""Shared API error types and helpers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_INVALID_REFRESH_TOKEN = "AUTH_INVALID_REFRESH_TOKEN"
    AUTH_ACCOUNT_LOCKED = "AUTH_ACCOUNT_LOCKED"
    AUTH_ACCOUNT_INACTIVE = "AUTH_ACCOUNT_INACTIVE"
    AUTH_EMAIL_NOT_VERIFIED = "AUTH_EMAIL_NOT_VERIFIED"
    AUTH_PASSWORD_CHANGED = "AUTH_PASSWORD_CHANGED"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    AUTH_EMAIL_TAKEN = "AUTH_EMAIL_TAKEN"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    EMAIL_DELIVERY_FAILED = "EMAIL_DELIVERY_FAILED"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self, *, status_code: int, error_code: ApiErrorCode, message: str
    ) -> None:
        """Build an HTTP exception with standard detail structure."""
        super().__init__(
            status_code=status_code,
            detail={"error_code": str(error_code), "message": message},
        )
        self.error_code = error_code
        self.message = message


class ValidationError(ApiError):
    """Malformed or unacceptable input."""

    def __init__(
        self, message: str, *, error_code: ApiErrorCode = ApiErrorCode.VALIDATION_ERROR
    ) -> None:
        super().__init__(status_code=400, error_code=error_code, message=message)


class AuthenticationError(ApiError):
    """Missing, invalid or expired credentials.

    ``clear_session`` asks the HTTP layer to expire both session cookies so
    the client stops presenting a dead credential.
    """

    def __init__(
        self,
        message: str,
        *,
        error_code: ApiErrorCode = ApiErrorCode.AUTH_TOKEN_INVALID,
        clear_session: bool = False,
    ) -> None:
        super().__init__(status_code=401, error_code=error_code, message=message)
        self.clear_session = clear_session


class InvalidRefreshToken(AuthenticationError):
    """Refresh token unknown, expired or already rotated."""

    def __init__(self, message: str = "Invalid or expired refresh token") -> None:
        super().__init__(
            message,
            error_code=ApiErrorCode.AUTH_INVALID_REFRESH_TOKEN,
            clear_session=True,
        )


class AuthorizationError(ApiError):
    """Authenticated, but the role is not permitted."""

    def __init__(self, message: str) -> None:
        super().__init__(
            status_code=403, error_code=ApiErrorCode.AUTH_FORBIDDEN, message=message
        )


class NotFoundError(ApiError):
    def __init__(
        self, message: str, *, error_code: ApiErrorCode = ApiErrorCode.USER_NOT_FOUND
    ) -> None:
        super().__init__(status_code=404, error_code=error_code, message=message)


class InternalError(ApiError):
    """Unexpected server-side failure; the message is safe to show."""

    def __init__(
        self,
        message: str = "Internal server error",
        *,
        error_code: ApiErrorCode = ApiErrorCode.INTERNAL_SERVER_ERROR,
    ) -> None:
        super().__init__(status_code=500, error_code=error_code, message=message)


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }
