"""Role capability checks for protected routes."""

from __future__ import annotations

from typing import Callable, Iterable

from fastapi import Request

from app.api.errors import AuthenticationError, AuthorizationError, ApiErrorCode
from app.auth.models import User


def is_role_permitted(permitted_roles: Iterable[str], role: str) -> bool:
    """Return whether ``role`` is one of ``permitted_roles``."""
    return role in set(permitted_roles)


def current_user(request: Request) -> User:
    """Return the user attached by the auth middleware."""
    user = getattr(request.state, "user", None)
    if not isinstance(user, User):
        raise AuthenticationError(
            "Not authorized to access this route",
            error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
        )
    return user


def require_roles(permitted_roles: Iterable[str]) -> Callable[[Request], User]:
    """Build a dependency allowing only the given roles."""
    allowed = frozenset(permitted_roles)

    def dependency(request: Request) -> User:
        user = current_user(request)
        if not is_role_permitted(allowed, user.role):
            raise AuthorizationError(
                f"User role {user.role} is not authorized to access this route"
            )
        return user

    return dependency
