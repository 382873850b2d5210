from __future__ import annotations

from typing import Any

import pytest
from starlette.requests import Request

from app.api.errors import ApiErrorCode, AuthenticationError, AuthorizationError
from app.auth.permissions import current_user, is_role_permitted, require_roles
from tests.auth_fakes import make_user


def _request(user: Any = None) -> Request:
    request = Request({"type": "http", "method": "GET", "path": "/api/posts", "headers": []})
    if user is not None:
        request.state.user = user
    return request


def test_is_role_permitted() -> None:
    assert is_role_permitted({"publisher", "admin"}, "admin") is True
    assert is_role_permitted(["publisher", "admin"], "user") is False
    assert is_role_permitted([], "admin") is False


def test_require_roles_allows_listed_role() -> None:
    dependency = require_roles(["publisher", "admin"])
    user = make_user(role="publisher")

    assert dependency(_request(user)) is user


def test_require_roles_denies_other_roles() -> None:
    dependency = require_roles(["admin"])

    with pytest.raises(AuthorizationError) as exc:
        dependency(_request(make_user(role="user")))

    assert exc.value.status_code == 403
    assert exc.value.error_code == ApiErrorCode.AUTH_FORBIDDEN
    assert "user" in exc.value.message


def test_current_user_requires_authenticated_request() -> None:
    with pytest.raises(AuthenticationError) as exc:
        current_user(_request())

    assert exc.value.error_code == ApiErrorCode.AUTH_MISSING_TOKEN
