"""Session cookie writer for access and refresh tokens."""

from __future__ import annotations

from typing import Literal, cast

from starlette.responses import Response

from app.auth.models import AuthSession
from app.core.config import AuthConfig, CookieConfig

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"


class SessionCookies:
    """Sets and clears the two httpOnly session cookies."""

    def __init__(self, cookie_config: CookieConfig, auth_config: AuthConfig) -> None:
        self._cookies = cookie_config
        self._auth = auth_config

    @property
    def _samesite(self) -> Literal["lax", "strict", "none"]:
        value = self._cookies.samesite
        if value not in {"lax", "strict", "none"}:
            value = "strict"
        return cast(Literal["lax", "strict", "none"], value)

    def _set(self, response: Response, name: str, value: str, max_age: int) -> None:
        response.set_cookie(
            key=name,
            value=value,
            max_age=max_age,
            path=self._cookies.path,
            domain=self._cookies.domain,
            secure=self._cookies.secure,
            httponly=True,
            samesite=self._samesite,
        )

    def set_session(self, response: Response, session: AuthSession) -> None:
        self._set(
            response,
            ACCESS_TOKEN_COOKIE,
            session.access_token,
            self._auth.access_token_ttl_seconds,
        )
        self._set(
            response,
            REFRESH_TOKEN_COOKIE,
            session.refresh_token,
            self._auth.refresh_token_ttl_seconds,
        )

    def clear(self, response: Response) -> None:
        """Expire both cookies with the attributes they were set with."""
        for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
            response.delete_cookie(
                key=name,
                path=self._cookies.path,
                domain=self._cookies.domain,
                secure=self._cookies.secure,
                httponly=True,
                samesite=self._samesite,
            )
