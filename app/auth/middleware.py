"""HTTP middleware that enforces auth on protected API routes."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool

from app.api.errors import AuthenticationError
from app.api.http_setup import error_response
from app.auth.cookies import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, SessionCookies
from app.auth.service import AuthService

LOGGER = logging.getLogger(__name__)

PUBLIC_AUTH_PATHS = {
    "/auth/register",
    "/auth/login",
    "/auth/refresh-token",
    "/auth/forgotpassword",
}
PUBLIC_AUTH_PREFIXES = ("/auth/verify-email/", "/auth/resetpassword/")


def _extract_bearer_token(authorization: str) -> str:
    """Extract bearer token from authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def requires_auth(path: str, api_prefix: str) -> bool:
    """Return whether ``path`` is an API route that needs a session."""
    if path != api_prefix and not path.startswith(f"{api_prefix}/"):
        return False
    local = path[len(api_prefix):] or "/"
    if local == "/health":
        return False
    if local in PUBLIC_AUTH_PATHS:
        return False
    return not local.startswith(PUBLIC_AUTH_PREFIXES)


def _sets_session_cookie(response: Response) -> bool:
    for header in response.headers.getlist("set-cookie"):
        name = header.split("=", 1)[0].strip()
        if name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
            return True
    return False


def create_auth_middleware(
    service: AuthService, cookies: SessionCookies, *, api_prefix: str
) -> Callable:
    """Create middleware function that validates sessions on protected paths."""

    async def auth_middleware(request: Request, call_next: Callable):
        """Authenticate protected requests, renewing the session when possible."""
        if not requires_auth(request.url.path, api_prefix):
            return await call_next(request)

        access_token = _extract_bearer_token(
            request.headers.get("authorization", "")
        ) or request.cookies.get(ACCESS_TOKEN_COOKIE, "")
        refresh_token = request.cookies.get(REFRESH_TOKEN_COOKIE, "")

        try:
            result = await run_in_threadpool(
                service.authenticate,
                access_token=access_token,
                refresh_token=refresh_token,
            )
        except AuthenticationError as exc:
            LOGGER.info(
                "auth_rejected",
                extra={"path": request.url.path, "error_code": exc.error_code},
            )
            return error_response(
                exc.status_code,
                exc.error_code,
                exc.message,
                clear_cookies=cookies if exc.clear_session else None,
            )

        request.state.user = result.user
        response = await call_next(request)
        if result.renewed_session is not None and not _sets_session_cookie(response):
            cookies.set_session(response, result.renewed_session)
        return response

    return auth_middleware
