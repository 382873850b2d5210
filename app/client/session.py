"""Client-side session state mirroring the server's auth lifecycle."""

from __future__ import annotations

import logging
from typing import Any, Callable

from app.client.api_client import ApiClient, ApiClientError
from app.client.calls import CallSite

LOGGER = logging.getLogger(__name__)

Navigate = Callable[[str], None]


def _no_navigation(path: str) -> None:
    return None


class SessionCoordinator:
    """Holds the current user and keeps it in step with the server session.

    ``on_navigation`` should be called whenever the visible location changes;
    the user is re-derived from ``/auth/me`` only when it actually changed.
    """

    def __init__(
        self,
        api: ApiClient,
        *,
        navigate: Navigate = _no_navigation,
        home_path: str = "/",
        login_path: str = "/login",
    ) -> None:
        self._api = api
        self._navigate = navigate
        self._home_path = home_path
        self._login_path = login_path
        self._location: str | None = None
        self._check_call: CallSite[dict[str, Any] | None] = CallSite()
        self.current_user: dict[str, Any] | None = None
        self.is_loading = True
        api.add_session_listeners(
            on_refreshed=self._handle_refreshed,
            on_expired=self._handle_expired,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    def _handle_refreshed(self, user: dict[str, Any] | None) -> None:
        if user:
            self.current_user = user

    def _handle_expired(self, _user: dict[str, Any] | None) -> None:
        LOGGER.info("session_expired")
        self.current_user = None
        self._navigate(self._login_path)

    async def check_session(self) -> dict[str, Any] | None:
        """Ask the server who we are; fall back to one refresh on 401."""
        self.is_loading = True
        try:
            payload = await self._api.get("/auth/me")
            self.current_user = payload.get("user") if isinstance(payload, dict) else None
        except ApiClientError as exc:
            if exc.status == 401:
                if not await self.refresh():
                    self.current_user = None
            else:
                LOGGER.warning("session_check_failed status=%s", exc.status)
                self.current_user = None
        finally:
            self.is_loading = False
        return self.current_user

    async def on_navigation(self, location: str) -> dict[str, Any] | None:
        if location == self._location:
            return self.current_user
        self._location = location
        await self._check_call.execute(self.check_session)
        return self.current_user

    async def refresh(self) -> bool:
        """Rotate the session explicitly; clears the user on failure."""
        user = await self._api.refresh_session()
        if user is None:
            self.current_user = None
            return False
        return True

    async def login(
        self, email: str, password: str, *, redirect_to: str | None = None
    ) -> dict[str, Any]:
        self.is_loading = True
        try:
            payload = await self._api.post(
                "/auth/login", json={"email": email, "password": password}
            )
        except ApiClientError:
            self.current_user = None
            raise
        finally:
            self.is_loading = False
        self.current_user = payload["user"]
        self._navigate(redirect_to or self._home_path)
        return self.current_user

    async def register(self, name: str, email: str, password: str) -> dict[str, Any]:
        self.is_loading = True
        try:
            payload = await self._api.post(
                "/auth/register",
                json={"name": name, "email": email, "password": password},
            )
        except ApiClientError:
            self.current_user = None
            raise
        finally:
            self.is_loading = False
        self.current_user = payload["user"]
        self._navigate(self._home_path)
        return self.current_user

    async def logout(self) -> None:
        """Best-effort server logout; local state is cleared regardless."""
        try:
            await self._api.post("/auth/logout")
        except ApiClientError as exc:
            LOGGER.warning("logout_request_failed status=%s", exc.status)
        finally:
            self.current_user = None
            self._navigate(self._login_path)

    def close(self) -> None:
        """Cancel any in-flight session check."""
        self._check_call.cancel()
