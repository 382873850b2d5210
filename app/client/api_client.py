"""Async HTTP client that silently renews the session once on 401."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
AUTH_PATH_MARKER = "/auth/"
REFRESH_PATH = "/auth/refresh-token"


class ApiClientError(Exception):
    """Request failed with an HTTP error response."""

    def __init__(self, message: str, *, status: int, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data

    @property
    def error_code(self) -> str:
        if isinstance(self.data, dict):
            return str(self.data.get("error_code") or "")
        return ""


class SessionExpiredError(ApiClientError):
    """A 401 could not be cured by refreshing the session."""


class NetworkError(ApiClientError):
    """No usable response: timeout, connection failure or protocol error."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=0)


@dataclass
class RequestSpec:
    """One logical request; ``retried`` is local to this request only."""

    method: str
    path: str
    json: Any = None
    params: dict[str, Any] | None = None
    retried: bool = field(default=False, compare=False)


SessionListener = Callable[[dict[str, Any] | None], Awaitable[None] | None]


def is_auth_endpoint(path: str) -> bool:
    return AUTH_PATH_MARKER in path


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    try:
        data = response.json()
    except ValueError:
        data = None
    message = ""
    if isinstance(data, dict):
        message = str(data.get("message") or "")
    return message or f"Request failed with status {response.status_code}", data


class ApiClient:
    """JSON API client keeping session cookies in its own jar.

    Cancelling the task awaiting ``request`` aborts the in-flight HTTP call.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._on_refreshed: list[SessionListener] = []
        self._on_expired: list[SessionListener] = []

    def add_session_listeners(
        self,
        *,
        on_refreshed: SessionListener | None = None,
        on_expired: SessionListener | None = None,
    ) -> None:
        if on_refreshed is not None:
            self._on_refreshed.append(on_refreshed)
        if on_expired is not None:
            self._on_expired.append(on_expired)

    async def _notify(self, listeners: list[SessionListener], user: dict[str, Any] | None) -> None:
        for listener in listeners:
            result = listener(user)
            if result is not None:
                await result

    async def _send(self, req: RequestSpec) -> httpx.Response:
        try:
            return await self._client.request(
                req.method, req.path, json=req.json, params=req.params
            )
        except httpx.TimeoutException as exc:
            LOGGER.warning("api_request_timeout %s %s", req.method, req.path)
            raise NetworkError("Request timed out") from exc
        except httpx.TransportError as exc:
            LOGGER.warning("api_request_no_response %s %s", req.method, req.path)
            raise NetworkError("No response from server") from exc

    async def execute(self, req: RequestSpec) -> Any:
        """Run ``req``; on a first 401 from a non-auth path renew and replay once."""
        response = await self._send(req)
        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                raise ApiClientError(
                    "Invalid JSON in response", status=response.status_code
                ) from exc

        message, data = _error_message(response)
        error = ApiClientError(message, status=response.status_code, data=data)
        if (
            response.status_code != 401
            or req.retried
            or is_auth_endpoint(req.path)
        ):
            LOGGER.info(
                "api_request_failed %s %s status=%s",
                req.method,
                req.path,
                response.status_code,
            )
            raise error

        req.retried = True
        user = await self.refresh_session()
        if user is None:
            await self._notify(self._on_expired, None)
            raise SessionExpiredError(message, status=401, data=data) from error
        return await self.execute(req)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return await self.execute(
            RequestSpec(method=method.upper(), path=path, json=json, params=params)
        )

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, *, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, *, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def refresh_session(self) -> dict[str, Any] | None:
        """Call the refresh endpoint once; return the user or ``None`` on failure."""
        try:
            payload = await self.execute(RequestSpec(method="POST", path=REFRESH_PATH))
        except ApiClientError as exc:
            LOGGER.info("session_refresh_failed status=%s", exc.status)
            return None
        user = payload.get("user") if isinstance(payload, dict) else None
        await self._notify(self._on_refreshed, user)
        return user if isinstance(user, dict) else {}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
