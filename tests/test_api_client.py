from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any

import httpx
import pytest

from app.client.api_client import (
    ApiClient,
    ApiClientError,
    NetworkError,
    SessionExpiredError,
    is_auth_endpoint,
)

BASE_URL = "http://blog.test/api"
REFRESH = "/api/auth/refresh-token"


def _unauthorized() -> httpx.Response:
    return httpx.Response(
        401, json={"error_code": "AUTH_TOKEN_EXPIRED", "message": "Access token expired"}
    )


def _client(handler) -> ApiClient:
    return ApiClient(BASE_URL, transport=httpx.MockTransport(handler))


def test_is_auth_endpoint() -> None:
    assert is_auth_endpoint("/auth/me") is True
    assert is_auth_endpoint("/posts") is False


def test_first_401_refreshes_once_and_replays_identical_request() -> None:
    calls: list[tuple[str, str, bytes, str]] = []
    state = {"refreshed": False}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(
            (request.method, request.url.path, request.content, request.url.query.decode())
        )
        if request.url.path == REFRESH:
            state["refreshed"] = True
            return httpx.Response(200, json={"user": {"id": "u1"}})
        if not state["refreshed"]:
            return _unauthorized()
        return httpx.Response(200, json={"ok": True})

    refreshed: list[Any] = []

    async def scenario() -> Any:
        async with _client(handler) as client:
            client.add_session_listeners(on_refreshed=refreshed.append)
            return await client.request(
                "PUT", "/posts/7", json={"title": "New"}, params={"draft": "1"}
            )

    result = asyncio.run(scenario())

    assert result == {"ok": True}
    assert [path for _, path, _, _ in calls] == ["/api/posts/7", REFRESH, "/api/posts/7"]
    assert calls[0] == calls[2]
    assert refreshed == [{"id": "u1"}]


def test_failed_refresh_raises_session_expired_without_looping() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == REFRESH:
            return httpx.Response(
                401,
                json={"error_code": "AUTH_INVALID_REFRESH_TOKEN", "message": "gone"},
            )
        return _unauthorized()

    expired: list[Any] = []

    async def scenario() -> None:
        async with _client(handler) as client:
            client.add_session_listeners(on_expired=expired.append)
            await client.get("/posts")

    with pytest.raises(SessionExpiredError) as exc:
        asyncio.run(scenario())

    assert paths == ["/api/posts", REFRESH]
    assert exc.value.status == 401
    assert exc.value.message == "Access token expired"
    assert exc.value.error_code == "AUTH_TOKEN_EXPIRED"
    assert expired == [None]


def test_replayed_request_is_not_retried_again() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == REFRESH:
            return httpx.Response(200, json={"user": {"id": "u1"}})
        return _unauthorized()

    async def scenario() -> None:
        async with _client(handler) as client:
            await client.get("/posts")

    with pytest.raises(ApiClientError) as exc:
        asyncio.run(scenario())

    assert not isinstance(exc.value, SessionExpiredError)
    assert paths == ["/api/posts", REFRESH, "/api/posts"]


def test_auth_endpoints_are_never_retried() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return _unauthorized()

    async def scenario() -> None:
        async with _client(handler) as client:
            await client.get("/auth/me")

    with pytest.raises(ApiClientError) as exc:
        asyncio.run(scenario())

    assert exc.value.status == 401
    assert paths == ["/api/auth/me"]


def test_retry_marker_is_per_request_under_concurrency() -> None:
    seen: Counter[str] = Counter()

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        seen[path] += 1
        if path == REFRESH:
            return httpx.Response(200, json={"user": {"id": "u1"}})
        if seen[path] == 1:
            return _unauthorized()
        return httpx.Response(200, json={"path": path})

    async def scenario() -> list[Any]:
        async with _client(handler) as client:
            return await asyncio.gather(client.get("/posts"), client.get("/categories"))

    results = asyncio.run(scenario())

    assert results == [{"path": "/api/posts"}, {"path": "/api/categories"}]
    assert seen["/api/posts"] == 2
    assert seen["/api/categories"] == 2
    assert seen[REFRESH] == 2


def test_non_401_errors_carry_envelope() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            403, json={"error_code": "AUTH_FORBIDDEN", "message": "Role not allowed"}
        )

    async def scenario() -> None:
        async with _client(handler) as client:
            await client.delete("/posts/1")

    with pytest.raises(ApiClientError) as exc:
        asyncio.run(scenario())

    assert exc.value.status == 403
    assert exc.value.error_code == "AUTH_FORBIDDEN"
    assert str(exc.value) == "Role not allowed"


def test_error_without_json_body_gets_generic_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad gateway")

    async def scenario() -> None:
        async with _client(handler) as client:
            await client.get("/posts")

    with pytest.raises(ApiClientError) as exc:
        asyncio.run(scenario())

    assert exc.value.message == "Request failed with status 502"
    assert exc.value.error_code == ""


def test_success_with_non_json_body_raises_client_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    async def scenario() -> None:
        async with _client(handler) as client:
            await client.get("/posts")

    with pytest.raises(ApiClientError) as exc:
        asyncio.run(scenario())

    assert exc.value.status == 200
    assert exc.value.message == "Invalid JSON in response"


@pytest.mark.parametrize(
    ("error_type", "message"),
    [(httpx.ReadTimeout, "Request timed out"), (httpx.ConnectError, "No response from server")],
)
def test_transport_failures_raise_network_error(error_type, message: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise error_type("boom", request=request)

    async def scenario() -> None:
        async with _client(handler) as client:
            await client.get("/posts")

    with pytest.raises(NetworkError) as exc:
        asyncio.run(scenario())

    assert exc.value.status == 0
    assert exc.value.message == message


def test_cancelling_caller_aborts_in_flight_request() -> None:
    aborted: list[bool] = []
    started: list[asyncio.Event] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        started[0].set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            aborted.append(True)
            raise
        return httpx.Response(200, json={})

    async def scenario() -> None:
        started.append(asyncio.Event())
        async with _client(handler) as client:
            task = asyncio.create_task(client.get("/posts"))
            await started[0].wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

    asyncio.run(scenario())

    assert aborted == [True]
