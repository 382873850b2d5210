"""Request perimeter wiring: correlation ids, body limits and error envelopes."""

from __future__ import annotations

import time
import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.contracts import ApiErrorResponse
from app.api.errors import ApiErrorCode, to_error_payload
from app.auth.cookies import SessionCookies
from app.core.config import AppConfig
from app.core.logging import set_correlation_id


def error_response(
    status_code: int,
    error_code: str,
    message: str,
    *,
    clear_cookies: SessionCookies | None = None,
) -> JSONResponse:
    """Render the error envelope, optionally expiring both session cookies."""
    response = JSONResponse(
        status_code=status_code,
        content=ApiErrorResponse(error_code=error_code, message=message).model_dump(),
    )
    if clear_cookies is not None:
        clear_cookies.clear(response)
    return response


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length") or 0)
    except ValueError:
        return 0


def _request_id(request: Request) -> str:
    return (
        request.headers.get("x-request-id")
        or request.headers.get("x-correlation-id")
        or uuid.uuid4().hex
    )


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())[1:]) or "body"
        messages.append(f"{field}: {error.get('msg', 'invalid value')}")
    return "; ".join(messages) or "Invalid request"


def register_http_middleware(app: FastAPI, *, config: AppConfig, logger: Any) -> None:
    """Attach body size limiting and per-request logging."""
    max_bytes = config.security.request_max_bytes
    auth_prefix = f"{config.server.api_prefix}/auth/"

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        if _declared_length(request) > max_bytes:
            return error_response(
                413,
                ApiErrorCode.REQUEST_TOO_LARGE,
                f"Request size exceeds configured limit ({max_bytes} bytes).",
            )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = _request_id(request)
        set_correlation_id(correlation_id)
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        # Auth responses carry tokens.
        if request.url.path.startswith(auth_prefix):
            response.headers["Cache-Control"] = "no-store"
        user = getattr(request.state, "user", None)
        logger.info(
            "request_completed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "user_id": getattr(user, "user_id", None),
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return response


def register_exception_handlers(
    app: FastAPI, *, logger: Any, cookies: SessionCookies
) -> None:
    """Map exceptions onto the error envelope; details of 500s stay server-side."""

    @app.exception_handler(HTTPException)
    async def handle_http_exception(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        payload = to_error_payload(exc.detail, exc.status_code)
        logger.warning(
            "http_exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
                "error_code": payload["error_code"],
            },
        )
        return error_response(
            exc.status_code,
            payload["error_code"],
            payload["message"],
            clear_cookies=cookies if getattr(exc, "clear_session", False) else None,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        logger.warning(
            "validation_exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": 400,
                "error_code": ApiErrorCode.VALIDATION_ERROR,
            },
        )
        return error_response(
            400, ApiErrorCode.VALIDATION_ERROR, _validation_message(exc)
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception(
            "unexpected_exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": 500,
            },
        )
        return error_response(
            500, ApiErrorCode.INTERNAL_SERVER_ERROR, "Internal server error"
        )
