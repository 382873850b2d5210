from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.contracts import HealthResponse
from app.api.http_setup import register_exception_handlers, register_http_middleware
from app.auth.cookies import SessionCookies
from app.auth.lockout import AccountLockoutGuard
from app.auth.middleware import create_auth_middleware
from app.auth.repository import UserRepository
from app.auth.router import create_auth_router
from app.auth.service import AuthService
from app.auth.tokens import TokenIssuer
from app.core.config import INSECURE_DEV_SECRET, AppConfig
from app.core.database import MongoDatabase
from app.core.email import Mailer, create_mailer
from app.core.logging import setup_logging
from app.core.mongo_migrations import apply_mongo_migrations

LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent


def create_app(
    config: AppConfig,
    *,
    database: MongoDatabase | None = None,
    mailer: Mailer | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    app = FastAPI(title="Blog Auth API", version="1.0.0")
    database = database or MongoDatabase(config.database)
    mailer = mailer or create_mailer(config.email)
    api_prefix = config.server.api_prefix

    fallback_dir = Path(config.database.fallback_dir)
    if not fallback_dir.is_absolute():
        fallback_dir = APP_ROOT / fallback_dir
    user_repo = UserRepository(database, fallback_dir)
    token_issuer = TokenIssuer(user_repo, config.auth, clock=clock)
    lockout_guard = AccountLockoutGuard(
        user_repo,
        max_attempts=config.auth.lockout_max_attempts,
        lock_seconds=config.auth.lockout_seconds,
        clock=clock,
    )
    auth_service = AuthService(
        user_repo,
        config.auth,
        issuer=token_issuer,
        lockout=lockout_guard,
        mailer=mailer,
        links_base_url=f"{config.server.public_base_url}{api_prefix}",
        clock=clock,
    )
    session_cookies = SessionCookies(config.cookies, config.auth)

    app.middleware("http")(
        create_auth_middleware(auth_service, session_cookies, api_prefix=api_prefix)
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER, cookies=session_cookies)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.include_router(
        create_auth_router(auth_service, session_cookies, api_prefix=api_prefix)
    )

    @app.get(f"{api_prefix}/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok", storage=database.backend_name)

    @app.on_event("startup")
    def startup() -> None:
        if config.auth.secret_key == INSECURE_DEV_SECRET:
            LOGGER.warning("auth_secret_key_not_configured")
        apply_mongo_migrations(database.connect())
        auth_service.bootstrap_admin_user()

    @app.on_event("shutdown")
    def shutdown() -> None:
        database.close()

    app.state.auth_service = auth_service
    app.state.database = database
    return app


def _build_default_app() -> FastAPI:
    load_dotenv()
    config = AppConfig.from_env()
    setup_logging(config.logging.level)
    return create_app(config)


app = _build_default_app()
