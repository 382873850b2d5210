from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from app.auth.lockout import AccountLockoutGuard
from app.auth.models import RegisterRequest, User
from app.auth.repository import UserRepository
from app.auth.service import AuthService
from app.auth.tokens import TokenIssuer
from app.core.config import (
    AppConfig,
    AuthConfig,
    CookieConfig,
    DatabaseConfig,
    EmailConfig,
    LoggingConfig,
    SecurityConfig,
    ServerConfig,
)
from app.core.database import MongoDatabase
from app.core.email import EmailDeliveryError

STRONG_PASSWORD = "Str0ng!Pass"
START_TS = 1_700_000_000


@dataclass
class FakeClock:
    now: float = float(START_TS)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class RecordingMailer:
    sent: list[tuple[str, str, str]] = field(default_factory=list)
    fail: bool = False

    def send(self, to_email: str, subject: str, html: str) -> None:
        if self.fail:
            raise EmailDeliveryError("smtp unavailable")
        self.sent.append((to_email, subject, html))

    def last_token(self, route: str) -> str:
        match = re.search(rf"/auth/{route}/([0-9a-f]+)", self.sent[-1][2])
        assert match is not None
        return match.group(1)


def auth_config(**overrides) -> AuthConfig:
    values = {
        "secret_key": "test-secret",
        "issuer": "blog-test",
        "audience": "blog-test-client",
        "access_token_ttl_seconds": 900,
        "refresh_token_ttl_seconds": 3600,
    }
    values.update(overrides)
    return AuthConfig(**values)


def app_config(store_dir: Path, **auth_overrides) -> AppConfig:
    return AppConfig(
        server=ServerConfig(
            environment="test",
            api_prefix="/api",
            public_base_url="http://testserver",
            client_url="http://localhost:3000",
        ),
        auth=auth_config(**auth_overrides),
        cookies=CookieConfig(secure=False),
        database=DatabaseConfig(
            mongo_uri="", mongo_db="blog_test", fallback_dir=str(store_dir)
        ),
        email=EmailConfig(
            smtp_host="",
            smtp_port=587,
            smtp_user="",
            smtp_password="",
            smtp_use_tls=True,
            from_email="",
            from_name="Blog",
        ),
        logging=LoggingConfig(level="INFO"),
        security=SecurityConfig(
            cors_allowed_origins=["http://localhost:3000"],
            request_max_bytes=64 * 1024,
        ),
    )


def file_database() -> MongoDatabase:
    return MongoDatabase(DatabaseConfig(mongo_uri="", mongo_db="blog_test", fallback_dir=""))


def make_user(user_id: str = "u1", email: str = "reader@test.local", **fields) -> User:
    values = {
        "user_id": user_id,
        "email": email,
        "name": "Reader",
        "password_hash": "hash",
        "created_at": START_TS,
    }
    values.update(fields)
    return User(**values)


@dataclass
class AuthHarness:
    service: AuthService
    repo: UserRepository
    issuer: TokenIssuer
    lockout: AccountLockoutGuard
    clock: FakeClock
    mailer: RecordingMailer

    def register_verified(
        self,
        email: str = "reader@test.local",
        password: str = STRONG_PASSWORD,
        role: str = "user",
    ) -> User:
        self.service.register(
            RegisterRequest(name="Reader", email=email, password=password, role=role)
        )
        return self.service.verify_email(self.mailer.last_token("verify-email"))


def build_harness(store_dir: Path, **auth_overrides) -> AuthHarness:
    config = auth_config(**auth_overrides)
    clock = FakeClock()
    mailer = RecordingMailer()
    repo = UserRepository(file_database(), store_dir)
    issuer = TokenIssuer(repo, config, clock=clock)
    lockout = AccountLockoutGuard(
        repo,
        max_attempts=config.lockout_max_attempts,
        lock_seconds=config.lockout_seconds,
        clock=clock,
    )
    service = AuthService(
        repo,
        config,
        issuer=issuer,
        lockout=lockout,
        mailer=mailer,
        links_base_url="http://testserver/api",
        clock=clock,
    )
    return AuthHarness(
        service=service,
        repo=repo,
        issuer=issuer,
        lockout=lockout,
        clock=clock,
        mailer=mailer,
    )
