"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

INSECURE_DEV_SECRET = "dev-insecure-secret-change-me"


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server and deployment settings."""

    environment: str
    api_prefix: str
    public_base_url: str
    client_url: str

    @property
    def is_production(self) -> bool:
        """Return whether the app runs in production mode."""
        return self.environment == "production"


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    secret_key: str
    issuer: str
    audience: str
    access_token_ttl_seconds: int = 15 * 60
    refresh_token_ttl_seconds: int = 7 * 24 * 60 * 60
    password_reset_ttl_seconds: int = 10 * 60
    email_verification_ttl_seconds: int = 24 * 60 * 60
    lockout_max_attempts: int = 5
    lockout_seconds: int = 30 * 60
    admin_email: str = ""
    admin_password: str = ""


@dataclass(frozen=True)
class CookieConfig:
    """Session cookie attributes."""

    secure: bool
    samesite: str = "strict"
    domain: str | None = None
    path: str = "/"


@dataclass(frozen=True)
class DatabaseConfig:
    """Document store settings."""

    mongo_uri: str
    mongo_db: str
    fallback_dir: str
    server_selection_timeout_ms: int = 3000


@dataclass(frozen=True)
class EmailConfig:
    """Outgoing mail settings."""

    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_use_tls: bool
    from_email: str
    from_name: str

    @property
    def is_configured(self) -> bool:
        """Return whether SMTP delivery can be attempted."""
        return bool(self.smtp_host and self.from_email)


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    server: ServerConfig
    auth: AuthConfig
    cookies: CookieConfig
    database: DatabaseConfig
    email: EmailConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        environment = os.getenv("APP_ENV", "development").strip().lower() or "development"
        is_production = environment == "production"

        secret_key = os.getenv("AUTH_SECRET_KEY", "").strip()
        if not secret_key:
            if is_production:
                raise RuntimeError("AUTH_SECRET_KEY must be set in production")
            secret_key = INSECURE_DEV_SECRET

        cookie_secure_raw = os.getenv("COOKIE_SECURE", "").strip()
        cookie_secure = (
            _env_flag("COOKIE_SECURE") if cookie_secure_raw else is_production
        )
        client_url = os.getenv("CLIENT_URL", "http://localhost:3000").strip()
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv("CORS_ALLOWED_ORIGINS", client_url).split(",")
            if origin.strip()
        ]

        return AppConfig(
            server=ServerConfig(
                environment=environment,
                api_prefix=os.getenv("API_PREFIX", "/api").strip().rstrip("/") or "/api",
                public_base_url=os.getenv(
                    "PUBLIC_BASE_URL", "http://localhost:8000"
                ).strip().rstrip("/"),
                client_url=client_url,
            ),
            auth=AuthConfig(
                secret_key=secret_key,
                issuer=os.getenv("AUTH_ISSUER", "blog-api").strip() or "blog-api",
                audience=os.getenv("AUTH_AUDIENCE", "blog-client").strip()
                or "blog-client",
                access_token_ttl_seconds=int(
                    os.getenv("AUTH_ACCESS_TOKEN_TTL_SECONDS", "900")
                ),
                refresh_token_ttl_seconds=int(
                    os.getenv("AUTH_REFRESH_TOKEN_TTL_SECONDS", "604800")
                ),
                password_reset_ttl_seconds=int(
                    os.getenv("AUTH_PASSWORD_RESET_TTL_SECONDS", "600")
                ),
                email_verification_ttl_seconds=int(
                    os.getenv("AUTH_EMAIL_VERIFICATION_TTL_SECONDS", "86400")
                ),
                lockout_max_attempts=int(os.getenv("AUTH_LOCKOUT_MAX_ATTEMPTS", "5")),
                lockout_seconds=int(os.getenv("AUTH_LOCKOUT_SECONDS", "1800")),
                admin_email=os.getenv("AUTH_ADMIN_EMAIL", "").strip().lower(),
                admin_password=os.getenv("AUTH_ADMIN_PASSWORD", "").strip(),
            ),
            cookies=CookieConfig(
                secure=cookie_secure,
                samesite=os.getenv("COOKIE_SAMESITE", "strict").strip().lower()
                or "strict",
                domain=os.getenv("COOKIE_DOMAIN", "").strip() or None,
            ),
            database=DatabaseConfig(
                mongo_uri=os.getenv("MONGODB_URI", "").strip(),
                mongo_db=os.getenv("MONGODB_DB", "blog").strip() or "blog",
                fallback_dir=os.getenv("AUTH_STORE_DIR", "runtime/auth_store").strip()
                or "runtime/auth_store",
                server_selection_timeout_ms=int(
                    os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "3000")
                ),
            ),
            email=EmailConfig(
                smtp_host=os.getenv("SMTP_HOST", "").strip(),
                smtp_port=int(os.getenv("SMTP_PORT", "587")),
                smtp_user=os.getenv("SMTP_USER", "").strip(),
                smtp_password=os.getenv("SMTP_PASS", "").strip(),
                smtp_use_tls=_env_flag("SMTP_USE_TLS", "1"),
                from_email=os.getenv("EMAIL_FROM", "").strip(),
                from_name=os.getenv("EMAIL_FROM_NAME", "Blog").strip() or "Blog",
            ),
            logging=LoggingConfig(level=os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024))),
            ),
        )
