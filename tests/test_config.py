from __future__ import annotations

import pytest

from app.core.config import INSECURE_DEV_SECRET, AppConfig

_ENV_KEYS = [
    "APP_ENV",
    "AUTH_SECRET_KEY",
    "COOKIE_SECURE",
    "MONGODB_URI",
    "API_PREFIX",
    "CORS_ALLOWED_ORIGINS",
    "CLIENT_URL",
]


def _clean_env(monkeypatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_from_env_development_defaults(monkeypatch) -> None:
    _clean_env(monkeypatch)

    config = AppConfig.from_env()

    assert config.server.is_production is False
    assert config.server.api_prefix == "/api"
    assert config.auth.secret_key == INSECURE_DEV_SECRET
    assert config.auth.access_token_ttl_seconds == 900
    assert config.auth.refresh_token_ttl_seconds == 7 * 24 * 60 * 60
    assert config.auth.password_reset_ttl_seconds == 600
    assert config.auth.lockout_max_attempts == 5
    assert config.auth.lockout_seconds == 1800
    assert config.cookies.secure is False
    assert config.cookies.samesite == "strict"
    assert config.database.mongo_uri == ""
    assert config.security.cors_allowed_origins == ["http://localhost:3000"]


def test_from_env_production_requires_secret(monkeypatch) -> None:
    _clean_env(monkeypatch)
    monkeypatch.setenv("APP_ENV", "production")

    with pytest.raises(RuntimeError):
        AppConfig.from_env()


def test_from_env_production_uses_secure_cookies(monkeypatch) -> None:
    _clean_env(monkeypatch)
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("AUTH_SECRET_KEY", "prod-secret")
    monkeypatch.setenv("API_PREFIX", "/v1/")

    config = AppConfig.from_env()

    assert config.cookies.secure is True
    assert config.server.api_prefix == "/v1"


def test_cookie_secure_override(monkeypatch) -> None:
    _clean_env(monkeypatch)
    monkeypatch.setenv("COOKIE_SECURE", "true")

    assert AppConfig.from_env().cookies.secure is True
