"""Access and refresh token issuance."""

from __future__ import annotations

import time
from typing import Any, Callable

from app.api.errors import InvalidRefreshToken
from app.auth.models import User
from app.auth.repository import UserRepository
from app.core.config import AuthConfig
from app.core.security import (
    build_signed_token,
    decode_signed_token,
    generate_opaque_token,
    hash_token,
)

REFRESH_TOKEN_BYTES = 40


class TokenIssuer:
    """Mints signed access tokens and persisted, hashed refresh tokens."""

    def __init__(
        self,
        repo: UserRepository,
        config: AuthConfig,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repo
        self._config = config
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def issue_access_token(self, user: User) -> str:
        """Return a signed access token for ``user``; nothing is persisted."""
        now_ts = self._now()
        payload = {
            "iss": self._config.issuer,
            "aud": self._config.audience,
            "sub": user.user_id,
            "role": user.role,
            "iat": now_ts,
            "exp": now_ts + self._config.access_token_ttl_seconds,
        }
        return build_signed_token(payload, self._config.secret_key)

    def issue_refresh_token(
        self, user: User, *, expected_hash: str | None = None
    ) -> str:
        """Generate a refresh token, persist its hash and return the plaintext.

        The new hash supersedes any previous refresh token. When
        ``expected_hash`` is given the write only succeeds if the stored hash
        still equals it; losing that race raises ``InvalidRefreshToken``.
        Persistence errors propagate and no token is returned.
        """
        now_ts = self._now()
        plaintext = generate_opaque_token(REFRESH_TOKEN_BYTES)
        new_hash = hash_token(plaintext)
        expires_at = now_ts + self._config.refresh_token_ttl_seconds

        if expected_hash is None:
            user.refresh_token_hash = new_hash
            user.refresh_token_expires_at = expires_at
            user.updated_at = now_ts
            self._repo.save(user)
            self._repo.set_refresh_token(
                user.user_id,
                token_hash=new_hash,
                expires_at=expires_at,
                updated_at=now_ts,
            )
            return plaintext

        swapped = self._repo.replace_refresh_token(
            user.user_id,
            expected_hash=expected_hash,
            new_hash=new_hash,
            expires_at=expires_at,
            updated_at=now_ts,
        )
        if not swapped:
            raise InvalidRefreshToken()
        user.refresh_token_hash = new_hash
        user.refresh_token_expires_at = expires_at
        user.updated_at = now_ts
        return plaintext

    def verify_access_token(self, token: str) -> dict[str, Any]:
        """Return verified claims.

        Raises ``TokenExpiredError`` for an authentic but expired token and
        ``TokenError`` for anything else.
        """
        return decode_signed_token(
            token,
            self._config.secret_key,
            now=self._now(),
            issuer=self._config.issuer,
            audience=self._config.audience,
        )
