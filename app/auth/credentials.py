"""Pure credential helpers applied explicitly before a user is saved."""

from __future__ import annotations

import re
from dataclasses import dataclass

from app.auth.models import User
from app.core.security import generate_opaque_token, hash_password, hash_token

_PASSWORD_RULES = [
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"\d"), "one number"),
    (re.compile(r"[^A-Za-z\d]"), "one special character"),
]

MIN_PASSWORD_LENGTH = 8
ONE_TIME_TOKEN_BYTES = 20


def normalize_email(email: str) -> str:
    return email.strip().lower()


def password_strength_errors(password: str) -> list[str]:
    """Return unmet password requirements; an empty list means acceptable."""
    missing: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        missing.append(f"at least {MIN_PASSWORD_LENGTH} characters")
    for pattern, label in _PASSWORD_RULES:
        if not pattern.search(password):
            missing.append(label)
    return missing


def apply_password(user: User, password: str, *, now: int, is_new: bool) -> User:
    """Store a fresh hash of ``password`` on ``user``.

    For an existing user ``password_changed_at`` is backdated one second so a
    token minted in the same second as the change is still accepted, while
    every token minted in an earlier second is not.
    """
    user.password_hash = hash_password(password)
    if not is_new:
        user.password_changed_at = now - 1
    user.updated_at = now
    return user


@dataclass(frozen=True)
class OneTimeToken:
    """Plaintext token for the client and the hash/expiry to persist."""

    plaintext: str
    token_hash: str
    expires_at: int


def issue_one_time_token(*, ttl_seconds: int, now: int) -> OneTimeToken:
    plaintext = generate_opaque_token(ONE_TIME_TOKEN_BYTES)
    return OneTimeToken(
        plaintext=plaintext,
        token_hash=hash_token(plaintext),
        expires_at=now + ttl_seconds,
    )


def changed_password_after(user: User, issued_at: int) -> bool:
    """Return whether the password changed after a token was issued."""
    if user.password_changed_at is None:
        return False
    return issued_at < user.password_changed_at
