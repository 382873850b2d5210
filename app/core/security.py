"""Security primitives for password hashing, token signing and token hashing."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import secrets
from typing import Any

PBKDF2_ROUNDS = 120_000


class TokenError(ValueError):
    """Raised when a signed token cannot be trusted."""


class TokenExpiredError(TokenError):
    """Raised when a correctly signed token is past its expiry."""


def _b64url_encode(raw: bytes) -> str:
    """Return URL-safe base64 string without padding."""
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    """Decode URL-safe base64 string with optional missing padding."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def hash_password(password: str) -> str:
    """Hash password using PBKDF2-HMAC-SHA256 with random salt."""
    salt = os.urandom(16)
    derived = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, PBKDF2_ROUNDS
    )
    return (
        f"pbkdf2_sha256${PBKDF2_ROUNDS}$"
        f"{_b64url_encode(salt)}${_b64url_encode(derived)}"
    )


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify password against a stored PBKDF2 hash."""
    try:
        algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
        if algo != "pbkdf2_sha256":
            return False
        rounds = int(rounds_raw)
        salt = _b64url_decode(salt_b64)
        expected = _b64url_decode(digest_b64)
    except (ValueError, TypeError, AttributeError):
        return False

    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(derived, expected)


def generate_opaque_token(num_bytes: int) -> str:
    """Return a hex-encoded cryptographically random token."""
    return secrets.token_hex(num_bytes)


def hash_token(token: str) -> str:
    """Hash raw token for storage/comparison."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def build_signed_token(payload: dict[str, Any], secret_key: str) -> str:
    """Create compact HS256 JWT."""
    header = {"alg": "HS256", "typ": "JWT"}
    header_part = _b64url_encode(
        json.dumps(header, separators=(",", ":")).encode("utf-8")
    )
    payload_part = _b64url_encode(
        json.dumps(payload, separators=(",", ":")).encode("utf-8")
    )
    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    signature = hmac.new(
        secret_key.encode("utf-8"), signing_input, hashlib.sha256
    ).digest()
    return f"{header_part}.{payload_part}.{_b64url_encode(signature)}"


def decode_signed_token(
    token: str,
    secret_key: str,
    *,
    now: int,
    issuer: str,
    audience: str,
) -> dict[str, Any]:
    """Decode and verify a compact HS256 JWT.

    Signature, issuer and audience failures raise ``TokenError``. A token
    whose ``exp`` is at or before ``now`` raises ``TokenExpiredError``, but
    only once the signature has been verified, so a forged token never
    qualifies as merely expired.
    """
    try:
        header_part, payload_part, signature_part = token.split(".", 2)
    except ValueError as exc:
        raise TokenError("Malformed token") from exc

    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    expected_sig = hmac.new(
        secret_key.encode("utf-8"), signing_input, hashlib.sha256
    ).digest()
    try:
        got_sig = _b64url_decode(signature_part)
        header = json.loads(_b64url_decode(header_part).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise TokenError("Malformed token") from exc
    if not isinstance(header, dict) or header.get("alg") != "HS256":
        raise TokenError("Unsupported token algorithm")
    if not hmac.compare_digest(expected_sig, got_sig):
        raise TokenError("Invalid token signature")

    try:
        payload = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise TokenError("Invalid token payload") from exc
    if not isinstance(payload, dict):
        raise TokenError("Invalid token payload")

    if str(payload.get("iss") or "") != issuer:
        raise TokenError("Invalid token issuer")
    if str(payload.get("aud") or "") != audience:
        raise TokenError("Invalid token audience")

    try:
        exp = int(payload.get("exp") or 0)
        int(payload.get("iat") or 0)
    except (TypeError, ValueError) as exc:
        raise TokenError("Invalid token timestamps") from exc
    if not exp:
        raise TokenError("Token has no expiry")
    if now >= exp:
        raise TokenExpiredError("Token expired")

    return payload
