from __future__ import annotations

import pytest

from app.core.security import (
    TokenError,
    TokenExpiredError,
    build_signed_token,
    decode_signed_token,
    generate_opaque_token,
    hash_password,
    hash_token,
    verify_password,
)

SECRET = "unit-secret"


def _payload(**overrides) -> dict:
    payload = {
        "iss": "blog-test",
        "aud": "blog-test-client",
        "sub": "u1",
        "role": "user",
        "iat": 1000,
        "exp": 1900,
    }
    payload.update(overrides)
    return payload


def _decode(token: str, now: int, **overrides) -> dict:
    options = {"issuer": "blog-test", "audience": "blog-test-client"}
    options.update(overrides)
    return decode_signed_token(token, SECRET, now=now, **options)


def test_password_hash_verifies_only_matching_plaintext() -> None:
    stored = hash_password("Str0ng!Pass")

    assert stored != "Str0ng!Pass"
    assert verify_password("Str0ng!Pass", stored) is True
    assert verify_password("str0ng!pass", stored) is False


def test_password_hashes_are_salted() -> None:
    assert hash_password("same") != hash_password("same")


def test_verify_password_rejects_malformed_hash() -> None:
    assert verify_password("anything", "not-a-hash") is False
    assert verify_password("anything", "md5$1$abc$def") is False


def test_opaque_token_and_hash_shapes() -> None:
    token = generate_opaque_token(40)

    assert len(token) == 80
    assert hash_token(token) == hash_token(token)
    assert len(hash_token(token)) == 64
    assert hash_token(token) != token


def test_signed_token_round_trip_returns_claims() -> None:
    token = build_signed_token(_payload(), SECRET)

    claims = _decode(token, now=1500)

    assert claims["sub"] == "u1"
    assert claims["role"] == "user"


def test_signed_token_expires_at_exp_boundary() -> None:
    token = build_signed_token(_payload(), SECRET)

    assert _decode(token, now=1899)["sub"] == "u1"
    with pytest.raises(TokenExpiredError):
        _decode(token, now=1900)


def test_forged_expired_token_is_invalid_not_expired() -> None:
    token = build_signed_token(_payload(), "someone-else")

    with pytest.raises(TokenError) as exc:
        _decode(token, now=5000)

    assert not isinstance(exc.value, TokenExpiredError)


def test_tampered_payload_is_rejected() -> None:
    header, _, signature = build_signed_token(_payload(), SECRET).split(".")
    _, forged_payload, _ = build_signed_token(_payload(role="admin"), "x").split(".")

    with pytest.raises(TokenError):
        _decode(f"{header}.{forged_payload}.{signature}", now=1500)


@pytest.mark.parametrize(
    "overrides",
    [{"issuer": "other-api"}, {"audience": "other-client"}],
)
def test_issuer_and_audience_must_match(overrides: dict) -> None:
    token = build_signed_token(_payload(), SECRET)

    with pytest.raises(TokenError):
        _decode(token, now=1500, **overrides)


def test_malformed_token_is_invalid() -> None:
    with pytest.raises(TokenError):
        _decode("not-a-token", now=1500)
    with pytest.raises(TokenError):
        _decode("a.b.c", now=1500)
