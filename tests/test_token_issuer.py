from __future__ import annotations

from pathlib import Path

import pytest

from app.api.errors import InvalidRefreshToken
from app.core.security import TokenExpiredError, hash_token
from tests.auth_fakes import build_harness, make_user


def test_access_token_carries_identity_and_expiry(tmp_path: Path) -> None:
    harness = build_harness(tmp_path)
    user = make_user(role="publisher")

    claims = harness.issuer.verify_access_token(harness.issuer.issue_access_token(user))

    assert claims["sub"] == "u1"
    assert claims["role"] == "publisher"
    assert claims["iss"] == "blog-test"
    assert claims["aud"] == "blog-test-client"
    assert claims["exp"] - claims["iat"] == 900


def test_access_token_expires_after_ttl(tmp_path: Path) -> None:
    harness = build_harness(tmp_path)
    token = harness.issuer.issue_access_token(make_user())

    harness.clock.advance(900)

    with pytest.raises(TokenExpiredError):
        harness.issuer.verify_access_token(token)


def test_refresh_token_hash_is_persisted_before_return(tmp_path: Path) -> None:
    harness = build_harness(tmp_path)
    user = make_user()
    harness.repo.insert(user)

    plaintext = harness.issuer.issue_refresh_token(user)

    now = int(harness.clock())
    stored = harness.repo.find_by_refresh_token_hash(hash_token(plaintext), now)
    assert len(plaintext) == 80
    assert stored is not None
    assert stored.refresh_token_expires_at == now + 3600
    assert stored.refresh_token_hash != plaintext


def test_new_refresh_token_supersedes_previous(tmp_path: Path) -> None:
    harness = build_harness(tmp_path)
    user = make_user()
    harness.repo.insert(user)
    now = int(harness.clock())

    first = harness.issuer.issue_refresh_token(user)
    second = harness.issuer.issue_refresh_token(user)

    assert harness.repo.find_by_refresh_token_hash(hash_token(first), now) is None
    assert harness.repo.find_by_refresh_token_hash(hash_token(second), now) is not None


def test_rotation_losing_race_raises_and_keeps_winner(tmp_path: Path) -> None:
    harness = build_harness(tmp_path)
    user = make_user()
    harness.repo.insert(user)
    presented = harness.issuer.issue_refresh_token(user)
    presented_hash = hash_token(presented)
    now = int(harness.clock())
    first_view = harness.repo.find_by_refresh_token_hash(presented_hash, now)
    second_view = harness.repo.find_by_refresh_token_hash(presented_hash, now)
    assert first_view is not None and second_view is not None

    winner = harness.issuer.issue_refresh_token(first_view, expected_hash=presented_hash)
    with pytest.raises(InvalidRefreshToken):
        harness.issuer.issue_refresh_token(second_view, expected_hash=presented_hash)

    stored = harness.repo.get_by_id("u1")
    assert stored is not None
    assert stored.refresh_token_hash == hash_token(winner)
