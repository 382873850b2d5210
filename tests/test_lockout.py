from __future__ import annotations

from pathlib import Path

from tests.auth_fakes import START_TS, build_harness, make_user


def _locked_setup(tmp_path: Path):
    harness = build_harness(tmp_path)
    user = make_user()
    harness.repo.insert(user)
    return harness, user


def test_lockout_locks_on_fifth_consecutive_failure(tmp_path: Path) -> None:
    harness, user = _locked_setup(tmp_path)

    for _ in range(4):
        harness.lockout.record_failed_attempt(user)
    assert harness.lockout.is_locked(user) is False

    harness.lockout.record_failed_attempt(user)

    stored = harness.repo.get_by_id("u1")
    assert harness.lockout.is_locked(user) is True
    assert stored is not None
    assert stored.failed_login_attempts == 5
    assert stored.account_locked_until == START_TS + 1800
    assert harness.lockout.minutes_remaining(user) == 30


def test_lockout_does_not_extend_active_lock(tmp_path: Path) -> None:
    harness, user = _locked_setup(tmp_path)
    for _ in range(5):
        harness.lockout.record_failed_attempt(user)

    harness.clock.advance(600)
    harness.lockout.record_failed_attempt(user)

    assert user.failed_login_attempts == 5
    assert user.account_locked_until == START_TS + 1800
    assert harness.lockout.minutes_remaining(user) == 20


def test_lockout_resets_lazily_after_window(tmp_path: Path) -> None:
    harness, user = _locked_setup(tmp_path)
    for _ in range(5):
        harness.lockout.record_failed_attempt(user)

    harness.clock.advance(1800)

    assert harness.lockout.is_locked(user) is False
    stored = harness.repo.get_by_id("u1")
    assert stored is not None
    assert stored.failed_login_attempts == 0
    assert stored.account_locked_until is None


def test_lockout_success_resets_counter(tmp_path: Path) -> None:
    harness, user = _locked_setup(tmp_path)
    harness.lockout.record_failed_attempt(user)
    harness.lockout.record_failed_attempt(user)

    harness.lockout.record_success(user)

    stored = harness.repo.get_by_id("u1")
    assert stored is not None
    assert stored.failed_login_attempts == 0
    assert harness.lockout.minutes_remaining(user) == 0
