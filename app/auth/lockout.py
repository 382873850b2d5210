"""Failed-login tracking and temporary account lockout."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from app.auth.models import User
from app.auth.repository import UserRepository

LOGGER = logging.getLogger(__name__)


class AccountLockoutGuard:
    """Unlocked -> (N consecutive failures) -> Locked(until) -> Unlocked.

    Expired locks are normalized lazily: the account is unlocked the next
    time ``is_locked`` runs after the lock window, not at the exact instant.
    """

    def __init__(
        self,
        repo: UserRepository,
        *,
        max_attempts: int = 5,
        lock_seconds: int = 30 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repo
        self._max_attempts = max(1, int(max_attempts))
        self._lock_seconds = max(1, int(lock_seconds))
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def _lock_active(self, user: User, now: int) -> bool:
        return user.account_locked_until is not None and user.account_locked_until > now

    def is_locked(self, user: User) -> bool:
        """Return whether login is currently refused, resetting expired locks."""
        now = self._now()
        if self._lock_active(user, now):
            return True
        if user.account_locked_until is not None:
            user.failed_login_attempts = 0
            user.account_locked_until = None
            user.updated_at = now
            self._repo.save(user)
        return False

    def minutes_remaining(self, user: User) -> int:
        if user.account_locked_until is None:
            return 0
        return max(0, math.ceil((user.account_locked_until - self._now()) / 60))

    def record_failed_attempt(self, user: User) -> None:
        """Count a failed password check and lock at the threshold."""
        now = self._now()
        if self._lock_active(user, now):
            return
        user.failed_login_attempts += 1
        if user.failed_login_attempts >= self._max_attempts:
            user.account_locked_until = now + self._lock_seconds
            LOGGER.warning("account_locked", extra={"user_id": user.user_id})
        user.updated_at = now
        self._repo.save(user)

    def record_success(self, user: User) -> None:
        if user.failed_login_attempts == 0 and user.account_locked_until is None:
            return
        user.failed_login_attempts = 0
        user.account_locked_until = None
        user.updated_at = self._now()
        self._repo.save(user)
