from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from itemvault.errors import LockedAccount
from itemvault.models.user import User
from itemvault.repositories.base import UserRepository

logger = logging.getLogger(__name__)

MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=15)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LockoutTracker:
    """Failed-login counter and lock window stored on the user record.

    Lock expiry is evaluated lazily against ``clock()``. The counter update is
    a plain read-increment-write, so concurrent failures for one user can
    undercount.
    """

    def __init__(
        self,
        repo: UserRepository,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
        lockout_duration: timedelta = LOCKOUT_DURATION,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repo = repo
        self.max_attempts = max_attempts
        self.lockout_duration = lockout_duration
        self.clock = clock

    def ensure_not_locked(self, user: User) -> None:
        now = self.clock()
        if user.is_locked(now):
            remaining = user.lock_remaining_minutes(now)
            logger.warning("Login refused for locked user=%s (%d min remaining)", user.username, remaining)
            raise LockedAccount(remaining)

    def record_failure(self, user: User) -> int:
        """Count a failed attempt; lock the account once the threshold is hit.

        Returns the number of attempts left before lockout.
        """
        now = self.clock()
        attempts = user.failed_attempts + 1
        locked_until = user.locked_until
        if attempts >= self.max_attempts:
            locked_until = now + self.lockout_duration
            logger.warning("User %s locked until %s after %d failed attempts", user.username, locked_until, attempts)
        self.repo.update_lockout(user.id, attempts, locked_until, now)
        user.failed_attempts = attempts
        user.locked_until = locked_until
        user.last_attempt_time = now
        return max(self.max_attempts - attempts, 0)

    def record_success(self, user: User) -> None:
        if user.failed_attempts or user.locked_until is not None:
            logger.info("Resetting failed attempts for user=%s", user.username)
        self.repo.update_lockout(user.id, 0, None, None)
        user.failed_attempts = 0
        user.locked_until = None
