from __future__ import annotations

import logging

import bcrypt

from itemvault.errors import AuthenticationFailure, Conflict, ValidationFailure
from itemvault.models.user import User
from itemvault.repositories.base import UserRepository
from itemvault.services.lockout import LockoutTracker
from itemvault.services.password_policy import validate_password

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12


class UserService:
    def __init__(self, repo: UserRepository, lockout: LockoutTracker, bcrypt_rounds: int = BCRYPT_ROUNDS) -> None:
        self.repo = repo
        self.lockout = lockout
        self.bcrypt_rounds = bcrypt_rounds

    def _hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode()[:72], bcrypt.gensalt(rounds=self.bcrypt_rounds)).decode()

    @staticmethod
    def _check(password: str, password_hash: str | None) -> bool:
        if not password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode()[:72], password_hash.encode())
        except ValueError:
            logger.error("Stored password hash is not a valid bcrypt hash")
            return False

    def register(self, username: str, password: str) -> User:
        violations = validate_password(password)
        if violations:
            logger.warning("Registration rejected: weak password for username=%s", username)
            raise ValidationFailure(violations)

        if self.repo.get_by_username(username) is not None:
            logger.warning("Registration rejected: duplicate username=%s", username)
            raise Conflict("Username already exists")

        user = self.repo.create(User(username=username, password_hash=self._hash(password)))
        logger.info("User registered: %s", username)
        return user

    def login(self, username: str, password: str) -> User:
        """Verify a username/password pair, enforcing the lockout window.

        A locked account is refused before the password is looked at.
        """
        user = self.repo.get_by_username(username)
        if user is None:
            logger.warning("Failed login for unknown username=%s", username)
            raise AuthenticationFailure("Invalid credentials")

        self.lockout.ensure_not_locked(user)

        if not self._check(password, user.password_hash):
            remaining = self.lockout.record_failure(user)
            logger.warning("Failed login for username=%s (%d attempts remaining)", username, remaining)
            raise AuthenticationFailure("Invalid credentials")

        self.lockout.record_success(user)
        logger.info("User %s logged in", username)
        return user

    def get_by_id(self, user_id: int) -> User | None:
        return self.repo.get_by_id(user_id)
