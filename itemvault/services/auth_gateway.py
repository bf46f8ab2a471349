from __future__ import annotations

import logging

from itemvault.errors import AuthenticationFailure
from itemvault.models.user import User
from itemvault.repositories.base import UserRepository
from itemvault.services.lockout import LockoutTracker
from itemvault.services.passkey_service import PasskeyService
from itemvault.services.token_service import TokenService
from itemvault.services.user_service import UserService

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class AuthGateway:
    """Entry point for every credential-bearing request.

    Holds the user repository it was built with; no component reaches for a
    global connection.
    """

    def __init__(
        self,
        repo: UserRepository,
        tokens: TokenService,
        passkeys: PasskeyService,
        lockout: LockoutTracker,
        users: UserService | None = None,
    ) -> None:
        self.repo = repo
        self.tokens = tokens
        self.passkeys = passkeys
        self.lockout = lockout
        self.users = users or UserService(repo, lockout)

    # --- Password ---

    def register(self, username: str, password: str) -> User:
        return self.users.register(username, password)

    def login(self, username: str, password: str) -> dict:
        user = self.users.login(username, password)
        return {
            "token": self.tokens.issue(user),
            "user": {"id": user.id, "username": user.username, "has_passkey": user.has_passkey},
        }

    # --- Bearer guard ---

    def authorize(self, authorization: str | None) -> User:
        """Resolve an ``Authorization`` header to a live, unlocked user."""
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            raise AuthenticationFailure("No token provided")
        token = authorization[len(BEARER_PREFIX) :].strip()
        if not token:
            raise AuthenticationFailure("No token provided")

        claims = self.tokens.verify(token)
        user = self.users.get_by_id(claims.user_id)
        if user is None:
            logger.warning("Token presented for deleted user id=%s", claims.user_id)
            raise AuthenticationFailure("User no longer exists")
        self.lockout.ensure_not_locked(user)
        return user

    # --- Passkeys ---

    def start_passkey_registration(self, user: User) -> dict:
        return self.passkeys.start_registration(user)

    def finish_passkey_registration(self, user: User, credential: dict) -> None:
        self.passkeys.finish_registration(user, credential)

    def start_passkey_login(self, username: str) -> dict:
        return self.passkeys.start_authentication(username)

    def finish_passkey_login(self, username: str, credential: dict) -> str:
        user = self.passkeys.finish_authentication(username, credential)
        # The bearer guard would refuse this token anyway.
        self.lockout.ensure_not_locked(user)
        return self.tokens.issue(user)
