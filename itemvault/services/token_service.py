from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import jwt

from itemvault.errors import AuthenticationFailure, ConfigurationError
from itemvault.models.token import TokenClaims
from itemvault.models.user import User

logger = logging.getLogger(__name__)

TOKEN_LIFETIME = timedelta(hours=24)


class TokenService:
    """Issues and verifies HS256 bearer tokens bound to a user id and username."""

    def __init__(self, secret: str, expires: timedelta = TOKEN_LIFETIME, algorithm: str = "HS256") -> None:
        if not secret:
            raise ConfigurationError("Token signing secret is not configured")
        self.secret = secret
        self.expires = expires
        self.algorithm = algorithm

    def issue(self, user: User, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "username": user.username,
            "iat": issued_at,
            "exp": issued_at + self.expires,
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        logger.debug("Token issued for user=%s", user.username)
        return token

    def verify(self, token: str) -> TokenClaims:
        """Decode ``token`` or raise AuthenticationFailure.

        Every failure reason maps to the same error so callers cannot tell an
        expired token from a forged one.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
            return TokenClaims(
                user_id=int(payload["sub"]),
                username=payload["username"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as e:
            logger.debug("Token rejected: %s", e)
            raise AuthenticationFailure("Invalid token") from None
