from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import Request
from sqlalchemy import Connection
from starlette.types import ASGIApp, Receive, Scope, Send

from itemvault.db import get_engine
from itemvault.models.user import User
from itemvault.repositories.sqlalchemy import SQLAlchemyItemRepository, SQLAlchemyUserRepository
from itemvault.services.auth_gateway import AuthGateway
from itemvault.services.item_service import ItemService
from itemvault.services.lockout import LockoutTracker
from itemvault.services.passkey_service import PasskeyService
from itemvault.services.token_service import TokenService
from itemvault.services.user_service import UserService
from itemvault.settings import settings

logger = logging.getLogger(__name__)


class DBConnectionMiddleware:
    """Pure ASGI middleware that closes the request's DB connection, if one was opened."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        request.state.db_conn = None
        try:
            await self.app(scope, receive, send)
        finally:
            conn = getattr(request.state, "db_conn", None)
            if conn is not None:
                conn.close()
                logger.debug("DB connection closed for %s %s", request.method, request.url.path)


def _get_conn(request: Request) -> Connection:
    """Lazy per-request connection, created on first use and closed by the middleware."""
    if getattr(request.state, "db_conn", None) is None:
        logger.debug("Creating DB connection for %s %s", request.method, request.url.path)
        request.state.db_conn = get_engine().connect()
    return request.state.db_conn


def get_token_service() -> TokenService:
    return TokenService(
        settings.jwt_secret,
        expires=timedelta(hours=settings.token_expire_hours),
        algorithm=settings.jwt_algorithm,
    )


def get_auth_gateway(request: Request) -> AuthGateway:
    repo = SQLAlchemyUserRepository(_get_conn(request))
    lockout = LockoutTracker(
        repo,
        max_attempts=settings.max_login_attempts,
        lockout_duration=timedelta(minutes=settings.lockout_minutes),
    )
    return AuthGateway(
        repo,
        tokens=get_token_service(),
        passkeys=PasskeyService(
            repo,
            rp_id=settings.webauthn_rp_id,
            rp_name=settings.webauthn_rp_name,
            origin=settings.webauthn_origin,
        ),
        lockout=lockout,
        users=UserService(repo, lockout, bcrypt_rounds=settings.bcrypt_rounds),
    )


def get_item_service(request: Request) -> ItemService:
    return ItemService(SQLAlchemyItemRepository(_get_conn(request)))


def get_current_user(request: Request) -> User:
    """Bearer guard for protected routes. Raises AuthenticationFailure / LockedAccount."""
    user = get_auth_gateway(request).authorize(request.headers.get("Authorization"))
    request.state.user = user
    return user
