"""Web test fixtures: TestClient with shared in-memory SQLite."""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.pool import StaticPool

from itemvault.repositories.sqlalchemy import SQLAlchemyUserRepository
from itemvault.services.lockout import LockoutTracker
from itemvault.services.user_service import UserService
from tests.conftest import SCHEMA_DDL

TEST_PASSWORD = "Str0ng!Pass"


def _make_test_engine():
    """Create a fresh in-memory SQLite engine with shared connection pool."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    with engine.connect() as conn:
        for statement in SCHEMA_DDL.strip().split(";"):
            stmt = statement.strip()
            if stmt:
                conn.execute(text(stmt))
        conn.commit()

    return engine


def create_user_in_db(engine, username: str = "testuser", password: str = TEST_PASSWORD):
    """Register a user directly through the service layer."""
    with engine.connect() as conn:
        repo = SQLAlchemyUserRepository(conn)
        return UserService(repo, LockoutTracker(repo), bcrypt_rounds=4).register(username, password)


def get_user_from_db(engine, username: str = "testuser"):
    with engine.connect() as conn:
        return SQLAlchemyUserRepository(conn).get_by_username(username)


def login(client, username: str = "testuser", password: str = TEST_PASSWORD) -> str:
    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def web_test_db(monkeypatch):
    """Set up in-memory DB and patch the web app to use it."""
    engine = _make_test_engine()

    import web.deps as deps_module

    monkeypatch.setattr(deps_module, "get_engine", lambda: engine)

    import web.app as app_module

    monkeypatch.setattr(app_module, "initialize_db", lambda: None)

    yield engine

    engine.dispose()


@pytest.fixture()
def test_engine(web_test_db):
    """Expose the test engine for helpers that need direct DB access."""
    return web_test_db


@pytest.fixture()
def client():
    from starlette.testclient import TestClient

    from web.app import app

    return TestClient(app)


@pytest.fixture()
def test_user(test_engine):
    return create_user_in_db(test_engine)


@pytest.fixture()
def auth_headers(client, test_user) -> dict:
    """Authorization header for ``testuser``."""
    return bearer(login(client))
