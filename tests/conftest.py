"""Root conftest: test environment, in-memory SQLite engine and schema fixtures."""

from __future__ import annotations

import json
import os

os.environ.setdefault("ITEMVAULT_JWT_SECRET", "test-signing-secret-with-enough-length-for-hs256")
os.environ.setdefault("ITEMVAULT_WEBAUTHN_RP_ID", "localhost")
os.environ.setdefault("ITEMVAULT_WEBAUTHN_ORIGIN", "http://localhost:3000")
os.environ.setdefault("ITEMVAULT_DB_URL", "sqlite://")
os.environ.setdefault("ITEMVAULT_BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from sqlalchemy import Connection, create_engine, event, text  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from webauthn.helpers import bytes_to_base64url  # noqa: E402

# Matches Alembic head: 8b4e6d0c2f31 (create items)
SCHEMA_DDL = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username VARCHAR(150) NOT NULL UNIQUE,
    password_hash TEXT,
    passkey_credential_id VARCHAR(512) UNIQUE,
    passkey_public_key TEXT,
    passkey_sign_count INTEGER NOT NULL DEFAULT 0,
    current_challenge TEXT,
    failed_attempts INTEGER NOT NULL DEFAULT 0,
    last_attempt_time DATETIME,
    locked_until DATETIME,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(255) NOT NULL,
    description TEXT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    created_at DATETIME NOT NULL
);
"""


def apply_schema(conn: Connection) -> None:
    for statement in SCHEMA_DDL.strip().split(";"):
        stmt = statement.strip()
        if stmt:
            conn.execute(text(stmt))
    conn.commit()


@pytest.fixture()
def db_engine() -> Engine:
    engine = create_engine("sqlite:///:memory:")

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    return engine


@pytest.fixture()
def db_connection(db_engine: Engine) -> Connection:
    conn = db_engine.connect()
    apply_schema(conn)
    yield conn
    conn.close()


def assertion_json(credential_id: str | None = None, client_data: str | None = None) -> dict:
    """A structurally valid WebAuthn assertion as a browser would post it.

    The signature is junk; tests patch the verifier.
    """
    credential_id = credential_id or bytes_to_base64url(b"credential-id")
    if client_data is None:
        client_data = bytes_to_base64url(
            json.dumps(
                {"type": "webauthn.get", "challenge": "Y2hhbGxlbmdl", "origin": "http://localhost:3000"}
            ).encode()
        )
    return {
        "id": credential_id,
        "rawId": credential_id,
        "type": "public-key",
        "response": {
            "clientDataJSON": client_data,
            "authenticatorData": bytes_to_base64url(b"\x00" * 37),
            "signature": bytes_to_base64url(b"signature"),
        },
    }
