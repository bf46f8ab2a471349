from __future__ import annotations

import math
from datetime import datetime, timezone

from pydantic import BaseModel, field_validator


class User(BaseModel):
    id: int | None = None
    username: str
    password_hash: str | None = None
    failed_attempts: int = 0
    locked_until: datetime | None = None
    last_attempt_time: datetime | None = None
    passkey_credential_id: str | None = None
    passkey_public_key: str | None = None
    passkey_sign_count: int = 0
    current_challenge: str | None = None
    created_at: datetime | None = None

    @field_validator("locked_until", "last_attempt_time", "created_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # SQLite and MySQL hand back naive datetimes; everything is stored in UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def has_passkey(self) -> bool:
        return bool(self.passkey_credential_id)

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now

    def lock_remaining_minutes(self, now: datetime) -> int:
        if not self.is_locked(now):
            return 0
        return math.ceil((self.locked_until - now).total_seconds() / 60)
