from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class TokenClaims(BaseModel):
    user_id: int
    username: str
    issued_at: datetime
    expires_at: datetime
