from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class Item(BaseModel):
    id: int | None = None
    name: str
    description: str | None = None
    user_id: int = 0
    created_at: datetime | None = None
