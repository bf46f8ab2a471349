from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, BeforeValidator, Field


def _strip(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


StrippedStr = Annotated[str, BeforeValidator(_strip)]


class RegisterRequest(BaseModel):
    username: StrippedStr = Field(min_length=3, max_length=150)
    password: str = Field(max_length=128)


class LoginRequest(BaseModel):
    username: StrippedStr = Field(min_length=1, max_length=150)
    password: str = Field(min_length=1, max_length=128)


class PasskeyLoginRequest(BaseModel):
    username: StrippedStr = Field(min_length=1, max_length=150)


class ItemRequest(BaseModel):
    name: StrippedStr = Field(min_length=1, max_length=255)
    description: StrippedStr | None = Field(default=None, max_length=2000)
