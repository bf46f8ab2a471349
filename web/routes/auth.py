from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from itemvault.errors import ValidationFailure
from web.deps import get_auth_gateway, get_current_user
from web.schemas import LoginRequest, PasskeyLoginRequest, RegisterRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")


async def _read_credential(request: Request) -> dict:
    """Parse a WebAuthn response body; anything but a JSON object is a 400."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None
    if not isinstance(body, dict):
        raise ValidationFailure("Malformed passkey response")
    return body


@router.post("/register")
async def register(request: Request, payload: RegisterRequest):
    gateway = get_auth_gateway(request)
    user = gateway.register(payload.username, payload.password)
    return JSONResponse({"message": "Registration successful", "user_id": user.id}, status_code=201)


@router.post("/login")
async def login(request: Request, payload: LoginRequest):
    gateway = get_auth_gateway(request)
    return JSONResponse(gateway.login(payload.username, payload.password))


@router.get("/me")
async def me(request: Request):
    user = get_current_user(request)
    return JSONResponse(
        {
            "message": "You have access to this protected route",
            "user": {"id": user.id, "username": user.username, "has_passkey": user.has_passkey},
        }
    )


# --- Passkey registration (bearer token required) ---


@router.post("/passkey/register")
async def passkey_register_begin(request: Request):
    user = get_current_user(request)
    options = get_auth_gateway(request).start_passkey_registration(user)
    return JSONResponse(options)


@router.post("/passkey/verify")
async def passkey_register_complete(request: Request):
    user = get_current_user(request)
    credential = await _read_credential(request)
    get_auth_gateway(request).finish_passkey_registration(user, credential)
    return JSONResponse({"message": "Passkey registered successfully"})


# --- Passkey login ---


@router.post("/passkey/login")
async def passkey_login_begin(request: Request, payload: PasskeyLoginRequest):
    options = get_auth_gateway(request).start_passkey_login(payload.username)
    return JSONResponse(options)


@router.post("/passkey/login/verify")
async def passkey_login_complete(request: Request):
    credential = await _read_credential(request)
    username = credential.get("username")
    if not isinstance(username, str) or not username.strip():
        raise ValidationFailure("username: Field required")
    token = get_auth_gateway(request).finish_passkey_login(username.strip(), credential)
    return JSONResponse({"token": token})
