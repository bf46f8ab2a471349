"""Typed failures raised by the services.

Each class carries the HTTP status it maps to; ``web.errors`` is the only
place that turns them into responses.
"""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Required configuration is missing. Fatal at startup."""


class ItemVaultError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationFailure(ItemVaultError):
    status_code = 400
    message = "Validation failed"

    def __init__(self, reasons: list[str] | str) -> None:
        self.reasons = [reasons] if isinstance(reasons, str) else list(reasons)
        super().__init__("; ".join(self.reasons))

    def to_dict(self) -> dict:
        return {"errors": self.reasons}


class PasskeyVerificationFailed(ItemVaultError):
    status_code = 400
    message = "Passkey registration failed"


class Conflict(ItemVaultError):
    status_code = 400
    message = "Username already exists"


class AuthenticationFailure(ItemVaultError):
    status_code = 401
    message = "Invalid credentials"


class LockedAccount(ItemVaultError):
    status_code = 403

    def __init__(self, remaining_minutes: int) -> None:
        self.remaining_minutes = remaining_minutes
        super().__init__(f"Account is locked. Try again in {remaining_minutes} minutes")

    def to_dict(self) -> dict:
        return {"error": self.message, "remaining_minutes": self.remaining_minutes}


class NotFound(ItemVaultError):
    status_code = 404
    message = "Not found"


class ItemNotFound(NotFound):
    message = "Item not found"


class PasskeyNotRegistered(NotFound):
    status_code = 400
    message = "No passkey found for this user"
