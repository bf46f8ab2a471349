from __future__ import annotations

import re

MIN_LENGTH = 8
SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (re.compile(f"[{re.escape(SPECIAL_CHARACTERS)}]"), "Password must contain at least one special character"),
]


def validate_password(password: str) -> list[str]:
    """Return every policy violation for ``password``; empty means acceptable.

    All rules are evaluated so the caller can report them in one response.
    """
    errors: list[str] = []
    if len(password) < MIN_LENGTH:
        errors.append(f"Password must be at least {MIN_LENGTH} characters long")
    for pattern, message in _RULES:
        if not pattern.search(password):
            errors.append(message)
    return errors
