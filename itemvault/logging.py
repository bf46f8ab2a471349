import logging
import sys

from itemvault.settings import settings

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Loggers that record security events: failed logins, lockouts, token and
# passkey rejections.
AUTH_LOGGERS = (
    "itemvault.services.auth_gateway",
    "itemvault.services.lockout",
    "itemvault.services.passkey_service",
    "itemvault.services.token_service",
    "itemvault.services.user_service",
)


def _level(name: str, default: int) -> int:
    return getattr(logging, name.upper(), default) if name else default


def configure_logging() -> None:
    """Install one stderr handler on the root logger.

    ``log_json`` switches to structured output for log shippers.
    ``auth_log_level`` tunes the security-event loggers independently of the
    root level, e.g. ``DEBUG`` to see why tokens are rejected while the rest
    of the app stays at ``INFO``. Call again after Alembic's ``fileConfig``.
    """
    level = _level(settings.log_level, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    if settings.log_json:
        from pythonjsonlogger.json import JsonFormatter

        handler.setFormatter(
            JsonFormatter(
                fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
                rename_fields={"asctime": "timestamp", "levelname": "level"},
            )
        )
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    auth_level = _level(settings.auth_log_level, logging.NOTSET)
    for name in AUTH_LOGGERS:
        logging.getLogger(name).setLevel(auth_level)

    # Route handlers log auth events themselves.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


reconfigure = configure_logging
