import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

from itemvault.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="ITEMVAULT_", extra="ignore")

    db_url: str = "sqlite:///itemvault.db"

    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    log_level: str = "INFO"
    log_json: bool = False
    auth_log_level: str = ""

    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    token_expire_hours: int = 24

    max_login_attempts: int = 5
    lockout_minutes: int = 15
    bcrypt_rounds: int = 12

    webauthn_rp_id: str = ""
    webauthn_rp_name: str = "Item Vault"
    webauthn_origin: str = "http://localhost:3000"

    def check_required(self) -> None:
        """Refuse to start without a signing secret and a relying-party id."""
        missing = []
        if not self.jwt_secret:
            missing.append("ITEMVAULT_JWT_SECRET")
        if not self.webauthn_rp_id:
            missing.append("ITEMVAULT_WEBAUTHN_RP_ID")
        if missing:
            logger.error("Missing required settings: %s", ", ".join(missing))
            raise ConfigurationError(f"{', '.join(missing)} environment variable is required")


settings = Settings()
