"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the app server happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead,
or better, accept a Settings instance as a constructor argument.

Design patterns used:
  Load once via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The
      FastAPI lifespan calls it at startup and hands the instance to every
      service it builds; nothing reads configuration after that.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. smtp_server -> SMTP_SERVER). Type coercion and validation are built in.

  frozen=True: configuration is immutable after startup.

Security notes:
  An unset token secret is a configuration weakness, not a startup failure.
  The validator below logs a warning; TokenService falls back to a hardcoded
  key and warns again when it is constructed.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or notify/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("appserver.config")

APP_NAME = "AppServer"
APP_LONG_NAME = "Example Application Server"
APP_DESCRIPTION = "Identity and notification core for a backend service"
APP_VERSION = "0.1.0"
APP_LICENSE = "MIT"
APP_AUTHOR = "AppServer Maintainers"

_DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "notify" / "templates"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    log_level: str = "info"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    jwt_secret: str = Field(default="", validation_alias=AliasChoices("JWT_SECRET", "CAKE_JWT_SECRET"))
    token_issuer: str = "CakePlanner"
    token_expire_seconds: int = 24 * 60 * 60
    totp_issuer: str = "CakePlanner"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    db_url: str = "sqlite:///./data/db/appserver.sqlite"

    # ------------------------------------------------------------------
    # Mail transport
    # ------------------------------------------------------------------

    smtp_server: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from: str = ""
    smtp_sender_name: str = "App Server"
    smtp_starttls: bool = True
    smtp_timeout: float = 10.0
    mail_template_dir: Path = _DEFAULT_TEMPLATE_DIR

    # Recipient of GET /api/system/test_email
    server_admin_name: str = "Admin Test"
    server_admin_email: str = "admin@example.com"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def warn_on_missing_secret(self) -> "Settings":
        """Warn when the token signing secret is missing.

        A missing secret is not fatal: tokens are still issued, signed with
        a well-known fallback key.
        """
        if not self.jwt_secret:
            logger.warning("JWT_SECRET is not set. Tokens will be signed with an unsafe default key.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings, loaded once.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables, or construct Settings(...)
    directly and pass it to the service under test.
    """
    return Settings()
