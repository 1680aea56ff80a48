"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Devices API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from DEVICES_SERVER_*
      environment variables and an optional .env file. Field names map to env
      var names (e.g. jwt_secret -> DEVICES_SERVER_JWT_SECRET).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode (DEBUG=true) generates missing secrets with a warning;
      production mode refuses to start without them.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or inventory/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("devicesapi.config")

VERSION = "1.0.0"

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'inventory' / 'devices_api.db'}"

# Action granted to tokens minted by /admin/generate-admin-token. Always part
# of the allow-list, whatever ALLOWED_ACTIONS says.
ADMIN_ACTION = "ADMIN"

_MIN_SECRET_LENGTH = 16


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces the
    secret policy at startup.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEVICES_SERVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    app_name: str = "Devices API Server"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Secrets -- empty string is the "not configured" sentinel
    # ------------------------------------------------------------------

    jwt_secret: str = ""
    admin_secret: str = ""

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "0.0.0.0"  # nosec B104 -- server binds all interfaces behind TLS
    port: Optional[int] = None
    tls_enabled: bool = True
    tls_cert_file: str = "server.crt"
    tls_key_file: str = "server.key"
    stop_file: str = "tmp/stop"
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = []

    # ------------------------------------------------------------------
    # Tokens and cookies
    # ------------------------------------------------------------------

    allowed_actions: list[str] = [ADMIN_ACTION, "READ", "WRITE"]
    token_issuer: str = "Rubicon BMS"
    token_expire_days: int = 30
    cookie_max_age_seconds: int = 24 * 3600
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    authenticate_rate_limit: str = "10/minute"
    admin_rate_limit: str = "30/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the secret policy.

        Dev mode (DEBUG=true): generate missing secrets with a warning. Tokens
            will not survive a restart and the admin secret is only known to
            whoever reads the log -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.

        Both modes: reject JWT secrets shorter than 16 characters.
        """
        for field_name in ("jwt_secret", "admin_secret"):
            if getattr(self, field_name):
                continue
            env_name = f"DEVICES_SERVER_{field_name.upper()}"
            if not self.debug:
                raise ValueError(
                    f"{env_name} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEVICES_SERVER_DEBUG=true."
                )
            setattr(self, field_name, secrets.token_hex(32))
            logger.warning("Using auto-generated %s. Tokens will not persist across restarts.", env_name)
        if len(self.jwt_secret) < _MIN_SECRET_LENGTH:
            raise ValueError(f"DEVICES_SERVER_JWT_SECRET must be at least {_MIN_SECRET_LENGTH} characters.")
        if ADMIN_ACTION not in self.allowed_actions:
            self.allowed_actions = [ADMIN_ACTION, *self.allowed_actions]
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
