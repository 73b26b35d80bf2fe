"""
core/config.py -- Settings for Beresta ID, read from the environment.

Every tunable lives on Settings. Field names double as env var names
(bcrypt_rounds <- BCRYPT_ROUNDS); values from a local .env are used when
the variable is not exported. Nothing else in the tree reads os.environ:
ask get_settings() instead.

get_settings() caches one Settings instance per process. FastAPI routes,
the CLI and the stores all share it.

Security notes:
  [M6] SECRET_KEY must be 32+ characters. It HS256-signs every session
       token, so a short key weakens all of them at once.

  [M7] Without DEBUG, a missing SECRET_KEY stops startup. A throwaway key
       would silently invalidate every session on each restart.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("berestaid.config")

SEVEN_DAYS_SECONDS = 7 * 24 * 60 * 60


class Settings(BaseSettings):
    """Process configuration. Every field has a default except the secret
    key outside DEBUG, which validate_secret_key() insists on.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key() replaces it or fails.
    secret_key: str = ""
    database_url: str = "sqlite:///berestaid.db"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = SEVEN_DAYS_SECONDS
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    # Comma-separated list; "*" allows any origin.
    allowed_origins: str = "http://localhost:3000"
    rate_limit_enabled: bool = True
    auth_rate_limit: str = "10 per 15 minutes"
    # Storage deadline applied to every request-scoped operation. 0 disables.
    request_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    # Background deletion of expired session rows. 0 disables the loop.
    session_purge_interval_seconds: int = 6 * 60 * 60

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        """bcrypt.gensalt() accepts log rounds in 4..31 only."""
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return value

    @field_validator("token_expire_seconds")
    @classmethod
    def validate_token_expiry(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown LOG_LEVEL {value!r}.")
        return level

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """SECRET_KEY policy [M6] [M7].

        DEBUG=true with no key: generate one and warn (sessions die on restart).
        DEBUG off with no key: fail. Any key under 32 characters: fail.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "SECRET_KEY not set; generated a temporary key. Sessions will not survive a restart."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required unless DEBUG=true. "
                    "Export it or add it to .env."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def cors_origins(self) -> list[str]:
        """ALLOWED_ORIGINS split into a list, blanks dropped."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Cached Settings for this process.

    Tests that change environment variables call get_settings.cache_clear()
    before and after.
    """
    return Settings()
