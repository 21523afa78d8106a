"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for tokengate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Explicit wiring: the Settings object is read once at startup (api/main.py
      lifespan) and its values are passed into component constructors. The
      hasher, issuer, registry and gate never call get_settings() themselves,
      so tests can build components with any configuration they like.

  @model_validator(mode="after"): cross-field validation after all fields
      are resolved. Dev mode generates a SECRET_KEY with a warning, production
      mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing and the
  refresh token digest both rely on key entropy.

  BCRYPT_ROUNDS below 10 is rejected -- the work factor is what makes offline
  guessing against a leaked credential table expensive.

Layer rule: core/ is the kernel. This module may not import from api/, auth/
or posts/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tokengate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'tokengate.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (DEBUG=true still required when no
    SECRET_KEY is set).

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `secret_key` reads from SECRET_KEY, `debug` reads from DEBUG.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    access_token_expire_seconds: int = Field(default=900, gt=0)  # 15 minutes
    refresh_token_expire_days: int = Field(default=30, gt=0)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    password_min_length: int = Field(default=8, ge=6)
    bcrypt_rounds: int = Field(default=12, ge=10, le=31)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Issued tokens will not survive a restart.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Issued tokens will not survive a restart.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
