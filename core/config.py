"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for the auth core happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_key -> JWT_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates a signing key with a
      warning, production mode refuses to start without one.

Security notes:
  [K1] A missing JWT_KEY outside DEBUG mode is a hard startup failure. Every
       session and reset token is signed with it; there is no safe fallback.

  [K2] JWT_KEY shorter than 32 chars is rejected outright. HMAC-SHA256 relies
       on key entropy -- a short key weakens every issued token.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, PrivateAttr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("accountauth.config")

_MIN_KEY_LENGTH = 32


class Settings(BaseSettings):
    """Settings loaded from environment variables and .env file.

    All fields except jwt_key have defaults so Settings() can be instantiated
    in test environments with DEBUG=true and no .env file.
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
    log_level: str = "INFO"
    database_url: str = "sqlite:///accountauth.db"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured" [K1].
    jwt_key: str = ""
    jwt_issuer: str = "accountauth"
    jwt_audience: str = "accountauth-clients"
    session_token_minutes: int = Field(default=120, gt=0)
    reset_token_minutes: int = Field(default=60, gt=0)

    # Base URL of the web frontend that hosts the /reset-password page.
    frontend_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    # bcrypt accepts 4..31. Each step doubles the cost.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # True when validate_jwt_key() had to invent the key (DEBUG mode only).
    _jwt_key_generated: bool = PrivateAttr(default=False)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_key(self) -> "Settings":
        """Enforce the signing-key policy [K1] [K2].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Issued tokens will not survive a restart.

        Production mode: refuse to start if JWT_KEY is missing.
        """
        if not self.jwt_key:
            if self.debug:
                self.jwt_key = secrets.token_hex(32)
                self._jwt_key_generated = True
                logger.warning("Using auto-generated JWT_KEY. Issued tokens will not survive a restart.")
            else:
                raise ValueError(
                    "JWT_KEY is required in production mode. "
                    "Set JWT_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_key) < _MIN_KEY_LENGTH:
            raise ValueError(f"JWT_KEY must be at least {_MIN_KEY_LENGTH} characters.")
        return self

    @property
    def jwt_key_generated(self) -> bool:
        """A generated key lives only as long as this process; tokens signed
        with it cannot be validated by any other process."""
        return self._jwt_key_generated


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
