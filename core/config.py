"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for OpenDiary happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. database_url -> DATABASE_URL).

  @model_validator(mode="after"): dev mode (DEBUG=true) falls back to a local
      SQLite file with a warning; production mode refuses to start without an
      explicit DATABASE_URL.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("opendiary.config")

_DEV_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'opendiary_dev.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    host: str = "127.0.0.1"
    port: int = 3000

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    database_url: str = ""
    db_max_connections: int = 5

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    session_lifetime_seconds: int = 2 * 24 * 60 * 60
    bcrypt_rounds: int = 12
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return value

    @field_validator("session_lifetime_seconds", "db_max_connections")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer.")
        return value

    @model_validator(mode="after")
    def validate_database_url(self) -> "Settings":
        """Enforce DATABASE_URL policy.

        Dev mode (DEBUG=true): fall back to a SQLite file next to the project
            so the server can start with zero configuration.

        Production mode: refuse to start without DATABASE_URL. Silently
            writing accounts to a throwaway local file would lose them.
        """
        if not self.database_url:
            if self.debug:
                self.database_url = _DEV_DB_URL
                logger.warning("WARNING: DATABASE_URL not set, using local SQLite database %s", _DEV_DB_URL)
            else:
                raise ValueError(
                    "DATABASE_URL is required in production mode. "
                    "Set DATABASE_URL in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
