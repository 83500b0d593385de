"""
core/config.py -- CourseGate settings, read once from the environment.

Every tunable lives on Settings; other modules call get_settings() rather
than reading os.environ themselves. Field names map to upper-case env vars
(token_expire_seconds -> TOKEN_EXPIRE_SECONDS) and a local .env is honoured.

Signing key policy:
  [K1] SECRET_KEY must be at least 32 characters. Every session token's
       integrity rests on it.
  [K2] With DEBUG=true and no SECRET_KEY, a throwaway key is generated and a
       warning logged; all sessions die on restart. Without DEBUG, a missing
       key stops startup.

Layer rule: core/ imports nothing from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("coursegate.config")

# 3 days, matching the lifetime of the session cookie.
_THREE_DAYS = 3 * 24 * 60 * 60


class Settings(BaseSettings):
    """Settings for one CourseGate process.

    Every field has a default, so Settings() builds without a .env file;
    only SECRET_KEY is checked further (see validate_secret_key).
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
    # "production" switches the session cookie to Secure + SameSite=None.
    environment: str = "development"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = "sqlite:///coursegate.db"

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    token_expire_seconds: int = _THREE_DAYS

    # ------------------------------------------------------------------
    # Signup / login
    # ------------------------------------------------------------------

    # Roles a caller may request for themselves at signup. Anything else
    # falls back to "user".
    self_assignable_roles: list[str] = ["user", "teacher"]
    # When false, unknown email and wrong password produce the same message.
    reveal_login_failure_field: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Apply the signing key policy [K1] [K2]."""
        if not self.secret_key:
            if not self.debug:
                raise ValueError(
                    "SECRET_KEY is not set. Provide one via the environment or .env, "
                    "or set DEBUG=true to run with a throwaway key."
                )
            self.secret_key = secrets.token_hex(32)
            logger.warning("SECRET_KEY not set; generated a throwaway key. Sessions end on restart.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first call.

    Tests that change the environment afterwards must call
    get_settings.cache_clear().
    """
    return Settings()
