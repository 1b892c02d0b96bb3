"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for LinkPass happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. stytch_secret -> STYTCH_SECRET).

  @model_validator(mode="after"): cross-field checks once every field is
      resolved. Production mode (DEBUG not set) refuses to start without
      Stytch credentials; debug mode only warns, so local runs and tests work
      against a fake provider.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("linkpass.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'linkpass.db'}"


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
    app_env: str = "development"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Magic links
    # ------------------------------------------------------------------

    # Base URL of the front end. The emailed link points at
    # {frontend_url}/verify-magic-link unless an explicit URL is set below.
    frontend_url: str = "http://localhost:3000"
    login_redirect_url: str = ""
    signup_redirect_url: str = ""

    stytch_project_id: str = ""
    stytch_secret: str = ""
    # Empty means "derive from project id" (test vs live environment).
    stytch_api_base: str = ""
    stytch_timeout_seconds: float = 10.0
    # 0 = do not ask Stytch for its own session; provider session ids come back empty.
    stytch_session_duration_minutes: int = 0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # Comma-separated values.
    cors_allow_origins: str = "http://localhost:3000,http://localhost:3001"
    allowed_hosts: str = "*"
    auth_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_provider_credentials(self) -> "Settings":
        """Require Stytch credentials outside debug mode.

        Without them every sign-up and sign-in would fail at the provider
        call, after the user row was already written.
        """
        if not (self.stytch_project_id and self.stytch_secret):
            if self.debug:
                logger.warning(
                    "WARNING: STYTCH_PROJECT_ID / STYTCH_SECRET not set. " "Magic links cannot be sent."
                )
            else:
                raise ValueError(
                    "STYTCH_PROJECT_ID and STYTCH_SECRET are required in production mode. "
                    "Set them in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if self.stytch_timeout_seconds <= 0:
            raise ValueError("STYTCH_TIMEOUT_SECONDS must be positive.")
        return self

    @property
    def magic_link_login_url(self) -> str:
        return self.login_redirect_url or f"{self.frontend_url.rstrip('/')}/verify-magic-link"

    @property
    def magic_link_signup_url(self) -> str:
        return self.signup_redirect_url or f"{self.frontend_url.rstrip('/')}/verify-magic-link"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]

    @property
    def allowed_hosts_list(self) -> list[str]:
        return [h.strip() for h in self.allowed_hosts.split(",") if h.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
