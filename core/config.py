"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for sessiongate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_window_minutes -> ACCESS_WINDOW_MINUTES). Type coercion and
      validation are built in. List fields are read as JSON arrays, e.g.
      PUBLIC_PATHS='["/", "/login", "/about"]'.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used to enforce the timing invariants the
      renewal scheduler depends on.

Timing invariants:
  The proactive renewal timer fires at (access window - safety margin). The
  client cannot read the access cookie's real expiry (it is httpOnly), so the
  fixed interval is only safe while it is strictly shorter than the window.
  A margin >= the window is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or client/.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sessiongate.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces the
    timing and routing rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Credential validator (remote identity authority)
    # ------------------------------------------------------------------

    validator_base_url: str = "https://dummyjson.com"
    # Overall per-request timeout for login, renewal and identify calls.
    request_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Session windows
    # ------------------------------------------------------------------

    access_window_minutes: int = 30
    renewal_window_days: int = 7
    # Renew this many minutes before the access window closes (30 - 5 = 25).
    renewal_safety_margin_minutes: int = 5
    # Client revalidation staleness window for the "who am I" query.
    reconcile_stale_seconds: int = 300

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Route guard
    # ------------------------------------------------------------------

    public_paths: list[str] = ["/", "/login", "/logout"]
    # Public paths an authenticated user is bounced away from.
    guest_only_paths: list[str] = ["/login"]
    login_path: str = "/login"
    dashboard_path: str = "/dashboard"
    return_param: str = "redirect"
    # API routes answer 401 themselves; static assets are never gated.
    gate_exempt_prefixes: list[str] = ["/api/", "/static/", "/favicon.ico"]

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def effective_log_level(self) -> str:
        """DEBUG=true forces debug logging regardless of LOG_LEVEL."""
        return "DEBUG" if self.debug else self.log_level.upper()

    @property
    def secure_cookies(self) -> bool:
        """Session cookies carry the Secure flag only in production."""
        return self.environment == "production"

    @property
    def access_max_age(self) -> int:
        return self.access_window_minutes * 60

    @property
    def renewal_max_age(self) -> int:
        return self.renewal_window_days * 24 * 60 * 60

    @property
    def renewal_delay_seconds(self) -> float:
        """Seconds after authentication at which the renewal timer fires."""
        return float((self.access_window_minutes - self.renewal_safety_margin_minutes) * 60)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_windows(self) -> "Settings":
        """Reject timing and routing combinations that break session invariants.

        - Every window must be positive.
        - The safety margin must leave a positive renewal delay, i.e. the
          proactive timer must fire strictly before the access window closes.
        - Guest-only paths must also be public; a guest-only path that is not
          public would redirect unauthenticated users to login and
          authenticated users to the dashboard, leaving no one able to see it.
        """
        if self.access_window_minutes <= 0 or self.renewal_window_days <= 0:
            raise ValueError("ACCESS_WINDOW_MINUTES and RENEWAL_WINDOW_DAYS must be positive.")
        if self.renewal_safety_margin_minutes <= 0:
            raise ValueError("RENEWAL_SAFETY_MARGIN_MINUTES must be positive.")
        if self.renewal_safety_margin_minutes >= self.access_window_minutes:
            raise ValueError(
                "RENEWAL_SAFETY_MARGIN_MINUTES must be shorter than ACCESS_WINDOW_MINUTES "
                "so renewal happens before the access cookie expires."
            )
        if self.request_timeout_seconds <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive.")
        if self.reconcile_stale_seconds <= 0:
            raise ValueError("RECONCILE_STALE_SECONDS must be positive.")
        stray = set(self.guest_only_paths) - set(self.public_paths)
        if stray:
            raise ValueError(f"GUEST_ONLY_PATHS must be a subset of PUBLIC_PATHS: {sorted(stray)}")
        if self.login_path not in self.public_paths:
            raise ValueError("LOGIN_PATH must be listed in PUBLIC_PATHS.")
        if self.environment != "production":
            logger.warning(
                "ENVIRONMENT=%s: session cookies are sent without the Secure flag.",
                self.environment,
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
