"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for AuthGate happen here. No module should
call os.getenv() or os.environ.get() directly. Library code receives a
Settings instance explicitly (create_app(settings), AuthService(...)); only
the entry points (asgi.py, main.py) call get_settings().

Secrets policy:
  Two signing secrets, one per token kind. A leaked refresh secret must not
  mint access tokens, so the two values are required to differ.

  Debug mode (DEBUG=true) auto-generates any missing secret with a warning.
  Production mode refuses to start without both. Secrets shorter than 32
  characters are rejected in either mode.

Environment-dependent defaults (resolved once in the model validator):
  secure_cookies        False in debug, True otherwise
  cookie_samesite       "lax" in debug, "none" otherwise (cross-site frontend)
  rate_limit_max_requests  100 per window in debug, 20 otherwise

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'authgate.db'}"

_MIN_SECRET_LENGTH = 32


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings(debug=True) can be instantiated in
    test environments without a real .env file. Field names map to upper-case
    environment variables (access_token_secret -> ACCESS_TOKEN_SECRET).
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
    app_version: str = "1.0.0"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    access_token_expire_seconds: int = Field(default=15 * 60, gt=0)
    refresh_token_expire_seconds: int = Field(default=7 * 24 * 60 * 60, gt=0)
    rotate_refresh_tokens: bool = True

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    token_transport: Literal["cookie", "bearer"] = "cookie"
    secure_cookies: Optional[bool] = None
    cookie_samesite: Optional[Literal["lax", "strict", "none"]] = None
    cookie_domain: str = ""
    cookie_path: str = "/"

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    admin_emails: str = ""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_max_requests: Optional[int] = Field(default=None, gt=0)
    rate_limit_window_seconds: int = Field(default=15 * 60, gt=0)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: str = "http://localhost:3000"
    allowed_hosts: str = "*"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Fill or reject the signing secrets.

        Debug mode generates any missing secret; tokens will not survive a
        restart, which is acceptable for local development. Production mode
        raises so a misconfigured deployment fails at startup instead of
        silently invalidating every session on restart.
        """
        for name in ("access_token_secret", "refresh_token_secret"):
            value = getattr(self, name)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{name.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, name, value)
                logger.warning("Using auto-generated %s. Tokens will not persist across restarts.", name.upper())
            if len(value) < _MIN_SECRET_LENGTH:
                raise ValueError(f"{name.upper()} must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        return self

    @model_validator(mode="after")
    def resolve_environment_defaults(self) -> "Settings":
        """Apply the debug/production defaults for fields left unset."""
        if self.secure_cookies is None:
            self.secure_cookies = not self.debug
        if self.cookie_samesite is None:
            self.cookie_samesite = "lax" if self.debug else "none"
        if self.cookie_samesite == "none" and not self.secure_cookies:
            # Browsers drop SameSite=None cookies that are not Secure.
            raise ValueError("COOKIE_SAMESITE=none requires SECURE_COOKIES=true.")
        if self.rate_limit_max_requests is None:
            self.rate_limit_max_requests = 100 if self.debug else 20
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def environment(self) -> str:
        return "development" if self.debug else "production"

    @property
    def admin_email_set(self) -> frozenset[str]:
        """Allow-list for elevated routes, normalized like stored emails."""
        return frozenset(email.lower() for email in _split_csv(self.admin_emails))

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    @property
    def allowed_host_list(self) -> list[str]:
        return _split_csv(self.allowed_hosts) or ["*"]

    @property
    def effective_cookie_domain(self) -> Optional[str]:
        # Local development runs on localhost, where an explicit domain breaks cookies.
        if self.debug or not self.cookie_domain:
            return None
        return self.cookie_domain


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings for the entry points.

    Only asgi.py and main.py call this. Everything else is handed the
    instance they built, so tests can construct Settings(...) directly
    without clearing this cache.
    """
    return Settings()
