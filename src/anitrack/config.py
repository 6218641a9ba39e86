"""Runtime configuration for the anitrack web server."""

from __future__ import annotations

import os
from dataclasses import dataclass

from anitrack.auth.models.errors import ConfigError

MAL_AUTHORIZE_URL = "https://myanimelist.net/v1/oauth2/authorize"
MAL_TOKEN_URL = "https://myanimelist.net/v1/oauth2/token"

COOKIE_DURATION = 30 * 24 * 60 * 60  # 30 days, in seconds

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigError(f"Missing required environment variable {name}")
    return value


@dataclass(frozen=True)
class AppConfig:
    """Server configuration.

    Secrets have no defaults. Use from_env() to load everything from the
    process environment.
    """

    web_url: str
    client_id: str
    client_secret: str
    encryption_key: str

    # Provider endpoints
    authorize_url: str = MAL_AUTHORIZE_URL
    token_url: str = MAL_TOKEN_URL
    provider_timeout: float = 10.0

    # Refresh the access token this many seconds before it expires
    token_refresh_buffer: float = 60.0

    # Pipeline stages
    trust_proxy: bool = False
    enable_cors: bool = False
    enable_static_files: bool = False
    enable_telemetry: bool = False

    static_dir: str = "dist/public"
    static_path: str = "/public"

    # Session cookie
    cookie_name: str = "anitrack.sid"
    cookie_max_age: int = COOKIE_DURATION

    host: str = "127.0.0.1"
    port: int = 8080

    @property
    def redirect_uri(self) -> str:
        """Callback URL registered with the provider."""
        return f"{self.web_url.rstrip('/')}/api/oauth"

    @property
    def cookie_secure(self) -> bool:
        """Cookies are only sent over https when the deployment is https."""
        return self.web_url.startswith("https")

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Environment variable mapping:
        - WEB_URL: Public URL of the deployment (required)
        - MAL_CLIENT_ID / MAL_CLIENT_SECRET: Provider credentials (required)
        - ENCRYPTION_KEY: Session cookie signing key (required)
        - TRUST_PROXY, ENABLE_CORS, ENABLE_STATIC_FILES, ENABLE_TELEMETRY:
          Pipeline stage flags (true/false)
        - STATIC_DIR / STATIC_PATH: Static file directory and mount path
        - PROVIDER_TIMEOUT: Token endpoint timeout in seconds
        - TOKEN_REFRESH_BUFFER: Seconds before expiry to refresh
        - HOST / PORT: Bind address
        """
        try:
            return cls(
                web_url=_require_env("WEB_URL"),
                client_id=_require_env("MAL_CLIENT_ID"),
                client_secret=_require_env("MAL_CLIENT_SECRET"),
                encryption_key=_require_env("ENCRYPTION_KEY"),
                provider_timeout=float(os.getenv("PROVIDER_TIMEOUT", "10")),
                token_refresh_buffer=float(os.getenv("TOKEN_REFRESH_BUFFER", "60")),
                trust_proxy=_env_flag("TRUST_PROXY", False),
                enable_cors=_env_flag("ENABLE_CORS", False),
                enable_static_files=_env_flag("ENABLE_STATIC_FILES", False),
                enable_telemetry=_env_flag("ENABLE_TELEMETRY", False),
                static_dir=os.getenv("STATIC_DIR", "dist/public"),
                static_path=os.getenv("STATIC_PATH", "/public"),
                host=os.getenv("HOST", "127.0.0.1"),
                port=int(os.getenv("PORT", "8080")),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e
