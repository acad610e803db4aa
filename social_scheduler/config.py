import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from social_scheduler.errors import ConfigurationError

# Load a local .env file if present. Existing environment variables win.
load_dotenv()


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.environ.get(name)
    if raw is None:
        return default
    raw = raw.strip()
    return raw if raw else default


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _from_env(*names: str, default: Optional[str] = None):
    def _read() -> Optional[str]:
        for n in names:
            v = _env(n)
            if v is not None:
                return v
        return default

    return field(default_factory=_read)


def _cookie_secure_default() -> bool:
    explicit = _env_bool("AUTH_COOKIE_SECURE", None)
    if explicit is not None:
        return explicit
    return (_env("PUBLIC_APP_URL", "http://localhost:3000") or "").lower().startswith("https://")


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Values are read from the environment when the Config is built, so tests can
    set variables before calling `load_config()`.

    Required: a database connection string and a token signing secret. Both are
    checked by `load_config()`; there are no silent defaults for either.
    """

    # -----------------
    # Core
    # -----------------
    # SQLite file path (or sqlite:///path) by default; a postgres:// URL selects Postgres.
    DB_DSN: Optional[str] = _from_env("SCHEDULER_DATABASE_URL", "DATABASE_URL")
    DB_CONNECT_TIMEOUT_SECONDS: float = field(
        default_factory=lambda: float(_env("DB_CONNECT_TIMEOUT_SECONDS", "10") or "10")
    )
    DB_POOL_MAX_CONNECTIONS: int = field(
        default_factory=lambda: int(_env("DB_POOL_MAX_CONNECTIONS", "10") or "10")
    )

    # -----------------
    # Auth (JWT)
    # -----------------
    AUTH_JWT_SECRET: Optional[str] = _from_env("AUTH_JWT_SECRET", "JWT_SECRET")
    AUTH_TOKEN_EXPIRE_MINUTES: int = field(
        default_factory=lambda: int(_env("AUTH_TOKEN_EXPIRE_MINUTES", "10080") or "10080")  # 7 days
    )

    # Bootstrap first admin user if the users table is empty.
    # Unlike the signing secret these have no defaults: no credentials, no admin.
    AUTH_BOOTSTRAP_ADMIN_EMAIL: Optional[str] = _from_env("AUTH_BOOTSTRAP_ADMIN_EMAIL")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: Optional[str] = _from_env("AUTH_BOOTSTRAP_ADMIN_PASSWORD")
    AUTH_BOOTSTRAP_ADMIN_NAME: str = _from_env("AUTH_BOOTSTRAP_ADMIN_NAME", default="Administrator")

    # Cookie-based browser sessions
    # - /auth/login sets an httpOnly cookie carrying the same token it returns
    # - the auth gate reads Authorization: Bearer ... first, then the cookie
    AUTH_COOKIE_NAME: str = _from_env("AUTH_COOKIE_NAME", default="token")
    AUTH_COOKIE_DOMAIN: Optional[str] = _from_env("AUTH_COOKIE_DOMAIN")
    AUTH_COOKIE_PATH: str = _from_env("AUTH_COOKIE_PATH", default="/")
    AUTH_COOKIE_SAMESITE: str = _from_env("AUTH_COOKIE_SAMESITE", default="lax")  # lax|strict|none
    # NOTE: Browsers require Secure when SameSite=None.
    AUTH_COOKIE_SECURE: bool = field(default_factory=_cookie_secure_default)

    # -----------------
    # CORS (development)
    # -----------------
    CORS_ALLOW_ORIGINS: str = _from_env(
        "CORS_ALLOW_ORIGINS",
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
    )

    # Include exception text in 500 responses. Development only.
    EXPOSE_ERROR_DETAILS: bool = field(default_factory=lambda: _env_bool("EXPOSE_ERROR_DETAILS", False) is True)

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in (self.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]

    @property
    def token_max_age_seconds(self) -> int:
        return max(1, int(self.AUTH_TOKEN_EXPIRE_MINUTES)) * 60


def load_config() -> Config:
    """Build the Config and fail fast on missing required settings."""
    cfg = Config()

    missing = []
    if not cfg.DB_DSN:
        missing.append("SCHEDULER_DATABASE_URL (or DATABASE_URL)")
    if not cfg.AUTH_JWT_SECRET:
        missing.append("AUTH_JWT_SECRET")
    if missing:
        raise ConfigurationError(
            "Missing required configuration: " + ", ".join(missing),
            details={"missing": missing},
        )

    if cfg.AUTH_COOKIE_SAMESITE.lower() not in ("lax", "strict", "none"):
        raise ConfigurationError(f"Invalid AUTH_COOKIE_SAMESITE: {cfg.AUTH_COOKIE_SAMESITE}")

    return cfg
