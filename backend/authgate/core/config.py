"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

DEFAULT_ACCESS_SECRET: Final[str] = "default-access-secret-change-in-production"
DEFAULT_REFRESH_SECRET: Final[str] = "default-refresh-secret-change-in-production"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}

# Loads .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


def parse_duration(value: str | int | timedelta) -> timedelta:
    """Convert a compact duration such as ``"15m"`` or ``"7d"`` into a timedelta.

    Parameters
    ----------
    value: str | int | datetime.timedelta
        Either a ``timedelta``, a number of seconds, or a string made of an
        integer followed by one of ``s``, ``m``, ``h`` or ``d``. A bare number
        string is read as seconds.

    Returns
    -------
    datetime.timedelta
        Parsed, strictly positive duration.

    Raises
    ------
    ValueError
        If the value cannot be parsed or is not positive.
    """
    if isinstance(value, timedelta):
        delta = value
    elif isinstance(value, int):
        delta = timedelta(seconds=value)
    else:
        match = _DURATION_RE.match(str(value))
        if match is None:
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        delta = timedelta(seconds=int(amount) * _DURATION_UNITS[unit.lower()])
    if delta <= timedelta(0):
        raise ValueError(f"Duration must be positive: {value!r}")
    return delta


def build_engine_options(database_uri: str) -> dict[str, Any]:
    """Return ``SQLALCHEMY_ENGINE_OPTIONS`` suited to the configured database.

    Server databases get a bounded pool with an acquisition timeout, so pool
    exhaustion fails with :class:`sqlalchemy.exc.TimeoutError` instead of
    blocking. PostgreSQL connections also carry a per-statement timeout.
    SQLite keeps the driver defaults.
    """
    if database_uri.startswith("sqlite"):
        return {}

    options: dict[str, Any] = {
        "pool_size": env_int("DB_POOL_SIZE", 20),
        "max_overflow": env_int("DB_MAX_OVERFLOW", 0),
        "pool_timeout": env_int("DB_POOL_TIMEOUT", 5),
        "pool_recycle": env_int("DB_POOL_RECYCLE", 1800),
        "pool_pre_ping": True,
    }
    if database_uri.startswith("postgresql"):
        statement_timeout = env_int("DB_STATEMENT_TIMEOUT_MS", 5000)
        options["connect_args"] = {
            "connect_timeout": env_int("DB_CONNECT_TIMEOUT", 5),
            "options": f"-c statement_timeout={statement_timeout}",
        }
    return options


def _database_uri() -> str:
    return os.getenv("DB_URL") or os.getenv("DATABASE_URL") or "sqlite:///./dev.db"


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing (OAuth ``state``).
    JWT_ACCESS_SECRET: str
        Signing key for access tokens. Also handed to ``flask-jwt-extended``
        so protected routes can read the access cookie.
    JWT_REFRESH_SECRET: str
        Signing key for refresh tokens. Must differ from the access secret.
    JWT_ACCESS_EXPIRY, JWT_REFRESH_EXPIRY: str
        Token lifetimes in the compact ``"15m"`` / ``"7d"`` notation.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy (``DB_URL`` or
        ``DATABASE_URL``).
    SQLALCHEMY_ENGINE_OPTIONS: dict
        Pool sizing and timeouts, see :func:`build_engine_options`.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    LOG_DIR: str | None
        Directory receiving the daily rotated log file, when set.
    COOKIE_SECURE: bool
        Whether auth cookies carry the ``Secure`` flag.
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    APP_ENV = "development"
    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", DEFAULT_ACCESS_SECRET)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", DEFAULT_REFRESH_SECRET)
    JWT_ACCESS_EXPIRY = os.getenv("JWT_ACCESS_EXPIRY", "15m")
    JWT_REFRESH_EXPIRY = os.getenv("JWT_REFRESH_EXPIRY", "7d")

    # flask-jwt-extended reads the access cookie on protected routes
    JWT_TOKEN_LOCATION = ["cookies"]
    JWT_ACCESS_COOKIE_NAME = "accessToken"
    JWT_REFRESH_COOKIE_NAME = "refreshToken"
    JWT_IDENTITY_CLAIM = "userid"
    JWT_COOKIE_CSRF_PROTECT = False
    JWT_ALGORITHM = "HS256"

    # Cookies
    COOKIE_SECURE = env_bool("COOKIE_SECURE", False)
    COOKIE_SAMESITE = "Strict"

    # DB
    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_ENGINE_OPTIONS = build_engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR") or None
    LOG_RETENTION_DAYS = env_int("LOG_RETENTION_DAYS", 14)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    # Google OAuth (authorization-code flow)
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
    OAUTH_REDIRECT_URI = os.getenv("OAUTH_REDIRECT_URI")
    OAUTH_HTTP_TIMEOUT = env_int("OAUTH_HTTP_TIMEOUT", 5)
    SOCIAL_LOGIN_REDIRECT_URL = os.getenv("SOCIAL_LOGIN_REDIRECT_URL", "/dashboard")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and exposes internal error details in the
    JSON error envelope.
    """

    APP_ENV = "development"
    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    APP_ENV = "testing"
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = build_engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    PROPAGATE_EXCEPTIONS = True
    LOG_DIR = None


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled and marks auth cookies ``Secure``
    unless ``COOKIE_SECURE`` says otherwise. :func:`validate_config` refuses
    to boot with the default signing secrets.
    """

    APP_ENV = "production"
    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    COOKIE_SECURE = env_bool("COOKIE_SECURE", True)


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)


def validate_config(config: Mapping[str, Any]) -> None:
    """Reject unsafe settings before the application starts serving.

    :param config: Loaded Flask configuration.
    :raises RuntimeError: If production runs with default secrets, or the
        access and refresh secrets are identical.
    """
    access = config.get("JWT_ACCESS_SECRET")
    refresh = config.get("JWT_REFRESH_SECRET")
    if not access or not refresh:
        raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be set.")
    if access == refresh:
        raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ.")
    if config.get("APP_ENV") == "production":
        if access == DEFAULT_ACCESS_SECRET or refresh == DEFAULT_REFRESH_SECRET:
            raise RuntimeError("Default JWT secrets are not allowed in production.")
        if config.get("SECRET_KEY") in (None, "", "CHANGE_ME"):
            raise RuntimeError("SECRET_KEY must be set in production.")
