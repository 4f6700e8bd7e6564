"""Application configuration helpers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
import logging
import os

logger = logging.getLogger(__name__)

DEVELOPMENT_ENV = "development"

DEFAULT_PORT = 3000
DEFAULT_DB_PORT = 5432
DEFAULT_DB_POOL_MAX = 20
DEFAULT_DB_POOL_MIN = 5
DEFAULT_RATE_LIMIT_WINDOW_MS = 60000
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 100


class ConfigurationError(ValueError):
    """Raised when environment configuration is missing or invalid."""


def redact_secret(secret: str | None) -> str:
    """Return a non-recoverable placeholder for sensitive values."""
    if not secret:
        return "<empty>"
    return "<redacted>"


class _EnvReader:
    """Read typed values from an environment mapping, collecting parse problems."""

    def __init__(self, environ: Mapping[str, str]) -> None:
        self._environ = environ
        self.errors: list[str] = []

    def get_str(self, name: str, default: str | None = None) -> str | None:
        # Empty values count as unset.
        raw = self._environ.get(name)
        if not raw:
            return default
        return raw

    def get_int(self, name: str, default: int) -> int:
        raw = self._environ.get(name)
        if not raw:
            return default
        try:
            return int(raw.strip())
        except ValueError:
            self.errors.append(f"{name} must be an integer")
            return default

    def get_flag(self, name: str, default: bool) -> bool:
        raw = self._environ.get(name)
        if not raw:
            return default
        return raw == "true"


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    name: str
    user: str
    password: str
    pool_max: int
    pool_min: int
    url_override: str | None = None


@dataclass(frozen=True)
class SearchSettings:
    """Elasticsearch node, index and credentials."""

    node: str
    index: str
    username: str | None = None
    password: str | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)


@dataclass(frozen=True)
class ApiSettings:
    rate_limit_window_ms: int
    rate_limit_max_requests: int
    cors_origin: str = "*"

    @property
    def rate_limit(self) -> str:
        """Limit expression understood by slowapi, e.g. ``100/60 seconds``."""
        window_seconds = max(1, self.rate_limit_window_ms // 1000)
        return f"{self.rate_limit_max_requests}/{window_seconds} seconds"


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    file: str | None = None


@dataclass(frozen=True)
class PerformanceSettings:
    enable_compression: bool
    enable_query_logging: bool


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the search API."""

    app_env: str
    port: int
    api_version: str
    startup_checks: bool
    database: DatabaseSettings
    search: SearchSettings
    api: ApiSettings
    logging: LoggingSettings
    performance: PerformanceSettings

    @property
    def is_development(self) -> bool:
        return self.app_env == DEVELOPMENT_ENV

    def safe_for_logging(self) -> dict[str, object]:
        """Return settings safe for logs."""
        return {
            "environment": self.app_env,
            "port": self.port,
            "database": {
                "host": self.database.host,
                "port": self.database.port,
                "name": self.database.name,
                "password": redact_secret(self.database.password),
            },
            "elasticsearch": {
                "node": self.search.node,
                "index": self.search.index,
                "password": redact_secret(self.search.password),
            },
        }


def validate_settings(settings: Settings) -> list[str]:
    """Return every configuration problem found in ``settings``."""
    errors: list[str] = []
    if settings.port < 1 or settings.port > 65535:
        errors.append("PORT must be between 1 and 65535")
    if not settings.database.host:
        errors.append("DB_HOST is required")
    if not settings.search.node:
        errors.append("ELASTIC_NODE is required")
    if settings.database.pool_min > settings.database.pool_max:
        errors.append("DB_POOL_MIN must not exceed DB_POOL_MAX")
    return errors


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build and validate settings from an environment mapping.

    Raises:
        ConfigurationError: listing every invalid or missing value at once.
    """
    env = _EnvReader(os.environ if environ is None else environ)

    settings = Settings(
        app_env=env.get_str("APP_ENV", DEVELOPMENT_ENV),
        port=env.get_int("PORT", DEFAULT_PORT),
        api_version=env.get_str("API_VERSION", "v1"),
        startup_checks=env.get_flag("STARTUP_CHECKS", True),
        database=DatabaseSettings(
            host=env.get_str("DB_HOST", "localhost"),
            port=env.get_int("DB_PORT", DEFAULT_DB_PORT),
            name=env.get_str("DB_NAME", "ecommerce_search"),
            user=env.get_str("DB_USER", "postgres"),
            password=env.get_str("DB_PASSWORD", "postgres123"),
            pool_max=env.get_int("DB_POOL_MAX", DEFAULT_DB_POOL_MAX),
            pool_min=env.get_int("DB_POOL_MIN", DEFAULT_DB_POOL_MIN),
            url_override=env.get_str("DATABASE_URL"),
        ),
        search=SearchSettings(
            node=env.get_str("ELASTIC_NODE", "http://localhost:9200"),
            index=env.get_str("ELASTIC_INDEX", "products"),
            username=env.get_str("ELASTIC_USERNAME"),
            password=env.get_str("ELASTIC_PASSWORD"),
        ),
        api=ApiSettings(
            rate_limit_window_ms=env.get_int("RATE_LIMIT_WINDOW_MS", DEFAULT_RATE_LIMIT_WINDOW_MS),
            rate_limit_max_requests=env.get_int("RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS),
            cors_origin=env.get_str("CORS_ORIGIN", "*"),
        ),
        logging=LoggingSettings(
            level=env.get_str("LOG_LEVEL", "info"),
            file=env.get_str("LOG_FILE"),
        ),
        performance=PerformanceSettings(
            enable_compression=env.get_flag("ENABLE_COMPRESSION", True),
            enable_query_logging=env.get_flag("ENABLE_QUERY_LOGGING", True),
        ),
    )

    errors = env.errors + validate_settings(settings)
    if errors:
        raise ConfigurationError("Configuration errors:\n" + "\n".join(errors))

    if settings.is_development:
        logger.info("Configuration loaded: %s", settings.safe_for_logging())

    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the process environment once."""
    return load_settings()
