"""
Environment-aware configuration.
Secrets, token lifetimes, database URL, CORS and rate limits come from the
environment (.env is read if present). validate_config() runs at startup and
a failure there must stop the process instead of falling back to defaults.
"""
import os
from dotenv import load_dotenv

from utils.security import parse_duration

load_dotenv()  # Read .env if present


class ConfigError(RuntimeError):
    """Raised when the configuration cannot be used to start the app."""


def _bool_env(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    DEBUG = False
    TESTING = False
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    # CORS: a comma-separated list of allowed origins
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    DATABASE_URL = os.getenv("DATABASE_URL")
    SQLALCHEMY_ECHO = _bool_env("SQLALCHEMY_ECHO", "false")

    # Access and refresh tokens are signed with different secrets
    JWT_SECRET = os.getenv("JWT_SECRET")
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "repo-tracker-api")
    JWT_EXPIRES_IN = os.getenv("JWT_EXPIRES_IN", "1d")
    JWT_REFRESH_EXPIRES_IN = os.getenv("JWT_REFRESH_EXPIRES_IN", "7d")

    # Cookie transport (httpOnly, SameSite=Strict); header transport is always accepted
    AUTH_COOKIES = _bool_env("AUTH_COOKIES", "true")
    ACCESS_COOKIE_NAME = os.getenv("ACCESS_COOKIE_NAME", "access_token")
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refresh_token")
    COOKIE_SECURE = _bool_env("COOKIE_SECURE", "true")

    RATE_LIMIT_ENABLED = _bool_env("RATE_LIMIT_ENABLED", "true")
    RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900"))
    AUTH_RATE_LIMIT = int(os.getenv("AUTH_RATE_LIMIT", "100"))
    API_RATE_LIMIT = int(os.getenv("API_RATE_LIMIT", "200"))
    # Number of reverse proxies in front of the app whose X-Forwarded-For is trusted
    TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "0"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///repo-tracker.db")
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-access-secret-change-me")
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "dev-refresh-secret-change-me")
    COOKIE_SECURE = _bool_env("COOKIE_SECURE", "false")


class TestingConfig(BaseConfig):
    TESTING = True
    LOG_LEVEL = "WARNING"
    DATABASE_URL = "sqlite://"
    JWT_SECRET = "test-access-secret"
    JWT_REFRESH_SECRET = "test-refresh-secret"
    JWT_EXPIRES_IN = "15m"
    JWT_REFRESH_EXPIRES_IN = "7d"
    AUTH_COOKIES = False
    COOKIE_SECURE = False
    RATE_LIMIT_ENABLED = False


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def validate_config(config) -> None:
    """
    Check a loaded config mapping; raises ConfigError listing every problem.
    """
    errors = []
    for key in ("JWT_SECRET", "JWT_REFRESH_SECRET", "DATABASE_URL"):
        if not config.get(key):
            errors.append(f"{key} is required")

    if config.get("JWT_SECRET") and config.get("JWT_SECRET") == config.get("JWT_REFRESH_SECRET"):
        errors.append("JWT_REFRESH_SECRET must differ from JWT_SECRET")

    for key in ("JWT_EXPIRES_IN", "JWT_REFRESH_EXPIRES_IN"):
        try:
            parse_duration(config.get(key))
        except (TypeError, ValueError) as exc:
            errors.append(f"{key}: {exc}")

    for key in ("RATE_LIMIT_WINDOW_SECONDS", "AUTH_RATE_LIMIT", "API_RATE_LIMIT"):
        value = config.get(key)
        if not isinstance(value, int) or value <= 0:
            errors.append(f"{key} must be a positive integer")

    proxies = config.get("TRUSTED_PROXY_COUNT", 0)
    if not isinstance(proxies, int) or proxies < 0:
        errors.append("TRUSTED_PROXY_COUNT must be a non-negative integer")

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))
