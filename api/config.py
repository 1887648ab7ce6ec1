"""
Environment-aware configuration.
Secrets, token lifetimes, registry limits and cookie flags all come from the
environment (a .env file is read if present).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEV_ACCESS_SECRET = "dev-access-secret-change-me"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"
DEV_RESET_SECRET = "dev-reset-secret-change-me"


def _seconds(name, default):
    return timedelta(seconds=int(os.getenv(name, str(default))))


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: the frontend origin; cookies need credentials enabled
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", os.getenv("FRONTEND_URL", "http://localhost:3000"))
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Signing: one secret and lifetime per token kind
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "auth-api")
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "auth-client")
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", DEV_ACCESS_SECRET)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", DEV_REFRESH_SECRET)
    JWT_PASSWORD_RESET_SECRET = os.getenv("JWT_PASSWORD_RESET_SECRET", DEV_RESET_SECRET)
    JWT_ACCESS_EXPIRES = _seconds("JWT_ACCESS_EXPIRES_SECONDS", 15 * 60)
    JWT_REFRESH_EXPIRES = _seconds("JWT_REFRESH_EXPIRES_SECONDS", 7 * 24 * 3600)
    JWT_PASSWORD_RESET_EXPIRES = _seconds("JWT_PASSWORD_RESET_EXPIRES_SECONDS", 3600)

    # Refresh token registry
    REFRESH_TOKEN_LIMIT = int(os.getenv("REFRESH_TOKEN_LIMIT", "5"))
    REFRESH_TOKEN_RETENTION = _seconds("REFRESH_TOKEN_RETENTION_SECONDS", 7 * 24 * 3600)

    # Credential cookies
    ACCESS_COOKIE_NAME = "accessToken"
    REFRESH_COOKIE_NAME = "refreshToken"
    ACCESS_COOKIE_MAX_AGE = timedelta(minutes=15)
    REFRESH_COOKIE_MAX_AGE = timedelta(days=7)
    COOKIE_SECURE = False
    COOKIE_SAMESITE = "Lax"
    COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    PROPAGATE_EXCEPTIONS = False
    JWT_ACCESS_SECRET = "test-access-secret-0123456789abcdef"
    JWT_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
    JWT_PASSWORD_RESET_SECRET = "test-reset-secret-0123456789abcdef"
    COOKIE_DOMAIN = None


class ProductionConfig(BaseConfig):
    DEBUG = False
    COOKIE_SECURE = True
    COOKIE_SAMESITE = "Strict"


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


def check_production_secrets(config) -> None:
    """Refuse to run in production with the development signing secrets."""
    defaults = {DEV_ACCESS_SECRET, DEV_REFRESH_SECRET, DEV_RESET_SECRET}
    in_use = [
        key for key in ("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET", "JWT_PASSWORD_RESET_SECRET")
        if config.get(key) in defaults
    ]
    if in_use:
        raise RuntimeError(f"Production requires real signing secrets: {', '.join(in_use)}")
    secrets = [config["JWT_ACCESS_SECRET"], config["JWT_REFRESH_SECRET"], config["JWT_PASSWORD_RESET_SECRET"]]
    if len(set(secrets)) != len(secrets):
        raise RuntimeError("Each token kind needs its own signing secret")
