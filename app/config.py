"""
Accessibility Audit Platform
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'audit_platform_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,   # recycle connections every 5 min
        "pool_timeout": 20,    # wait max 20s for a connection from pool
    }

    # JWT (HS256 bearer tokens issued by the identity provider)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "900"))  # seconds

    # X-User-Id / X-User-Role headers stand in for a token (development only)
    AUTH_DEV_HEADERS = False

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Request body limit (JSON only; evidence files go to object storage)
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(2 * 1024 * 1024)))

    # Public report links
    SHARE_TOKEN_TTL_DAYS = int(os.getenv("SHARE_TOKEN_TTL_DAYS", "90"))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )
    AUTH_DEV_HEADERS = os.getenv("AUTH_DEV_HEADERS", "true").lower() == "true"


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-key-with-at-least-32-bytes"


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    # Override engine options with PostgreSQL statement timeout
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {
            "options": "-c statement_timeout=30000",  # 30s query timeout
        },
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
