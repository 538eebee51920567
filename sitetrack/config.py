"""
SiteTrack
Configuration classes for the Flask app factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when no DATABASE_URL is set
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'sitetrack_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _db_url():
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    raw = os.getenv("DATABASE_URL", "")
    return raw.replace("postgres://", "postgresql://", 1) if raw else None


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "86400"))  # 24 h
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Rate-limit storage (memory:// for a single worker)
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Request body cap: 10 photos + 1 video per progress update
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(200 * 1024 * 1024)))

    # Attachment packager
    MAX_PHOTOS = int(os.getenv("MAX_PHOTOS", "10"))
    MAX_VIDEOS = 1
    MAX_ARCHIVE_BYTES = int(os.getenv("MAX_ARCHIVE_BYTES", str(100 * 1024 * 1024)))

    # Google Drive storage
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
    GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN")
    DRIVE_CREDENTIALS_FILE = os.getenv(
        "DRIVE_CREDENTIALS_FILE", os.path.join(basedir, "credentials.json")
    )
    DRIVE_TOKEN_FILE = os.getenv("DRIVE_TOKEN_FILE", os.path.join(basedir, "token.json"))
    DRIVE_UPLOAD_FOLDER_ID = os.getenv("DRIVE_UPLOAD_FOLDER_ID")
    DRIVE_ADMIN_FOLDER_ID = os.getenv("DRIVE_ADMIN_FOLDER_ID")
    DRIVE_TIMEOUT = int(os.getenv("DRIVE_TIMEOUT", "60"))

    # Accounts
    SELF_REGISTRATION_ENABLED = os.getenv("SELF_REGISTRATION_ENABLED", "true")

    # Logging (LOG_FORMAT: json | readable; unset picks by environment)
    LOG_LEVEL = os.getenv("LOG_LEVEL")
    LOG_FORMAT = os.getenv("LOG_FORMAT")

    # PDF reports
    REPORT_TITLE = os.getenv("REPORT_TITLE", "Iruvade Project Management")
    REPORT_LOGO_PATH = os.getenv("REPORT_LOGO_PATH")
    REPORT_FOOTER_NOTICE = os.getenv("REPORT_FOOTER_NOTICE", "")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _db_url() or _SQLITE_DEV


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    RATELIMIT_ENABLED = False

    # Placeholder credentials; tests replace the gateway with a fake
    GOOGLE_CLIENT_ID = "test-client-id"
    GOOGLE_CLIENT_SECRET = "test-client-secret"
    GOOGLE_REFRESH_TOKEN = "test-refresh-token"
    DRIVE_UPLOAD_FOLDER_ID = "progress-folder"
    DRIVE_ADMIN_FOLDER_ID = "admin-folder"


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _db_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production
    SELF_REGISTRATION_ENABLED = os.getenv("SELF_REGISTRATION_ENABLED", "false")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        if not self.JWT_SECRET_KEY:
            raise RuntimeError("JWT_SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
