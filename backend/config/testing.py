"""Testing configuration."""
from datetime import timedelta

from .base import Config


class TestingConfig(Config):
    """Testing configuration class."""
    DEBUG = False
    TESTING = True
    SECRET_KEY = 'test-secret-key'

    # Database (in-memory SQLite for testing)
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    ATTENDANCE_STORAGE = 'sql'
    AUTO_CREATE_TABLES = True

    LOCAL_STORE_URL = 'memory://'
    STORAGE_TIMEOUT_SECONDS = 2

    # JWT Configuration
    JWT_SECRET_KEY = 'test-jwt-secret-with-enough-length-for-hs256'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=5)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(hours=1)

    # Rate Limiting (disabled for testing)
    RATELIMIT_ENABLED = False

    SUPER_ADMIN_EMAIL = None
    SUPER_ADMIN_PASSWORD = None

    # Logging
    LOG_LEVEL = 'WARNING'
