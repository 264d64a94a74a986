"""Production configuration."""
import os
from datetime import timedelta

from .base import Config


def _database_uri():
    from qr_attendance.storage import is_configured

    url = os.environ.get('DATABASE_URL')
    # Without a database the service runs in local fallback mode
    return url if is_configured(url) else 'sqlite://'


class ProductionConfig(Config):
    """Production configuration class."""
    DEBUG = False
    TESTING = False

    # Database
    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_timeout': Config.STORAGE_TIMEOUT_SECONDS,
    } if SQLALCHEMY_DATABASE_URI != 'sqlite://' else {}

    # JWT Configuration
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)

    # Enhanced security
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Stricter limits
    RATELIMIT_DEFAULT = "100 per day, 20 per hour"

    # Logging
    LOG_LEVEL = 'INFO'
    LOG_FILE = os.environ.get('LOG_FILE', 'logs/app.log')
