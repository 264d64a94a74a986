"""Development configuration."""
import os

from .base import Config


class DevelopmentConfig(Config):
    """Development configuration class."""
    DEBUG = True
    TESTING = False

    # SQLite stands in for the hosted database during development
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        os.environ.get('DEV_DATABASE_URL') or 'sqlite:///qr_attendance_dev.db'
    ATTENDANCE_STORAGE = os.environ.get('ATTENDANCE_STORAGE') or 'sql'
    AUTO_CREATE_TABLES = True

    LOG_LEVEL = 'DEBUG'
