"""Base configuration shared by every environment."""
import os
from datetime import timedelta


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False
    AUTO_CREATE_TABLES = False

    # Primary attendance store. Missing or placeholder values select local mode.
    DATABASE_URL = os.environ.get('DATABASE_URL')
    ATTENDANCE_STORAGE = os.environ.get('ATTENDANCE_STORAGE')  # sql, local or unset (auto)

    # Local key-value store: memory:// or redis://
    LOCAL_STORE_URL = os.environ.get('LOCAL_STORE_URL') or os.environ.get('REDIS_URL') or 'memory://'
    STORAGE_TIMEOUT_SECONDS = float(os.environ.get('STORAGE_TIMEOUT_SECONDS', 5))

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    JWT_ALGORITHM = 'HS256'

    # CORS
    CORS_ORIGINS = ["http://localhost:*", "https://*.vercel.app", "http://127.0.0.1:*"]

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL') or 'memory://'

    # Sessions
    DEFAULT_SESSION_MINUTES = 30
    MAX_SESSION_MINUTES = 1440  # 24 hours

    # Grading
    ATTENDANCE_DEFAULT_SCORE = 10.0
    ATTENDANCE_MAX_SCORE = 100.0

    # Backup
    BACKUP_MAX_RETRIES = 5
    BACKUP_RETENTION_HOURS = 24

    # Where the external scan ingress sends students
    SCAN_DASHBOARD_URL = os.environ.get('SCAN_DASHBOARD_URL') or '/external-attendance/dashboard'
    SCAN_LOGIN_URL = os.environ.get('SCAN_LOGIN_URL') or '/simple-auth/student/login'

    # Break-glass account, read by `flask bootstrap-super-admin`
    SUPER_ADMIN_EMAIL = os.environ.get('SUPER_ADMIN_EMAIL')
    SUPER_ADMIN_PASSWORD = os.environ.get('SUPER_ADMIN_PASSWORD')

    # Logging
    LOG_LEVEL = 'INFO'
    LOG_FILE = 'logs/app.log'
