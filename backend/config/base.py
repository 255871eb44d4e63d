"""Base configuration shared by every environment."""
import os
from datetime import timedelta


def store_engine_options(database_uri, timeout_seconds):
    """Engine options bounding every store round trip for the URI's driver.

    SQLite waits at most ``timeout`` on a locked file. PostgreSQL gets
    server-side statement and lock timeouts so a blocked ``FOR UPDATE``
    raises instead of waiting forever.
    """
    options = {
        'pool_pre_ping': True,
        'pool_timeout': timeout_seconds,
    }
    uri = database_uri or ''

    if uri.startswith('sqlite'):
        options.pop('pool_timeout')
        options['connect_args'] = {'timeout': timeout_seconds}
    elif uri.startswith('postgres'):
        timeout_ms = int(timeout_seconds * 1000)
        options['connect_args'] = {
            'connect_timeout': timeout_seconds,
            'options': f'-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}',
        }
    elif uri.startswith('mysql'):
        options['connect_args'] = {
            'connect_timeout': timeout_seconds,
            'read_timeout': timeout_seconds,
            'write_timeout': timeout_seconds,
        }
    return options


class Config:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # Store round trips fail closed after this many seconds
    STORE_TIMEOUT_SECONDS = int(os.getenv('STORE_TIMEOUT_SECONDS', 5))
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    # JWT Configuration
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    JWT_ALGORITHM = 'HS256'

    # CORS
    CORS_ORIGINS = ["http://localhost:*", "https://*.vercel.app", "http://127.0.0.1:*"]

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL') or 'memory://'
    RATELIMIT_DEFAULT = "200 per day, 50 per hour"
    CHECKIN_RATE_LIMIT = "10 per minute"

    # Attendance
    ATTENDANCE_TIMEZONE = os.getenv('ATTENDANCE_TIMEZONE') or None  # None = server local time
    SESSION_GATE_FAIL_OPEN = True
    PRIVATE_BROWSING_BLOCK_CONFIDENCE = 'high'  # high, low
    PRIVATE_STORAGE_QUOTA_BYTES = 10_000_000
    TRUST_LOCALHOST_FALLBACK = False
