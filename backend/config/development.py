"""Development configuration."""
import os

from .base import Config, store_engine_options


class DevelopmentConfig(Config):
    """Development configuration class."""

    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.getenv('DEV_DATABASE_URL') or \
        'sqlite:///smart_checkin_dev.db'
    SQLALCHEMY_ENGINE_OPTIONS = store_engine_options(
        SQLALCHEMY_DATABASE_URI, Config.STORE_TIMEOUT_SECONDS
    )

    # Redis (optional in dev)
    REDIS_URL = os.getenv('REDIS_URL') or None

    # Local browsers hit the server without proxy headers
    TRUST_LOCALHOST_FALLBACK = True

    LOG_LEVEL = 'DEBUG'
