# app/config.py

import os


def _env_flag(name, default='false'):
    return os.getenv(name, default).lower() in ("true", "1", "t")


def engine_options_for(database_uri):
    if not database_uri.startswith("postgresql"):
        return {}
    return {
        "pool_pre_ping": True,       # Validate connections before using
        "pool_recycle": 1800,        # Recycle every 30 minutes
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "connect_args": {
            "connect_timeout": 10,
            "options": "-c statement_timeout=30000"  # 30s query timeout
        }
    }


class Config:
    # Flask Secret Key
    SECRET_KEY = os.getenv('SECRET_KEY', 'your_secret_key')

    # Database Configuration
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URI',
        'postgresql://postgres:postgres@db:5432/referral_db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Connection pool configuration (PostgreSQL only)
    SQLALCHEMY_ENGINE_OPTIONS = engine_options_for(SQLALCHEMY_DATABASE_URI)

    # Mail Configuration
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_USE_SSL = _env_flag("MAIL_USE_SSL")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "no-reply@localhost")
    MAIL_SUPPRESS_SEND = _env_flag("MAIL_SUPPRESS_SEND")

    # Redis Configuration (per-agent payout lock)
    REDIS_URL = os.getenv('REDIS_URL')
    REDIS_TLS_ENABLED = _env_flag('REDIS_TLS_ENABLED')

    # Ledger settings
    MINIMUM_PAYOUT_THRESHOLD = os.getenv('MINIMUM_PAYOUT_THRESHOLD', '50')
    DEFAULT_COMMISSION_RATE = os.getenv('DEFAULT_COMMISSION_RATE', '10')  # percent
    PAYOUT_LOCK_ENABLED = _env_flag('PAYOUT_LOCK_ENABLED', 'true')
    PAYOUT_LOCK_TIMEOUT = int(os.getenv('PAYOUT_LOCK_TIMEOUT', 30))
    PAYOUT_LOCK_BLOCKING_TIMEOUT = int(os.getenv('PAYOUT_LOCK_BLOCKING_TIMEOUT', 10))
    PAYOUT_NOTIFICATIONS_ENABLED = _env_flag('PAYOUT_NOTIFICATIONS_ENABLED', 'true')
