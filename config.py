"""Configuration module for Flask application."""
import os
import tempfile
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'kasir')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'kasir')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'kasir')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', '0') == '1'

    # Ledger (stock & cost) configuration
    # Bounded wait for exclusive access to product rows, in seconds
    LEDGER_LOCK_TIMEOUT = float(os.getenv('LEDGER_LOCK_TIMEOUT', '5'))
    # How many times the HTTP layer re-runs an operation that hit a Conflict
    LEDGER_CONFLICT_RETRIES = int(os.getenv('LEDGER_CONFLICT_RETRIES', '3'))
    LEDGER_RETRY_BACKOFF = float(os.getenv('LEDGER_RETRY_BACKOFF', '0.1'))

    # Stock Configuration
    LOW_STOCK_THRESHOLD = int(os.getenv('LOW_STOCK_THRESHOLD', '5'))

    # Redis Cache Configuration
    # Shared cache layer for report rollups
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_REPORTS_TTL = int(os.getenv('CACHE_REPORTS_TTL', '60'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'kasir')

    # Realtime push of ledger events over Redis pub/sub
    REALTIME_EVENTS_ENABLED = os.getenv('REALTIME_EVENTS_ENABLED', 'false').lower() == 'true'


class TestingConfig(Config):
    """Configuration used by the test-suite (SQLite file database, no Redis)."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'TEST_DATABASE_URL',
        'sqlite:///' + os.path.join(tempfile.gettempdir(), 'kasir_test.sqlite3')
    )
    CACHE_ENABLED = False
    REALTIME_EVENTS_ENABLED = False
    LEDGER_LOCK_TIMEOUT = 2.0
    LEDGER_RETRY_BACKOFF = 0.01
