#!/usr/bin/env python3
"""
Configuration management for the economic calendar cache
Loads settings from environment variables and an optional .env file
"""

import os
import sys
import logging
from pathlib import Path
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Windows scraped by a full sweep, oldest first so history lands before the future
SWEEP_WINDOWS = ("lastWeek", "yesterday", "today", "tomorrow", "thisWeek", "nextWeek")
ROLLING_WINDOWS = ("today",)


def _mask_value(value):
    """Return a lightly masked representation of a credential"""
    if not value:
        return "***"
    if len(value) <= 2:
        return f"{value[0]}*" if len(value) == 2 else "*"
    return f"{value[0]}***{value[-1]}"


def mask_host(host):
    """Mask the final segment of an IP/domain so logs don't reveal the exact target"""
    if not host:
        return "***"
    parts = host.split('.')
    if len(parts) > 1:
        parts[-1] = "***"
        return '.'.join(parts)
    if len(host) <= 4:
        return host[0] + "**"
    return f"{host[:2]}***{host[-1:]}"


def describe_db_target(host, port, database, user=None):
    """Generate a masked DSN string suitable for logging"""
    masked_host = mask_host(host)
    user_part = f"{_mask_value(user)}@" if user else ""
    return f"{user_part}{masked_host}:{port}/{database}"


def _env_bool(name, default):
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name, default):
    raw = os.getenv(name)
    if not raw:
        return tuple(default)
    return tuple(item.strip() for item in raw.split(',') if item.strip())


class Config:
    """Configuration manager for the calendar cache service"""

    def __init__(self, env_file=None):
        """Initialize configuration from environment"""
        if env_file and Path(env_file).exists():
            load_dotenv(env_file)
            logger.info(f"Loaded environment from: {env_file}")

        # Cache store
        self.CACHE_BACKEND = os.getenv('CACHE_BACKEND', 'sqlite').lower()
        self.SQLITE_PATH = os.getenv('SQLITE_PATH', 'econ_calendar.sqlite')
        self.POSTGRES_HOST = os.getenv('POSTGRES_HOST', 'localhost')
        self.POSTGRES_PORT = int(os.getenv('POSTGRES_PORT', 5432))
        self.POSTGRES_DB = os.getenv('POSTGRES_DB', 'econ_calendar')
        self.POSTGRES_USER = os.getenv('POSTGRES_USER', 'postgres')
        self.POSTGRES_PASSWORD = os.getenv('POSTGRES_PASSWORD', 'postgres')
        self.POSTGRES_POOL_SIZE = int(os.getenv('POSTGRES_POOL_SIZE', 5))
        self.UPSERT_BATCH_SIZE = int(os.getenv('UPSERT_BATCH_SIZE', 100))

        # Source site. Times on the page are wall-clock in SOURCE_TIMEZONE, so the
        # browser emulation and the UTC conversion must both read this value.
        self.SOURCE_URL = os.getenv('SOURCE_URL', 'https://www.investing.com/economic-calendar/')
        self.SOURCE_TIMEZONE = os.getenv('SOURCE_TIMEZONE', 'Europe/Madrid')

        # Scraper
        self.SCRAPER_HEADLESS = _env_bool('SCRAPER_HEADLESS', 'true')
        self.SCRAPER_NAVIGATION_TIMEOUT = int(os.getenv('SCRAPER_NAVIGATION_TIMEOUT', 90))
        self.SCRAPER_TABLE_TIMEOUT = int(os.getenv('SCRAPER_TABLE_TIMEOUT', 15))
        self.SCRAPER_LOADING_TIMEOUT = int(os.getenv('SCRAPER_LOADING_TIMEOUT', 30))
        self.SCRAPER_RETRIES = int(os.getenv('SCRAPER_RETRIES', 2))
        self.SCRAPER_RETRY_BACKOFF = float(os.getenv('SCRAPER_RETRY_BACKOFF', 5))
        self.SCRAPER_VERBOSE = _env_bool('SCRAPER_VERBOSE', 'false')

        # Refresh policy
        self.SWEEP_WINDOWS = _env_list('SWEEP_WINDOWS', SWEEP_WINDOWS)
        self.ROLLING_WINDOWS = _env_list('ROLLING_WINDOWS', ROLLING_WINDOWS)
        self.SWEEP_WINDOW_DELAY = float(os.getenv('SWEEP_WINDOW_DELAY', 3))
        self.RETENTION_DAYS = int(os.getenv('RETENTION_DAYS', 180))
        self.STALE_AFTER_HOURS = float(os.getenv('STALE_AFTER_HOURS', 12))
        self.WINDOW_MIN_INTERVAL = int(os.getenv('WINDOW_MIN_INTERVAL', 3600))
        self.REQUEUE_DELAY = float(os.getenv('REQUEUE_DELAY', 30 * 60))

        # Scheduler
        self.SCHEDULER_ENABLED = _env_bool('SCHEDULER_ENABLED', 'true')
        self.SCHEDULE_TIMEZONE = os.getenv('SCHEDULE_TIMEZONE', 'America/Bogota')
        self.SWEEP_AT = os.getenv('SWEEP_AT', '06:00')
        self.ROLLING_AT = os.getenv('ROLLING_AT', '14:00')

        # HTTP
        self.API_HOST = os.getenv('API_HOST', '0.0.0.0')
        self.API_PORT = int(os.getenv('API_PORT', 8000))
        self.ALLOWED_ORIGINS = _env_list('ALLOWED_ORIGINS', ('*',))

        # Output
        self.CSV_OUTPUT_DIR = os.getenv('CSV_OUTPUT_DIR', 'csv_output')

        # Logging
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
        self.LOG_FILE = os.getenv('LOG_FILE', 'econ_calendar.log')

    def get_db_config(self):
        """Get database configuration dict"""
        return {
            'host': self.POSTGRES_HOST,
            'port': self.POSTGRES_PORT,
            'database': self.POSTGRES_DB,
            'user': self.POSTGRES_USER,
            'password': self.POSTGRES_PASSWORD,
            'pool_size': self.POSTGRES_POOL_SIZE
        }

    def get_scraper_config(self):
        """Get scraper configuration dict"""
        return {
            'source_url': self.SOURCE_URL,
            'source_timezone': self.SOURCE_TIMEZONE,
            'headless': self.SCRAPER_HEADLESS,
            'navigation_timeout': self.SCRAPER_NAVIGATION_TIMEOUT,
            'table_timeout': self.SCRAPER_TABLE_TIMEOUT,
            'loading_timeout': self.SCRAPER_LOADING_TIMEOUT,
            'retries': self.SCRAPER_RETRIES,
            'retry_backoff': self.SCRAPER_RETRY_BACKOFF,
            'verbose': self.SCRAPER_VERBOSE
        }

    def validate(self):
        """Validate critical configuration"""
        errors = []

        if self.CACHE_BACKEND not in ('sqlite', 'postgres'):
            errors.append(f"CACHE_BACKEND must be 'sqlite' or 'postgres', got '{self.CACHE_BACKEND}'")

        if self.CACHE_BACKEND == 'postgres' and not self.POSTGRES_PASSWORD:
            errors.append("POSTGRES_PASSWORD is not set")

        if self.SCRAPER_RETRIES < 1:
            errors.append("SCRAPER_RETRIES must be at least 1")

        for name in ('SWEEP_AT', 'ROLLING_AT'):
            value = getattr(self, name)
            parts = value.split(':')
            if len(parts) != 2 or not all(p.isdigit() for p in parts):
                errors.append(f"{name} must be HH:MM, got '{value}'")

        if errors:
            logger.error("Configuration validation failed:")
            for error in errors:
                logger.error(f"  - {error}")
            return False

        return True

    def __repr__(self):
        """String representation of configuration"""
        return f"""
Economic Calendar Configuration:
  Cache Backend: {self.CACHE_BACKEND} ({self.describe_db()})
  Source: {self.SOURCE_URL} [{self.SOURCE_TIMEZONE}]
  Sweep Windows: {', '.join(self.SWEEP_WINDOWS)}
  Schedule: sweep {self.SWEEP_AT}, rolling {self.ROLLING_AT} ({self.SCHEDULE_TIMEZONE})
  Retention: {self.RETENTION_DAYS} days
  Log Level: {self.LOG_LEVEL}
        """

    def describe_db(self):
        """Return masked connection description for safe logging"""
        if self.CACHE_BACKEND == 'sqlite':
            return self.SQLITE_PATH
        return describe_db_target(
            self.POSTGRES_HOST,
            self.POSTGRES_PORT,
            self.POSTGRES_DB,
            self.POSTGRES_USER
        )


def get_config(env_file=None):
    """Factory function to get configuration instance"""
    if env_file is None:
        # Try to find .env in common locations
        possible_paths = [
            Path.cwd() / '.env',
            Path(__file__).resolve().parent.parent.parent / '.env',
        ]
        for path in possible_paths:
            if path.exists():
                env_file = str(path)
                break

    config = Config(env_file)

    if not config.validate():
        logger.warning("Configuration validation failed, using defaults")

    return config


def setup_logging(config, log_file=None):
    """Configure root logging with UTF-8 file output and stdout"""
    handlers = [logging.StreamHandler(sys.stdout)]
    target = log_file or config.LOG_FILE
    if target:
        handlers.insert(0, logging.FileHandler(target, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers
    )
