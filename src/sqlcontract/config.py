"""Environment-variable-based configuration."""

import os


def get_database_url() -> str:
    """Return the default connection string from SQLCONTRACT_DATABASE_URL."""
    return os.environ.get("SQLCONTRACT_DATABASE_URL", "sqlite://:memory:")


def get_pool_min_size() -> int:
    """Return the minimum pool size from SQLCONTRACT_POOL_MIN_SIZE."""
    return int(os.environ.get("SQLCONTRACT_POOL_MIN_SIZE", "1"))


def get_pool_max_size() -> int:
    """Return the maximum pool size from SQLCONTRACT_POOL_MAX_SIZE."""
    return int(os.environ.get("SQLCONTRACT_POOL_MAX_SIZE", "10"))


def get_acquire_timeout() -> float | None:
    """Return the pool acquire timeout in seconds from SQLCONTRACT_ACQUIRE_TIMEOUT.

    Unset or empty means callers wait for a free connection indefinitely.
    """
    raw = os.environ.get("SQLCONTRACT_ACQUIRE_TIMEOUT", "")
    return float(raw) if raw else None


def get_log_level() -> str:
    """Return the logging level from SQLCONTRACT_LOG_LEVEL."""
    return os.environ.get("SQLCONTRACT_LOG_LEVEL", "WARNING")
