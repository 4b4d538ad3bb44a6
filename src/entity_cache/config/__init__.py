"""Configuration module for entity-cache.

Environment-driven settings and logging configuration.
"""

from .logging_config import (
    setup_logging,
    get_logger,
    LogLevel,
    LogVerbosity,
    LogFormat,
    LoggingConfig,
)
from .settings import (
    CacheSettings,
    DEFAULT_FLUSH_INTERVAL_MILLIS,
    DEFAULT_MAX_BATCH_SIZE,
    DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "LogLevel",
    "LogVerbosity",
    "LogFormat",
    "LoggingConfig",

    # Settings
    "CacheSettings",
    "DEFAULT_FLUSH_INTERVAL_MILLIS",
    "DEFAULT_MAX_BATCH_SIZE",
    "DEFAULT_SHUTDOWN_TIMEOUT_SECONDS",
]
