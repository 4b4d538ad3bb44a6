"""Exceptions module for entity-cache.

Complete exception hierarchy, organized by domain and infrastructure concerns.
"""

from .base import (
    EntityCacheError,
    create_error_response,
)

from .domain import (
    ConfigurationError,
    ValidationError,
    InvalidIdentifierError,
)

from .infrastructure import (
    CacheError,
    CacheCapacityExceededError,
    CacheManagerClosedError,
    PersistenceError,
    PersistenceBatchError,
)

__all__ = [
    # Base
    "EntityCacheError",
    "create_error_response",

    # Domain
    "ConfigurationError",
    "ValidationError",
    "InvalidIdentifierError",

    # Infrastructure
    "CacheError",
    "CacheCapacityExceededError",
    "CacheManagerClosedError",
    "PersistenceError",
    "PersistenceBatchError",
]
