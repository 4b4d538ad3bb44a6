"""Core building blocks shared by every entity-cache feature."""

from .exceptions import (
    EntityCacheError,
    ConfigurationError,
    ValidationError,
    InvalidIdentifierError,
    CacheError,
    CacheCapacityExceededError,
    CacheManagerClosedError,
    PersistenceError,
    PersistenceBatchError,
)
from .protocols import Cacheable

__all__ = [
    "EntityCacheError",
    "ConfigurationError",
    "ValidationError",
    "InvalidIdentifierError",
    "CacheError",
    "CacheCapacityExceededError",
    "CacheManagerClosedError",
    "PersistenceError",
    "PersistenceBatchError",
    "Cacheable",
]
