"""Infrastructure exceptions for entity-cache.

This module defines exceptions related to the in-memory store and the
backing stores reached through persistence strategies.
"""

from .base import EntityCacheError


# Cache Errors
class CacheError(EntityCacheError):
    """Base class for cache-related errors."""
    pass


class CacheCapacityExceededError(CacheError):
    """Raised when a write would exceed the record or byte limit."""
    pass


class CacheManagerClosedError(CacheError):
    """Raised when a shut down manager is asked for a cache."""
    pass


# Persistence Errors
class PersistenceError(EntityCacheError):
    """Base class for backing-store errors."""
    pass


class PersistenceBatchError(PersistenceError):
    """Raised when one batch of an upsert fails."""
    pass
