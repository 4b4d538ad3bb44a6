"""entity-cache - in-memory write-back entity cache with pluggable persistence.

Entities are kept per type in memory, changes are tracked at field level and
dirty entities are flushed in batches to a backing store on a timer.
"""

# Initialize logging configuration on import
from .config.logging_config import setup_logging
setup_logging()

from .__version__ import __version__

from .config import CacheSettings, get_logger

from .core.exceptions import (
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
from .core.protocols import Cacheable

from .features.cache import (
    CacheEntry,
    CacheStats,
    PutResult,
    EntityCache,
    EntityCacheManager,
)
from .features.persistence import (
    PersistenceConfig,
    PersistenceResult,
    PersistenceStrategy,
    CascadePersistenceStrategy,
    ChangeDetector,
    detect_changes,
    clear_properties,
    MemoryPersistenceStrategy,
    RedisPersistenceStrategy,
    AsyncPGPersistenceStrategy,
)

__all__ = [
    "__version__",

    # Configuration
    "CacheSettings",
    "get_logger",

    # Exceptions
    "EntityCacheError",
    "ConfigurationError",
    "ValidationError",
    "InvalidIdentifierError",
    "CacheError",
    "CacheCapacityExceededError",
    "CacheManagerClosedError",
    "PersistenceError",
    "PersistenceBatchError",

    # Protocols
    "Cacheable",

    # Cache
    "CacheEntry",
    "CacheStats",
    "PutResult",
    "EntityCache",
    "EntityCacheManager",

    # Persistence
    "PersistenceConfig",
    "PersistenceResult",
    "PersistenceStrategy",
    "CascadePersistenceStrategy",
    "ChangeDetector",
    "detect_changes",
    "clear_properties",
    "MemoryPersistenceStrategy",
    "RedisPersistenceStrategy",
    "AsyncPGPersistenceStrategy",
]
