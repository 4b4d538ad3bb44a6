"""Cache feature for entity-cache.

Feature-First layout:
- entities/: cache entries, write results and statistics
- services/: the per-type entity cache, its flush timer and the manager
"""

from .entities import CacheEntry, CacheStats, PutResult, estimate_size
from .services import EntityCache, EntityCacheManager, FlushScheduler

__all__ = [
    # Entities
    "CacheEntry",
    "CacheStats",
    "PutResult",
    "estimate_size",

    # Services
    "EntityCache",
    "EntityCacheManager",
    "FlushScheduler",
]
