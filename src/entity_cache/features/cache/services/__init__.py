"""Cache services - entity cache, flush scheduling and the cache registry."""

from .flush_scheduler import FlushScheduler
from .entity_cache import EntityCache
from .cache_manager import EntityCacheManager

__all__ = [
    "FlushScheduler",
    "EntityCache",
    "EntityCacheManager",
]
