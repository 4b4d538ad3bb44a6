"""Entity cache manager - registry of one cache per entity type.

Constructed explicitly and passed to whoever needs it; there is no
process-wide instance.
"""

import logging
import threading
from typing import Dict, List, Optional, Type, TypeVar

from .entity_cache import EntityCache
from ...persistence.entities.config import PersistenceConfig
from ...persistence.entities.protocols import PersistenceStrategy
from ...persistence.services.change_detector import ChangeDetector
from ....config.settings import CacheSettings
from ....core.exceptions import CacheManagerClosedError
from ....core.protocols import Cacheable

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Cacheable)


class EntityCacheManager:
    """Registry mapping entity types to their cache and persistence config.

    Caches are created lazily, at most once per type. While ``shutdown`` runs,
    existing caches can still be looked up so final flushes can cascade into
    them; afterwards the manager refuses new work until ``reset`` is called.
    """

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        change_detector: Optional[ChangeDetector] = None,
    ):
        self.settings = settings or CacheSettings()
        self._change_detector = change_detector
        self._caches: Dict[type, EntityCache] = {}
        self._configs: Dict[type, PersistenceConfig] = {}
        self._lock = threading.RLock()
        self._closed = False
        self._closing = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed or self._closing:
            raise CacheManagerClosedError(
                "Cache manager has been shut down; call reset() before reuse"
            )

    def get_cache(self, entity_type: Type[T]) -> EntityCache[T]:
        """Return the cache for ``entity_type``, creating it on first request."""
        with self._lock:
            cache = self._caches.get(entity_type)
            if cache is not None and self._closing:
                return cache
            self._ensure_open()
            if cache is None:
                cache = EntityCache(
                    entity_type,
                    persistence_config=self._configs.get(entity_type),
                    change_detector=self._change_detector,
                    **self.settings.cache_kwargs(),
                )
                self._caches[entity_type] = cache
                logger.info(f"Created entity cache for {cache.name}")
            return cache

    def set_persistence_config(self, entity_type: Type[T], config: PersistenceConfig) -> None:
        """Associate a persistence config with a type and its cache."""
        with self._lock:
            self._ensure_open()
            self._configs[entity_type] = config
            self.get_cache(entity_type).set_persistence_config(config)

    def get_persistence_config(self, entity_type: Type[T]) -> Optional[PersistenceConfig]:
        with self._lock:
            return self._configs.get(entity_type)

    def set_persistence_strategy(self, entity_type: Type[T], strategy: PersistenceStrategy[T]) -> EntityCache[T]:
        """Attach a strategy to the type's cache, starting its flush timer.

        The strategy's batch size is set from ``settings.max_batch_size``.
        """
        cache = self.get_cache(entity_type)
        strategy.set_max_batch_size(self.settings.max_batch_size)
        cache.set_persistence_strategy(strategy)
        return cache

    def remove_cache(self, entity_type: type) -> bool:
        """Unregister a type, shutting its cache down first.

        Returns:
            True if a cache was registered for the type
        """
        with self._lock:
            cache = self._caches.pop(entity_type, None)
            self._configs.pop(entity_type, None)

        if cache is None:
            return False
        cache.shutdown()
        return True

    def registered_types(self) -> List[type]:
        with self._lock:
            return list(self._caches)

    def __contains__(self, entity_type: object) -> bool:
        with self._lock:
            return entity_type in self._caches

    def shutdown(self) -> None:
        """Shut down every cache, then close the manager and clear the registry.

        Caches stay registered until all of them are shut down, so a final
        flush that cascades into another type still finds its cache.
        """
        with self._lock:
            if self._closed or self._closing:
                return
            self._closing = True
            caches = list(self._caches.values())

        for cache in caches:
            try:
                cache.shutdown()
            except Exception as e:
                logger.error(f"Error shutting down cache {cache.name}: {e}")

        with self._lock:
            self._caches.clear()
            self._configs.clear()
            self._closed = True
            self._closing = False

        logger.info(f"Cache manager shut down ({len(caches)} caches)")

    def reset(self) -> None:
        """Reopen a shut down manager with an empty registry."""
        if not self._closed:
            self.shutdown()
        with self._lock:
            self._caches.clear()
            self._configs.clear()
            self._closed = False
