"""Entity cache - per-type in-memory write-back store.

Owns the entries of one entity type, enforces record and byte limits, tracks
which entries are dirty and drives the scheduled flush to a persistence
strategy. Reads and writes never block on the flush; the flush only blocks on
the strategy call.
"""

import logging
import threading
import time
from typing import Any, Dict, FrozenSet, Generic, Iterable, List, Optional, Set, Type, TypeVar

from ..entities.cache_entry import CacheEntry, SizeEstimator
from ..entities.results import CacheStats, PutResult
from .flush_scheduler import FlushScheduler
from ...persistence.entities.config import PersistenceConfig
from ...persistence.entities.protocols import PersistenceStrategy
from ...persistence.entities.result import PersistenceResult
from ...persistence.services.change_detector import ChangeDetector, default_detector
from ....config.settings import DEFAULT_FLUSH_INTERVAL_MILLIS, DEFAULT_SHUTDOWN_TIMEOUT_SECONDS
from ....core.exceptions import CacheCapacityExceededError, ConfigurationError, ValidationError
from ....core.protocols import Cacheable
from ....utils.datetime import elapsed_millis, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Cacheable)


def _validate_limit(name: str, value: Optional[int]) -> Optional[int]:
    if value is not None and value < 0:
        raise ConfigurationError(f"{name} must be >= 0 or None, got {value}", details={name: value})
    return value


class EntityCache(Generic[T]):
    """In-memory write-back cache for one entity type.

    Features:
    - Record count and approximate byte limits, checked on every insert
    - Dirty tracking with field-level no-op suppression
    - Periodic batched flush of dirty entries to a persistence strategy
    - Post-flush clearing of transient fields
    - Immediate delete propagation on remove
    """

    def __init__(
        self,
        entity_type: Type[T],
        *,
        max_records: Optional[int] = None,
        max_size_bytes: Optional[int] = None,
        flush_interval_millis: int = DEFAULT_FLUSH_INTERVAL_MILLIS,
        shutdown_timeout_seconds: float = DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
        persistence_strategy: Optional[PersistenceStrategy[T]] = None,
        persistence_config: Optional[PersistenceConfig] = None,
        change_detector: Optional[ChangeDetector] = None,
        size_estimator: Optional[SizeEstimator] = None,
    ):
        self.entity_type = entity_type

        # Guards _store, _dirty and _total_size_bytes
        self._lock = threading.RLock()
        # Serialises flush cycles (timer and manual calls)
        self._flush_lock = threading.Lock()

        self._store: Dict[str, CacheEntry[T]] = {}
        self._dirty: Set[str] = set()
        self._total_size_bytes = 0

        self._detector = change_detector or default_detector
        self._size_estimator = size_estimator
        self._stats = CacheStats()
        self._closed = False

        self._max_records = _validate_limit("max_records", max_records)
        self._max_size_bytes = _validate_limit("max_size_bytes", max_size_bytes)
        self._flush_interval_millis = DEFAULT_FLUSH_INTERVAL_MILLIS
        self.set_flush_interval_millis(flush_interval_millis)
        self._shutdown_timeout_seconds = shutdown_timeout_seconds

        self._persistence_config = persistence_config
        self._persistence_strategy: Optional[PersistenceStrategy[T]] = None
        self._scheduler = FlushScheduler(self.name, self._flush_interval_millis / 1000.0, self.flush)
        if persistence_strategy is not None:
            self.set_persistence_strategy(persistence_strategy)

    @property
    def name(self) -> str:
        return getattr(self.entity_type, "__name__", str(self.entity_type))

    # Configuration

    @property
    def max_records(self) -> Optional[int]:
        return self._max_records

    def set_max_records(self, max_records: Optional[int]) -> None:
        self._max_records = _validate_limit("max_records", max_records)

    @property
    def max_size_bytes(self) -> Optional[int]:
        return self._max_size_bytes

    def set_max_size_bytes(self, max_size_bytes: Optional[int]) -> None:
        self._max_size_bytes = _validate_limit("max_size_bytes", max_size_bytes)

    @property
    def flush_interval_millis(self) -> int:
        return self._flush_interval_millis

    def set_flush_interval_millis(self, flush_interval_millis: int) -> None:
        """Change the flush interval; a running timer picks it up after its current wait."""
        if flush_interval_millis is None or flush_interval_millis < 1:
            raise ConfigurationError(
                f"flush_interval_millis must be >= 1, got {flush_interval_millis}",
                details={"flush_interval_millis": flush_interval_millis},
            )
        self._flush_interval_millis = flush_interval_millis
        scheduler = getattr(self, "_scheduler", None)
        if scheduler is not None:
            scheduler.interval_seconds = flush_interval_millis / 1000.0

    @property
    def persistence_strategy(self) -> Optional[PersistenceStrategy[T]]:
        return self._persistence_strategy

    def set_persistence_strategy(self, strategy: Optional[PersistenceStrategy[T]]) -> None:
        """Assign the strategy; the flush timer starts with the first non-None strategy."""
        self._persistence_strategy = strategy
        if strategy is not None and not self._closed:
            self._scheduler.start()
        elif strategy is None:
            self._scheduler.stop(self._shutdown_timeout_seconds)

    @property
    def persistence_config(self) -> Optional[PersistenceConfig]:
        return self._persistence_config

    def set_persistence_config(self, config: Optional[PersistenceConfig]) -> None:
        self._persistence_config = config

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_scheduled(self) -> bool:
        return self._scheduler.is_running

    # Writes

    def put(self, entity: T) -> Optional[T]:
        """Insert or replace an entity.

        Returns:
            The replaced value, or None when the id was new or the write was
            rejected. Use ``try_put`` to tell those apart.
        """
        return self.try_put(entity).previous

    def try_put(self, entity: T) -> PutResult[T]:
        """Insert or replace an entity, reporting whether it was accepted."""
        entity_id = getattr(entity, "id", None)
        if not isinstance(entity_id, str) or not entity_id:
            raise ValidationError(
                f"{self.name} entities need a non-empty string id, got {entity_id!r}",
                details={"entity_type": self.name},
            )
        entry = CacheEntry.create(entity, self._size_estimator)

        with self._lock:
            if self._closed:
                self._stats.record("rejected_puts")
                logger.warning(f"Cache {self.name} is shut down; rejected write of {entity_id}")
                return PutResult.rejected()

            previous = self._store.get(entity_id)
            try:
                self._check_capacity(entity_id, previous, entry)
            except CacheCapacityExceededError as e:
                self._stats.record("rejected_puts")
                logger.warning(f"Cache {self.name}: {e.message}; rejected write of {entity_id}")
                return PutResult.rejected()

            self._store[entity_id] = entry
            self._total_size_bytes += entry.size_bytes - (previous.size_bytes if previous else 0)

            if self._persistence_strategy is not None:
                if previous is None or self._is_changed(previous.value, entity):
                    self._dirty.add(entity_id)

        self._stats.record("puts")
        return PutResult(accepted=True, previous=previous.value if previous else None)

    def put_all(self, entities: Iterable[T]) -> Set[str]:
        """Apply ``put`` to each entity independently.

        Returns:
            Ids of the entities that were rejected
        """
        rejected: Set[str] = set()
        for entity in entities:
            if not self.try_put(entity).accepted:
                rejected.add(entity.id)
        return rejected

    def _check_capacity(self, entity_id: str, previous: Optional[CacheEntry[T]], entry: CacheEntry[T]) -> None:
        if previous is None and self._max_records is not None and len(self._store) >= self._max_records:
            raise CacheCapacityExceededError(
                f"record limit reached: {self._max_records}",
                details={"entity_id": entity_id, "max_records": self._max_records},
            )

        if self._max_size_bytes is not None:
            new_total = self._total_size_bytes - (previous.size_bytes if previous else 0) + entry.size_bytes
            if new_total > self._max_size_bytes:
                raise CacheCapacityExceededError(
                    f"byte limit reached: {new_total} > {self._max_size_bytes} bytes",
                    details={"entity_id": entity_id, "max_size_bytes": self._max_size_bytes},
                )

    def _is_changed(self, old: T, new: T) -> bool:
        # The same instance cannot be diffed against itself
        if old is new:
            return True
        return self._detector.has_changes(old, new)

    # Reads

    def get(self, entity_id: str) -> Optional[T]:
        with self._lock:
            entry = self._store.get(entity_id)
        self._stats.record("hits" if entry is not None else "misses")
        return entry.value if entry is not None else None

    def size(self) -> int:
        with self._lock:
            return len(self._store)

    def is_empty(self) -> bool:
        return self.size() == 0

    @property
    def size_bytes(self) -> int:
        with self._lock:
            return self._total_size_bytes

    def ids(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._store)

    def dirty_ids(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._dirty)

    def is_dirty(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._dirty

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, entity_id: object) -> bool:
        with self._lock:
            return entity_id in self._store

    # Removal

    def remove(self, entity_id: str) -> Optional[T]:
        """Delete an entry and immediately delete it from the backing store."""
        with self._lock:
            entry = self._pop(entity_id)
            strategy = self._persistence_strategy

        if entry is None:
            return None

        if strategy is not None:
            strategy.delete_by_id(entity_id)
        return entry.value

    def remove_all(self, entity_ids: Iterable[str]) -> List[T]:
        """Delete several entries; returns the removed values."""
        removed: Dict[str, T] = {}
        with self._lock:
            for entity_id in entity_ids:
                entry = self._pop(entity_id)
                if entry is not None:
                    removed[entity_id] = entry.value
            strategy = self._persistence_strategy

        if removed and strategy is not None:
            failed = strategy.delete_by_ids(list(removed))
            if failed:
                logger.warning(f"Cache {self.name}: backing-store delete failed for {len(failed)} ids")
        return list(removed.values())

    def _pop(self, entity_id: str) -> Optional[CacheEntry[T]]:
        entry = self._store.pop(entity_id, None)
        self._dirty.discard(entity_id)
        if entry is not None:
            self._total_size_bytes -= entry.size_bytes
            self._stats.record("removals")
        return entry

    # Flush

    def flush(self) -> PersistenceResult:
        """Write every dirty entity to the persistence strategy.

        Steps: snapshot and clear the dirty set, resolve live values, upsert,
        re-mark failed ids dirty, clear transient fields of persisted ids.
        """
        with self._flush_lock:
            return self._flush_dirty()

    def _flush_dirty(self) -> PersistenceResult:
        strategy = self._persistence_strategy
        if strategy is None:
            return PersistenceResult.empty()

        with self._lock:
            if not self._dirty:
                return PersistenceResult.empty()
            dirty_ids = set(self._dirty)
            self._dirty.clear()
            entities = [self._store[i].value for i in dirty_ids if i in self._store]

        if not entities:
            return PersistenceResult.empty()

        started_at = utc_now()
        try:
            result = strategy.upsert(entities)
        except Exception as e:
            logger.exception(f"Cache {self.name}: persistence strategy raised during flush: {e}")
            result = PersistenceResult.failure([entity.id for entity in entities], str(e))

        self._stats.record("flushes")
        self._stats.record("persisted", len(result.persisted_ids))
        self._stats.record("failed", len(result.failed_ids))

        self._after_flush(result)

        if result.failed_ids:
            logger.warning(
                f"Cache {self.name}: {len(result.failed_ids)} of {result.total} entities failed to persist; "
                f"retrying next cycle"
            )
        else:
            logger.debug(
                f"Cache {self.name}: flushed {len(result.persisted_ids)} entities "
                f"in {elapsed_millis(started_at)}ms"
            )
        return result

    def _after_flush(self, result: PersistenceResult) -> None:
        config = self._persistence_config
        transient = config.transient_properties if config is not None else frozenset()

        with self._lock:
            for entity_id in result.failed_ids:
                if entity_id in self._store:
                    self._dirty.add(entity_id)

            if not transient:
                return

            # Reinstalled without marking dirty, otherwise every flush would
            # schedule the next one
            for entity_id in result.persisted_ids:
                entry = self._store.get(entity_id)
                if entry is None:
                    continue
                self._detector.clear_properties(entry.value, transient)
                new_entry = CacheEntry.create(entry.value, self._size_estimator)
                self._store[entity_id] = new_entry
                self._total_size_bytes += new_entry.size_bytes - entry.size_bytes

    # Lifecycle

    def shutdown(self) -> PersistenceResult:
        """Stop the timer, flush what is left and drop all entries.

        Waits at most ``shutdown_timeout_seconds`` in total. If a flush cycle
        is still running when that runs out, the final flush is skipped.
        """
        with self._lock:
            if self._closed:
                return PersistenceResult.empty()
            self._closed = True

        deadline = time.monotonic() + self._shutdown_timeout_seconds
        stopped = self._scheduler.stop(self._shutdown_timeout_seconds)
        if not stopped:
            logger.warning(f"Cache {self.name}: forced scheduler termination, running final flush")

        if self._flush_lock.acquire(timeout=max(0.0, deadline - time.monotonic())):
            try:
                result = self._flush_dirty()
            finally:
                self._flush_lock.release()
        else:
            logger.warning(f"Cache {self.name}: flush cycle still running, final flush skipped")
            result = PersistenceResult.empty()

        with self._lock:
            unflushed = len(self._dirty)
            self._store.clear()
            self._dirty.clear()
            self._total_size_bytes = 0

        if unflushed:
            logger.warning(f"Cache {self.name}: {unflushed} dirty entities lost on shutdown")
        logger.info(f"Cache {self.name} shut down")
        return result

    def stats(self) -> Dict[str, Any]:
        """Cache statistics."""
        with self._lock:
            size = len(self._store)
            dirty = len(self._dirty)
            size_bytes = self._total_size_bytes

        return {
            **self._stats.snapshot(),
            "entity_type": self.name,
            "size": size,
            "dirty": dirty,
            "size_bytes": size_bytes,
            "max_records": self._max_records,
            "max_size_bytes": self._max_size_bytes,
            "flush_interval_millis": self._flush_interval_millis,
            "scheduled": self.is_scheduled,
        }

    def __repr__(self) -> str:
        return f"EntityCache({self.name}, size={self.size()}, dirty={len(self.dirty_ids())})"
