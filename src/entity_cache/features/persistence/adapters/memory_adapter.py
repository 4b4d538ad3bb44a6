"""In-memory persistence adapter.

Keeps deep copies of persisted entities in a dict. Used for tests and for
running a cache without a durable backing store.
"""

import copy
import logging
import threading
from typing import Dict, Iterable, List, Optional, Set, TypeVar

from ..entities.config import PersistenceConfig
from ..entities.protocols import PersistenceStrategy
from ....config.settings import DEFAULT_MAX_BATCH_SIZE
from ....core.exceptions import PersistenceBatchError, PersistenceError
from ....core.protocols import Cacheable

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Cacheable)


class MemoryPersistenceStrategy(PersistenceStrategy[T]):
    """Persistence strategy backed by a thread-safe dict.

    Records every batch size and every deleted id so callers can inspect how
    the cache drove it. ``fail_ids`` makes any batch containing one of those
    ids fail, which simulates a backing-store error.
    """

    def __init__(
        self,
        config: Optional[PersistenceConfig] = None,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ):
        super().__init__(config=config, max_batch_size=max_batch_size)
        self._records: Dict[str, T] = {}
        self._lock = threading.RLock()
        self.batch_sizes: List[int] = []
        self.deleted_ids: List[str] = []
        self.fail_ids: Set[str] = set()

    @property
    def records(self) -> Dict[str, T]:
        """Snapshot of the stored records."""
        with self._lock:
            return dict(self._records)

    def get_record(self, entity_id: str) -> Optional[T]:
        with self._lock:
            return self._records.get(entity_id)

    def _upsert_batch(self, batch: List[T]) -> None:
        with self._lock:
            self.batch_sizes.append(len(batch))
            failing = [entity.id for entity in batch if entity.id in self.fail_ids]
            if failing:
                raise PersistenceBatchError(
                    f"Simulated failure for {', '.join(sorted(failing))}",
                    details={"entity_ids": failing},
                )
            for entity in batch:
                self._records[entity.id] = copy.deepcopy(entity)

    def _delete(self, entity_id: str) -> None:
        with self._lock:
            if entity_id in self.fail_ids:
                raise PersistenceError(f"Simulated delete failure for {entity_id}")
            self.deleted_ids.append(entity_id)
            self._records.pop(entity_id, None)

    def delete_by_ids(self, entity_ids: Iterable[str]) -> Set[str]:
        with self._lock:
            return super().delete_by_ids(entity_ids)

    def exists(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._records

    def clear(self) -> None:
        """Drop all records and recorded calls."""
        with self._lock:
            self._records.clear()
            self.batch_sizes.clear()
            self.deleted_ids.clear()
        logger.debug(f"Cleared in-memory store {self.name}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
