"""Persistence strategy contract.

A persistence strategy is the sole interface between an entity cache and
durable storage. The base class owns batching and failure containment;
backing-store variants only implement the per-batch write and the
single-record delete.
"""

import logging
from abc import ABC, abstractmethod
from typing import Generic, Iterable, Iterator, List, Optional, Set, TypeVar

from .config import PersistenceConfig
from .result import PersistenceResult
from ....config.settings import DEFAULT_MAX_BATCH_SIZE
from ....core.exceptions import ConfigurationError
from ....core.protocols import Cacheable

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Cacheable)


class PersistenceStrategy(ABC, Generic[T]):
    """Storage-side contract invoked by an entity cache to flush or delete entities.

    Failures never propagate to the caller: ``upsert`` reports them in its
    ``PersistenceResult`` and deletes return ``False``. Batches that already
    succeeded are not rolled back when a later batch fails.
    """

    def __init__(
        self,
        config: Optional[PersistenceConfig] = None,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ):
        self.config = config
        self.set_max_batch_size(max_batch_size)

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    def set_max_batch_size(self, max_batch_size: int) -> None:
        if max_batch_size is None or max_batch_size < 1:
            raise ConfigurationError(
                f"max_batch_size must be >= 1, got {max_batch_size}",
                details={"max_batch_size": max_batch_size},
            )
        self._max_batch_size = max_batch_size

    @property
    def name(self) -> str:
        """Label used in log messages."""
        if self.config is not None:
            return self.config.collection_name
        return type(self).__name__

    # Write path

    def upsert(self, entities: Iterable[T]) -> PersistenceResult:
        """Write or update all given entities, one execution per batch.

        Args:
            entities: Entities to persist

        Returns:
            Result listing persisted and failed entity ids
        """
        entities = list(entities)
        if not entities:
            return PersistenceResult.empty()

        persisted: Set[str] = set()
        failed: Set[str] = set()
        errors: List[str] = []

        for batch in self._batches(entities):
            batch_ids = [entity.id for entity in batch]
            try:
                self._upsert_batch(batch)
                persisted.update(batch_ids)
            except Exception as e:
                logger.error(f"Failed to upsert batch of {len(batch)} into {self.name}: {e}")
                failed.update(batch_ids)
                errors.append(str(e))

        return PersistenceResult(
            persisted_ids=frozenset(persisted - failed),
            failed_ids=frozenset(failed),
            errors=tuple(errors),
        )

    def insert(self, entities: Iterable[T]) -> PersistenceResult:
        """Insert entities; defaults to ``upsert``."""
        return self.upsert(entities)

    def update(self, entities: Iterable[T]) -> PersistenceResult:
        """Update entities; defaults to ``upsert``."""
        return self.upsert(entities)

    @abstractmethod
    def _upsert_batch(self, batch: List[T]) -> None:
        """Write one batch to the backing store; raise on failure."""
        ...

    # Delete path

    def delete_by_id(self, entity_id: str) -> bool:
        """Remove one record. Returns ``False`` when the backing store failed."""
        try:
            self._delete(entity_id)
            return True
        except Exception as e:
            logger.error(f"Failed to delete {entity_id} from {self.name}: {e}")
            return False

    def delete_by_ids(self, entity_ids: Iterable[str]) -> Set[str]:
        """Remove several records with repeated single deletes.

        Returns:
            Ids whose delete failed
        """
        return {entity_id for entity_id in entity_ids if not self.delete_by_id(entity_id)}

    @abstractmethod
    def _delete(self, entity_id: str) -> None:
        """Delete one record from the backing store; raise on failure."""
        ...

    def exists(self, entity_id: str) -> bool:
        """Check whether a record exists in the backing store."""
        raise NotImplementedError(f"{type(self).__name__} does not support exists()")

    # Helpers

    def _batches(self, entities: List[T]) -> Iterator[List[T]]:
        for start in range(0, len(entities), self._max_batch_size):
            yield entities[start:start + self._max_batch_size]
