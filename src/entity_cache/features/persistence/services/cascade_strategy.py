"""Cascade persistence strategy.

Wraps a backing-store strategy and, after persisting a parent entity,
persists its nested child entities through the children's own caches and
strategies. Traversal follows the entity graph and carries a visited set, so
cyclic graphs terminate.
"""

import logging
from collections.abc import Iterable as IterableABC
from typing import TYPE_CHECKING, Iterable, List, Optional, Set, Tuple, Type, TypeVar

from ..entities.config import PersistenceConfig
from ..entities.protocols import PersistenceStrategy
from ..entities.result import PersistenceResult
from ....core.exceptions import PersistenceBatchError, PersistenceError
from ....core.protocols import Cacheable

if TYPE_CHECKING:
    from ...cache.services.cache_manager import EntityCacheManager
    from ...cache.services.entity_cache import EntityCache

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Cacheable)
C = TypeVar("C", bound=Cacheable)

VisitedSet = Set[Tuple[type, str]]


class CascadePersistenceStrategy(PersistenceStrategy[T]):
    """Persistence strategy that also persists declared child entities.

    Child fields are named with ``PersistenceConfig.add_cascade_property``;
    each may hold one entity, an iterable of entities, or None. Cascading on
    ``upsert`` only happens when the config has ``cascade_persist`` enabled;
    ``cascade_save_or_update`` always cascades.
    """

    def __init__(
        self,
        delegate: PersistenceStrategy[T],
        manager: "EntityCacheManager",
        config: Optional[PersistenceConfig] = None,
    ):
        self.delegate = delegate
        self.manager = manager
        super().__init__(config=config or delegate.config, max_batch_size=delegate.max_batch_size)

    def set_max_batch_size(self, max_batch_size: int) -> None:
        super().set_max_batch_size(max_batch_size)
        self.delegate.set_max_batch_size(max_batch_size)

    def get_child_cache(self, child_type: Type[C]) -> "EntityCache[C]":
        """Resolve a nested type's own cache from the shared manager."""
        return self.manager.get_cache(child_type)

    def get_children(self, entity: T) -> List[Cacheable]:
        """Collect the child entities held by the cascade properties."""
        if self.config is None:
            return []

        children: List[Cacheable] = []
        for name in sorted(self.config.cascade_properties):
            value = getattr(entity, name, None)
            if value is None:
                continue
            if isinstance(value, Cacheable) and not isinstance(value, (str, bytes)):
                children.append(value)
            elif isinstance(value, dict):
                children.extend(v for v in value.values() if isinstance(v, Cacheable))
            elif isinstance(value, IterableABC) and not isinstance(value, (str, bytes)):
                children.extend(v for v in value if isinstance(v, Cacheable))
            else:
                logger.debug(f"Cascade property {name!r} on {type(entity).__name__} holds no entities")
        return children

    # Contract

    def upsert(self, entities: Iterable[T]) -> PersistenceResult:
        entities = list(entities)
        result = self.delegate.upsert(entities)

        if self.config is not None and self.config.cascade_persist:
            visited: VisitedSet = {(type(entity), entity.id) for entity in entities}
            for entity in entities:
                if entity.id in result.persisted_ids:
                    self._cascade_children(entity, visited)
        return result

    def _upsert_batch(self, batch: List[T]) -> None:
        result = self.delegate.upsert(batch)
        if not result.is_success:
            raise PersistenceBatchError(
                "; ".join(result.errors),
                details={"failed_ids": sorted(result.failed_ids)},
            )

    def _delete(self, entity_id: str) -> None:
        if not self.delegate.delete_by_id(entity_id):
            raise PersistenceError(f"Delete of {entity_id} failed in {self.delegate.name}")

    def delete_by_id(self, entity_id: str) -> bool:
        return self.delegate.delete_by_id(entity_id)

    def delete_by_ids(self, entity_ids: Iterable[str]) -> Set[str]:
        return self.delegate.delete_by_ids(entity_ids)

    def exists(self, entity_id: str) -> bool:
        return self.delegate.exists(entity_id)

    # Cascade operations

    def cascade_save_or_update(self, entity: T) -> PersistenceResult:
        """Persist an entity and then, recursively, its children."""
        return self.cascade(entity)

    def cascade_insert(self, entity: T) -> PersistenceResult:
        return self.cascade_save_or_update(entity)

    def cascade_update(self, entity: T) -> PersistenceResult:
        return self.cascade_save_or_update(entity)

    def cascade_save_or_update_all(self, entities: Iterable[T]) -> PersistenceResult:
        """Cascade several parents, sharing one visited set."""
        visited: VisitedSet = set()
        result = PersistenceResult.empty()
        for entity in entities:
            result = result.merge(self.cascade(entity, visited))
        return result

    def cascade(self, entity: T, visited: Optional[VisitedSet] = None) -> PersistenceResult:
        """Persist ``entity`` and its children unless already in ``visited``.

        Pass the same ``visited`` set across calls to persist a shared graph
        once. Child failures are logged and never raised.
        """
        if visited is None:
            visited = set()
        key = (type(entity), entity.id)
        if key in visited:
            return PersistenceResult.empty()
        visited.add(key)

        result = self.delegate.upsert([entity])
        if result.is_success:
            self._cascade_children(entity, visited)
        return result

    def _cascade_children(self, entity: T, visited: VisitedSet) -> None:
        try:
            children = self.get_children(entity)
        except Exception as e:
            logger.error(f"Could not read cascade properties of {type(entity).__name__} {entity.id}: {e}")
            return

        for child in children:
            key = (type(child), child.id)
            if key in visited:
                continue

            try:
                child_result = self._persist_child(child, key, visited)
            except Exception as e:
                visited.add(key)
                logger.error(
                    f"Cascade from {type(entity).__name__} {entity.id} failed for "
                    f"{type(child).__name__} {child.id}: {e}"
                )
                continue

            if not child_result.is_success:
                logger.error(
                    f"Cascade from {type(entity).__name__} {entity.id} failed for "
                    f"{type(child).__name__} {child.id}: {'; '.join(child_result.errors)}"
                )

    def _persist_child(self, child: Cacheable, key: Tuple[type, str], visited: VisitedSet) -> PersistenceResult:
        child_strategy = self.get_child_cache(type(child)).persistence_strategy
        if child_strategy is None:
            logger.debug(f"No persistence strategy for {type(child).__name__}; skipped {child.id}")
            visited.add(key)
            return PersistenceResult.empty()

        if isinstance(child_strategy, CascadePersistenceStrategy):
            return child_strategy.cascade(child, visited)
        visited.add(key)
        return child_strategy.upsert([child])
