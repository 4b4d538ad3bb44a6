"""Redis persistence adapter.

Stores each entity as a hash at ``<collection>:<id>``. Field values are JSON
encoded so the hash can be read back without knowing the entity class.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Set, TypeVar

from redis import Redis
from redis.exceptions import RedisError

from ..entities.config import PersistenceConfig
from ..entities.protocols import PersistenceStrategy
from ..services.change_detector import ChangeDetector, default_detector
from ....config.settings import DEFAULT_MAX_BATCH_SIZE
from ....core.exceptions import ConfigurationError, PersistenceError
from ....core.protocols import Cacheable

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Cacheable)


class RedisPersistenceStrategy(PersistenceStrategy[T]):
    """Persistence strategy writing entities to Redis hashes.

    The client is a synchronous ``redis.Redis``: flushes already run on the
    cache's own timer thread.
    """

    def __init__(
        self,
        client: Redis,
        config: PersistenceConfig,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        change_detector: Optional[ChangeDetector] = None,
    ):
        if config is None:
            raise ConfigurationError("RedisPersistenceStrategy requires a PersistenceConfig")
        super().__init__(config=config, max_batch_size=max_batch_size)
        self.client = client
        self._detector = change_detector or default_detector

    @property
    def key_prefix(self) -> str:
        return self.config.collection_name

    def make_key(self, entity_id: str) -> str:
        return f"{self.key_prefix}:{entity_id}"

    def to_mapping(self, entity: T) -> Dict[str, str]:
        """Encode the persisted fields of an entity as hash fields."""
        fields = self.config.persisted_properties(fallback=self._detector.field_names(entity))
        mapping = {self.config.id_field: json.dumps(entity.id)}
        for name in fields:
            if name in self.config.transient_properties:
                continue
            mapping[name] = self._encode(getattr(entity, name, None))
        return mapping

    @staticmethod
    def _encode(value: Any) -> str:
        return json.dumps(value, default=str)

    @staticmethod
    def decode_mapping(mapping: Dict[Any, Any]) -> Dict[str, Any]:
        """Decode a hash read back from Redis into plain values."""
        decoded = {}
        for key, value in mapping.items():
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            if isinstance(value, bytes):
                value = value.decode("utf-8")
            decoded[key] = json.loads(value)
        return decoded

    def _upsert_batch(self, batch: List[T]) -> None:
        pipe = self.client.pipeline(transaction=False)
        for entity in batch:
            pipe.hset(self.make_key(entity.id), mapping=self.to_mapping(entity))
        try:
            pipe.execute()
        except RedisError as e:
            raise PersistenceError(
                f"Redis pipeline failed for {self.key_prefix}: {e}",
                details={"batch_size": len(batch)},
            ) from e

    def _delete(self, entity_id: str) -> None:
        try:
            self.client.delete(self.make_key(entity_id))
        except RedisError as e:
            raise PersistenceError(f"Redis delete failed for {self.make_key(entity_id)}: {e}") from e

    def delete_by_ids(self, entity_ids: Iterable[str]) -> Set[str]:
        """Delete several records with one ``DEL`` per batch."""
        entity_ids = list(entity_ids)
        failed: Set[str] = set()
        for batch in self._batches(entity_ids):
            try:
                self.client.delete(*[self.make_key(entity_id) for entity_id in batch])
            except RedisError as e:
                logger.error(f"Failed to delete {len(batch)} keys from {self.key_prefix}: {e}")
                failed.update(batch)
        return failed

    def exists(self, entity_id: str) -> bool:
        try:
            return bool(self.client.exists(self.make_key(entity_id)))
        except RedisError as e:
            raise PersistenceError(f"Redis exists failed for {self.make_key(entity_id)}: {e}") from e

    def load(self, entity_id: str) -> Optional[Dict[str, Any]]:
        """Read one stored record back as a dict of decoded field values."""
        try:
            mapping = self.client.hgetall(self.make_key(entity_id))
        except RedisError as e:
            raise PersistenceError(f"Redis read failed for {self.make_key(entity_id)}: {e}") from e
        return self.decode_mapping(mapping) if mapping else None
