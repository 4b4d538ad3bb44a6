"""AsyncPG persistence adapter.

The cache flushes from its own timer thread, while asyncpg pools live on an
event loop. Statements are submitted to that loop with
``asyncio.run_coroutine_threadsafe`` and waited on with a timeout.
"""

import asyncio
import json
import logging
import re
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar

import asyncpg

from ..entities.config import PersistenceConfig
from ..entities.protocols import PersistenceStrategy
from ....config.settings import DEFAULT_MAX_BATCH_SIZE
from ....core.exceptions import ConfigurationError, PersistenceError
from ....core.protocols import Cacheable

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Cacheable)

DEFAULT_STATEMENT_TIMEOUT_SECONDS = 30.0

_DELETE_PREFIX_RE = re.compile(r"^\s*delete\s+from\s+", re.IGNORECASE)


class AsyncPGPersistenceStrategy(PersistenceStrategy[T]):
    """
    PostgreSQL persistence strategy using an asyncpg pool.

    The default statements are generated from the ``PersistenceConfig``:

        INSERT INTO <table> (id, a, b) VALUES ($1, $2, $3)
        ON CONFLICT (id) DO UPDATE SET a = EXCLUDED.a, b = EXCLUDED.b

    Subclasses override the ``get_*_sql`` / ``get_*_params`` hooks for
    anything else. Each batch runs as one ``executemany`` inside a
    transaction.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        loop: asyncio.AbstractEventLoop,
        config: PersistenceConfig,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        timeout_seconds: float = DEFAULT_STATEMENT_TIMEOUT_SECONDS,
    ):
        if config is None:
            raise ConfigurationError("AsyncPGPersistenceStrategy requires a PersistenceConfig")
        super().__init__(config=config, max_batch_size=max_batch_size)
        self.pool = pool
        self.loop = loop
        self.timeout_seconds = timeout_seconds

    # SQL hooks

    def insert_columns(self) -> List[str]:
        return [self.config.id_field] + [
            name for name in self.config.persisted_properties()
            if name not in self.config.transient_properties
        ]

    def get_upsert_sql(self) -> str:
        columns = self.insert_columns()
        if len(columns) < 2:
            raise ConfigurationError(
                f"No persisted properties declared for {self.config.table_name}",
                details={"table": self.config.table_name},
            )

        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        updatable = [
            name for name in columns[1:]
            if name in self.config.updatable_properties
        ]

        query = (
            f"INSERT INTO {self.config.table_name} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) "
            f"ON CONFLICT ({self.config.id_field}) "
        )
        if updatable:
            query += "DO UPDATE SET " + ", ".join(f"{name} = EXCLUDED.{name}" for name in updatable)
        else:
            query += "DO NOTHING"
        return query

    def get_delete_sql(self) -> str:
        return f"DELETE FROM {self.config.table_name} WHERE {self.config.id_field} = $1"

    def get_exists_sql(self) -> str:
        """``SELECT 1 FROM ...`` derived from the delete statement."""
        delete_sql = self.get_delete_sql()
        if not _DELETE_PREFIX_RE.match(delete_sql):
            raise ConfigurationError(
                f"Cannot derive an exists query from: {delete_sql}",
                details={"delete_sql": delete_sql},
            )
        return _DELETE_PREFIX_RE.sub("SELECT 1 FROM ", delete_sql, count=1)

    def get_upsert_params(self, entity: T) -> Tuple[Any, ...]:
        values = [self._to_db_value(getattr(entity, name, None)) for name in self.insert_columns()[1:]]
        return (entity.id, *values)

    def get_delete_params(self, entity_id: str) -> Tuple[Any, ...]:
        return (entity_id,)

    @staticmethod
    def _to_db_value(value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return json.dumps(value, default=str)
        return value

    # Contract

    def _upsert_batch(self, batch: List[T]) -> None:
        query = self.get_upsert_sql()
        params = [self.get_upsert_params(entity) for entity in batch]
        self._run(self._execute_many(query, params))

    def _delete(self, entity_id: str) -> None:
        self._run(self._execute(self.get_delete_sql(), self.get_delete_params(entity_id)))

    def delete_by_ids(self, entity_ids: Iterable[str]) -> Set[str]:
        """Delete in batches, one ``executemany`` per batch."""
        entity_ids = list(entity_ids)
        failed: Set[str] = set()
        query = self.get_delete_sql()
        for batch in self._batches(entity_ids):
            try:
                self._run(self._execute_many(query, [self.get_delete_params(i) for i in batch]))
            except Exception as e:
                logger.error(f"Failed to delete {len(batch)} rows from {self.name}: {e}")
                failed.update(batch)
        return failed

    def exists(self, entity_id: str) -> bool:
        row = self._run(self._fetchval(self.get_exists_sql(), self.get_delete_params(entity_id)))
        return row is not None

    # Loop bridge

    def _run(self, coro) -> Any:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            coro.close()
            raise PersistenceError(
                "AsyncPGPersistenceStrategy cannot block on its own event loop; "
                "call it from a worker thread"
            )

        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as e:
            future.cancel()
            raise PersistenceError(
                f"Statement on {self.name} timed out after {self.timeout_seconds}s"
            ) from e

    async def _execute_many(self, query: str, params: Sequence[Tuple[Any, ...]]) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(query, params)

    async def _execute(self, query: str, params: Tuple[Any, ...]) -> str:
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *params)

    async def _fetchval(self, query: str, params: Tuple[Any, ...]) -> Optional[Any]:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *params)
