"""Tests for the asyncpg persistence adapter."""

import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import User
from entity_cache.core.exceptions import ConfigurationError, PersistenceError
from entity_cache.features.persistence.adapters.asyncpg_adapter import AsyncPGPersistenceStrategy
from entity_cache.features.persistence.entities.config import PersistenceConfig


class AsyncContext:
    """Minimal async context manager yielding a fixed value."""

    def __init__(self, value=None):
        self.value = value

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, exc_type, exc, tb):
        return False


class SoftDeleteStrategy(AsyncPGPersistenceStrategy):
    def get_delete_sql(self):
        return f"UPDATE {self.config.table_name} SET deleted_at = now() WHERE id = $1"


@pytest.fixture
def background_loop():
    """Event loop running in its own thread, as an application would host it."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    yield loop
    loop.call_soon_threadsafe(loop.stop)
    thread.join(2.0)
    loop.close()


@pytest.fixture
def connection():
    """Mock asyncpg connection."""
    conn = MagicMock()
    conn.executemany = AsyncMock()
    conn.execute = AsyncMock(return_value="DELETE 1")
    conn.fetchval = AsyncMock(return_value=1)
    conn.transaction = MagicMock(return_value=AsyncContext())
    return conn


@pytest.fixture
def pool(connection):
    """Mock asyncpg pool handing out the mock connection."""
    pool = MagicMock()
    pool.acquire = MagicMock(side_effect=lambda: AsyncContext(connection))
    return pool


@pytest.fixture
def strategy(pool, background_loop, user_config):
    return AsyncPGPersistenceStrategy(pool, background_loop, user_config, max_batch_size=2)


class TestSqlGeneration:
    """Test statements generated from the persistence config."""

    def test_upsert_sql(self, strategy):
        """Test the default upsert statement."""
        assert strategy.get_upsert_sql() == (
            "INSERT INTO users (id, age, name) VALUES ($1, $2, $3) "
            "ON CONFLICT (id) DO UPDATE SET age = EXCLUDED.age, name = EXCLUDED.name"
        )

    def test_insert_only_properties(self, pool, background_loop):
        """Test columns that are not updatable are left alone on conflict."""
        config = PersistenceConfig("audit.events").add_insertable_property("payload")
        strategy = AsyncPGPersistenceStrategy(pool, background_loop, config)

        assert strategy.get_upsert_sql() == (
            "INSERT INTO audit.events (id, payload) VALUES ($1, $2) ON CONFLICT (id) DO NOTHING"
        )

    def test_no_properties(self, pool, background_loop):
        """Test a config without persisted fields cannot build an upsert."""
        strategy = AsyncPGPersistenceStrategy(pool, background_loop, PersistenceConfig("users"))
        with pytest.raises(ConfigurationError):
            strategy.get_upsert_sql()

    def test_delete_and_exists_sql(self, strategy):
        """Test exists is derived from the delete statement."""
        assert strategy.get_delete_sql() == "DELETE FROM users WHERE id = $1"
        assert strategy.get_exists_sql() == "SELECT 1 FROM users WHERE id = $1"

    def test_exists_needs_delete_statement(self, pool, background_loop, user_config):
        """Test a non-DELETE delete hook cannot derive exists."""
        strategy = SoftDeleteStrategy(pool, background_loop, user_config)
        with pytest.raises(ConfigurationError):
            strategy.get_exists_sql()

    def test_upsert_params(self, strategy):
        """Test params follow the column order, transient fields excluded."""
        params = strategy.get_upsert_params(User(id="1", name="a", age=3, session_token="t"))
        assert params == ("1", 3, "a")

    def test_requires_config(self, pool, background_loop):
        """Test a config is mandatory."""
        with pytest.raises(ConfigurationError):
            AsyncPGPersistenceStrategy(pool, background_loop, None)


class TestExecution:
    """Test statements submitted to the event loop."""

    def test_upsert_executemany_per_batch(self, strategy, connection):
        """Test one executemany per batch inside a transaction."""
        result = strategy.upsert([User(id=str(i), name="n") for i in range(3)])

        assert result.persisted_ids == frozenset({"0", "1", "2"})
        assert connection.executemany.await_count == 2
        assert connection.transaction.call_count == 2
        query, params = connection.executemany.await_args_list[0].args
        assert query.startswith("INSERT INTO users")
        assert params == [("0", 0, "n"), ("1", 0, "n")]

    def test_upsert_failure_reported(self, strategy, connection):
        """Test a failing batch is reported, the next one still runs."""
        connection.executemany.side_effect = [RuntimeError("connection reset"), None]

        result = strategy.upsert([User(id=str(i)) for i in range(3)])

        assert result.failed_ids == frozenset({"0", "1"})
        assert result.persisted_ids == frozenset({"2"})

    def test_delete_by_id(self, strategy, connection):
        """Test single delete."""
        assert strategy.delete_by_id("7") is True
        connection.execute.assert_awaited_once_with("DELETE FROM users WHERE id = $1", "7")

    def test_delete_by_ids(self, strategy, connection):
        """Test bulk delete runs one executemany per batch."""
        connection.executemany.side_effect = [None, RuntimeError("gone")]

        assert strategy.delete_by_ids(["1", "2", "3"]) == {"3"}
        assert connection.executemany.await_args_list[0].args[1] == [("1",), ("2",)]

    def test_exists(self, strategy, connection):
        """Test exists reads one value."""
        assert strategy.exists("1") is True
        connection.fetchval.assert_awaited_once_with("SELECT 1 FROM users WHERE id = $1", "1")

        connection.fetchval.return_value = None
        assert strategy.exists("2") is False

    def test_timeout(self, pool, background_loop, user_config, connection):
        """Test a statement outliving the timeout raises."""
        async def slow(*args):
            await asyncio.sleep(1.0)

        connection.fetchval.side_effect = slow
        strategy = AsyncPGPersistenceStrategy(pool, background_loop, user_config, timeout_seconds=0.05)

        with pytest.raises(PersistenceError):
            strategy.exists("1")

    def test_calling_from_loop_thread_rejected(self, strategy, background_loop):
        """Test blocking on the strategy's own loop is refused."""
        async def exists_on_loop():
            return strategy.exists("1")

        future = asyncio.run_coroutine_threadsafe(exists_on_loop(), background_loop)
        with pytest.raises(PersistenceError):
            future.result(timeout=2.0)
