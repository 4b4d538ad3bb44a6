"""Tests for the persistence strategy contract and the in-memory adapter."""

from typing import List

import pytest

from conftest import User
from entity_cache.core.exceptions import ConfigurationError
from entity_cache.features.persistence.adapters.memory_adapter import MemoryPersistenceStrategy
from entity_cache.features.persistence.entities.protocols import PersistenceStrategy


class FlakyStrategy(PersistenceStrategy[User]):
    """Strategy whose second batch always fails."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls: List[List[str]] = []

    def _upsert_batch(self, batch):
        self.calls.append([user.id for user in batch])
        if len(self.calls) == 2:
            raise RuntimeError("connection lost")

    def _delete(self, entity_id):
        if entity_id == "bad":
            raise RuntimeError("cannot delete")


class TestBatching:
    """Test batch splitting and failure containment."""

    def test_batches_of_max_size(self):
        """Test one execution per full batch plus a trailing partial one."""
        strategy = FlakyStrategy(max_batch_size=2)
        strategy.upsert([User(id=str(i)) for i in range(5)])

        assert [len(call) for call in strategy.calls] == [2, 2, 1]

    def test_failed_batch_does_not_stop_others(self):
        """Test later batches still run after a failure."""
        strategy = FlakyStrategy(max_batch_size=2)
        result = strategy.upsert([User(id=str(i)) for i in range(5)])

        assert result.failed_ids == frozenset({"2", "3"})
        assert result.persisted_ids == frozenset({"0", "1", "4"})
        assert result.errors == ("connection lost",)

    def test_empty_upsert(self):
        """Test nothing is executed for an empty input."""
        strategy = FlakyStrategy()
        assert strategy.upsert([]).total == 0
        assert strategy.calls == []

    def test_insert_and_update_default_to_upsert(self):
        """Test insert and update share the upsert path."""
        strategy = FlakyStrategy()
        strategy.insert([User(id="1")])
        strategy.update([User(id="2")])

        assert strategy.calls == [["1"], ["2"]]

    def test_invalid_batch_size(self):
        """Test a batch size below one is rejected."""
        with pytest.raises(ConfigurationError):
            FlakyStrategy(max_batch_size=0)


class TestDeletes:
    """Test the delete path."""

    def test_delete_by_id_reports_failure(self):
        """Test delete failures return False instead of raising."""
        strategy = FlakyStrategy()

        assert strategy.delete_by_id("ok") is True
        assert strategy.delete_by_id("bad") is False

    def test_delete_by_ids_returns_failed(self):
        """Test bulk delete returns the ids that failed."""
        assert FlakyStrategy().delete_by_ids(["a", "bad", "b"]) == {"bad"}

    def test_exists_not_supported_by_default(self):
        """Test the base class has no exists support."""
        with pytest.raises(NotImplementedError):
            FlakyStrategy().exists("1")

    def test_name_uses_collection(self, memory_strategy):
        """Test the log label comes from the config."""
        assert memory_strategy.name == "users"
        assert FlakyStrategy().name == "FlakyStrategy"


class TestMemoryPersistenceStrategy:
    """Test the in-memory adapter."""

    def test_records_are_copies(self, memory_strategy):
        """Test later mutation of the entity does not alter the record."""
        user = User(id="1", name="a")
        memory_strategy.upsert([user])
        user.name = "changed"

        assert memory_strategy.get_record("1").name == "a"

    def test_delete_and_exists(self, memory_strategy):
        """Test records can be deleted and checked for existence."""
        memory_strategy.upsert([User(id="1")])
        assert memory_strategy.exists("1")

        assert memory_strategy.delete_by_id("1")
        assert not memory_strategy.exists("1")
        assert memory_strategy.deleted_ids == ["1"]

    def test_simulated_failures(self, memory_strategy):
        """Test fail_ids fails the whole batch containing them."""
        memory_strategy.fail_ids.add("2")
        result = memory_strategy.upsert([User(id="1"), User(id="2")])

        assert result.failed_ids == frozenset({"1", "2"})
        assert len(memory_strategy) == 0

    def test_clear(self, memory_strategy):
        """Test clear drops records and call logs."""
        memory_strategy.upsert([User(id="1")])
        memory_strategy.clear()

        assert memory_strategy.records == {}
        assert memory_strategy.batch_sizes == []

    def test_is_a_persistence_strategy(self):
        """Test the adapter honours the contract."""
        assert isinstance(MemoryPersistenceStrategy(), PersistenceStrategy)
