"""Tests for persistence config and results."""

import pytest

from entity_cache.core.exceptions import ConfigurationError, InvalidIdentifierError
from entity_cache.features.persistence.entities.config import PersistenceConfig, validate_identifier
from entity_cache.features.persistence.entities.result import PersistenceResult


class TestPersistenceConfig:
    """Test the config builder."""

    def test_builder_chains(self):
        """Test every builder method returns the config."""
        config = (
            PersistenceConfig("users")
            .add_insertable_property("created_by")
            .add_updatable_property("updated_by")
            .add_insertable_and_updatable_property("name")
            .add_transient_property("session_token")
            .add_cascade_property("orders")
            .set_cascade_persist(True)
        )

        assert config.collection_name == "users"
        assert config.table_name == "users"
        assert config.insertable_properties == frozenset({"created_by", "name"})
        assert config.updatable_properties == frozenset({"updated_by", "name"})
        assert config.transient_properties == frozenset({"session_token"})
        assert config.cascade_properties == frozenset({"orders"})
        assert config.is_cascade_persist()

    def test_getters_return_frozen_copies(self):
        """Test callers cannot mutate the config through its getters."""
        config = PersistenceConfig("users").add_properties(["name", "age"])

        with pytest.raises(AttributeError):
            config.insertable_properties.add("other")
        assert config.insertable_properties == frozenset({"name", "age"})

    def test_persisted_properties_exclude_id(self):
        """Test the id field never appears among persisted columns."""
        config = PersistenceConfig("users").add_properties(["name", "id", "age"])

        assert config.persisted_properties() == ["age", "name"]

    def test_persisted_properties_fallback(self):
        """Test the fallback is used when nothing is declared."""
        config = PersistenceConfig("users")

        assert config.persisted_properties(fallback=["id", "b", "a"]) == ["a", "b"]
        assert config.persisted_properties() == []

    def test_schema_qualified_collection(self):
        """Test schema.table names are accepted."""
        assert PersistenceConfig("admin.users").table_name == "admin.users"

    @pytest.mark.parametrize("name", ["users; drop table x", "1users", "", "a.b.c", "na me"])
    def test_invalid_collection_names(self, name):
        """Test names that are not plain identifiers are rejected."""
        with pytest.raises(InvalidIdentifierError):
            PersistenceConfig(name)

    def test_invalid_property_name(self):
        """Test property names are validated too."""
        with pytest.raises(ConfigurationError):
            PersistenceConfig("users").add_transient_property("bad-name")

    def test_validate_identifier_returns_name(self):
        """Test a valid name is returned unchanged."""
        assert validate_identifier("user_id") == "user_id"


class TestPersistenceResult:
    """Test the persistence result value object."""

    def test_success_and_failure(self):
        """Test factory methods."""
        ok = PersistenceResult.success(["1", "2"])
        bad = PersistenceResult.failure(["3"], "down")

        assert ok.is_success
        assert not bad.is_success
        assert bad.errors == ("down",)
        assert PersistenceResult.empty().total == 0

    def test_merge(self):
        """Test merging reports an id failing anywhere as failed."""
        merged = PersistenceResult.success(["1", "2"]).merge(PersistenceResult.failure(["2"], "x"))

        assert merged.persisted_ids == frozenset({"1"})
        assert merged.failed_ids == frozenset({"2"})
        assert merged.total == 2

    def test_overlap_rejected(self):
        """Test an id cannot be both persisted and failed."""
        with pytest.raises(ValueError):
            PersistenceResult(persisted_ids=frozenset({"1"}), failed_ids=frozenset({"1"}))
