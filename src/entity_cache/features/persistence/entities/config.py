"""Persistence configuration for one entity type.

Declarative metadata consumed by persistence strategies and by the cache's
post-flush transient clearing: target collection, insertable and updatable
fields, transient fields, and cascade settings.
"""

import re
from typing import FrozenSet, Iterable, Optional, Set

from ....core.exceptions import InvalidIdentifierError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def validate_identifier(name: str, kind: str = "field") -> str:
    """Ensure ``name`` is a plain identifier (optionally ``schema.table``).

    Adapters interpolate these names into SQL statements and store keys.
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise InvalidIdentifierError(
            f"Invalid {kind} name: {name!r}",
            details={"kind": kind, "name": name},
        )
    return name


class PersistenceConfig:
    """Persistence metadata for an entity type.

    Built with chained calls and shared by reference between the manager, the
    cache and its strategy::

        config = (
            PersistenceConfig("users")
            .add_insertable_and_updatable_property("name")
            .add_insertable_and_updatable_property("age")
            .add_transient_property("session_token")
        )
    """

    def __init__(self, collection_name: str, id_field: str = "id"):
        self._collection_name = validate_identifier(collection_name, "collection")
        self._id_field = validate_identifier(id_field)
        self._insertable: Set[str] = set()
        self._updatable: Set[str] = set()
        self._transient: Set[str] = set()
        self._cascade_properties: Set[str] = set()
        self._cascade_persist = False

    # Builder methods

    def add_insertable_property(self, name: str) -> "PersistenceConfig":
        self._insertable.add(validate_identifier(name))
        return self

    def add_updatable_property(self, name: str) -> "PersistenceConfig":
        self._updatable.add(validate_identifier(name))
        return self

    def add_insertable_and_updatable_property(self, name: str) -> "PersistenceConfig":
        validate_identifier(name)
        self._insertable.add(name)
        self._updatable.add(name)
        return self

    def add_properties(self, names: Iterable[str]) -> "PersistenceConfig":
        """Add several insertable and updatable properties at once."""
        for name in names:
            self.add_insertable_and_updatable_property(name)
        return self

    def add_transient_property(self, name: str) -> "PersistenceConfig":
        """Mark a field to be cleared from memory after a successful flush."""
        self._transient.add(validate_identifier(name))
        return self

    def add_cascade_property(self, name: str) -> "PersistenceConfig":
        """Declare a field holding child entities persisted through their own caches."""
        self._cascade_properties.add(validate_identifier(name))
        return self

    def set_cascade_persist(self, cascade_persist: bool) -> "PersistenceConfig":
        self._cascade_persist = bool(cascade_persist)
        return self

    # Read-only views

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def table_name(self) -> str:
        """Alias of ``collection_name`` for SQL backends."""
        return self._collection_name

    @property
    def id_field(self) -> str:
        return self._id_field

    @property
    def insertable_properties(self) -> FrozenSet[str]:
        return frozenset(self._insertable)

    @property
    def updatable_properties(self) -> FrozenSet[str]:
        return frozenset(self._updatable)

    @property
    def transient_properties(self) -> FrozenSet[str]:
        return frozenset(self._transient)

    @property
    def cascade_properties(self) -> FrozenSet[str]:
        return frozenset(self._cascade_properties)

    @property
    def cascade_persist(self) -> bool:
        return self._cascade_persist

    def is_cascade_persist(self) -> bool:
        return self._cascade_persist

    def persisted_properties(self, fallback: Optional[Iterable[str]] = None) -> list:
        """Sorted insertable/updatable fields, excluding the id field.

        ``fallback`` is used when the config declares no fields.
        """
        fields = self._insertable | self._updatable
        if not fields and fallback is not None:
            fields = set(fallback)
        fields.discard(self._id_field)
        return sorted(fields)

    def __repr__(self) -> str:
        return (
            f"PersistenceConfig(collection={self._collection_name!r}, "
            f"insertable={sorted(self._insertable)}, updatable={sorted(self._updatable)}, "
            f"transient={sorted(self._transient)}, cascade={self._cascade_persist})"
        )
