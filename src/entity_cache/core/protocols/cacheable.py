"""Protocol for entities that can be held in an entity cache."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Cacheable(Protocol):
    """Domain object identified by a stable, unique string key.

    Identity is defined solely by ``id``: two objects with the same id are the
    same logical record regardless of instance identity.
    """

    @property
    def id(self) -> str:
        """Unique identifier of the entity."""
        ...
