"""Persistence result value object.

Immutable outcome of one upsert call: which entity ids reached the backing
store, which did not, and the error messages collected along the way.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Tuple


@dataclass(frozen=True)
class PersistenceResult:
    """Outcome of persisting a set of entities."""

    persisted_ids: FrozenSet[str] = field(default_factory=frozenset)
    failed_ids: FrozenSet[str] = field(default_factory=frozenset)
    errors: Tuple[str, ...] = ()

    def __post_init__(self):
        """Post-initialization validation."""
        overlap = self.persisted_ids & self.failed_ids
        if overlap:
            raise ValueError(f"Ids reported both persisted and failed: {sorted(overlap)}")

    @classmethod
    def empty(cls) -> "PersistenceResult":
        return cls()

    @classmethod
    def success(cls, ids: Iterable[str]) -> "PersistenceResult":
        return cls(persisted_ids=frozenset(ids))

    @classmethod
    def failure(cls, ids: Iterable[str], error_message: str) -> "PersistenceResult":
        return cls(failed_ids=frozenset(ids), errors=(error_message,))

    @property
    def is_success(self) -> bool:
        return not self.failed_ids

    @property
    def total(self) -> int:
        return len(self.persisted_ids) + len(self.failed_ids)

    def merge(self, other: "PersistenceResult") -> "PersistenceResult":
        """Combine two results; an id failing in either is reported failed."""
        failed = self.failed_ids | other.failed_ids
        return PersistenceResult(
            persisted_ids=(self.persisted_ids | other.persisted_ids) - failed,
            failed_ids=failed,
            errors=self.errors + other.errors,
        )
