"""Cache entry entity.

One immutable wrapper per cached entity. Entries are replaced wholesale on
every write and never mutated in place.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Generic, Optional, TypeVar

from ....utils.datetime import utc_now

T = TypeVar("T")

SizeEstimator = Callable[[Any], int]


def estimate_size(value: Any) -> int:
    """Rough size in bytes: two bytes per character of ``str(value)``."""
    return len(str(value)) * 2


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Cached entity with its approximate size and last-write time."""
    value: T
    size_bytes: int
    written_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(cls, value: T, estimator: Optional[SizeEstimator] = None) -> "CacheEntry[T]":
        size = (estimator or estimate_size)(value)
        return cls(value=value, size_bytes=max(0, int(size)))
