"""Result and statistics objects returned by an entity cache."""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PutResult(Generic[T]):
    """Outcome of a single write.

    ``accepted`` is False when a capacity limit rejected the write; in that
    case the store was left untouched. ``previous`` is the value that was
    replaced, or None when the id was new.
    """
    accepted: bool
    previous: Optional[T] = None

    @classmethod
    def rejected(cls) -> "PutResult[T]":
        return cls(accepted=False)


class CacheStats:
    """Thread-safe counters for one entity cache."""

    FIELDS = (
        "hits",
        "misses",
        "puts",
        "rejected_puts",
        "removals",
        "flushes",
        "persisted",
        "failed",
    )

    def __init__(self):
        self._counts = {name: 0 for name in self.FIELDS}
        self._lock = threading.Lock()

    def record(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> Dict[str, Any]:
        """Counters plus derived hit rate."""
        with self._lock:
            stats = dict(self._counts)
        total_reads = stats["hits"] + stats["misses"]
        stats["hit_rate"] = (stats["hits"] / total_reads) if total_reads > 0 else 0.0
        return stats
