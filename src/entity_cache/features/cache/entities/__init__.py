"""Cache entities - entries, write results and statistics."""

from .cache_entry import CacheEntry, SizeEstimator, estimate_size
from .results import PutResult, CacheStats

__all__ = [
    "CacheEntry",
    "SizeEstimator",
    "estimate_size",
    "PutResult",
    "CacheStats",
]
