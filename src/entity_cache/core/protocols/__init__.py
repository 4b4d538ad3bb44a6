"""Core protocols for entity-cache."""

from .cacheable import Cacheable

__all__ = [
    "Cacheable",
]
