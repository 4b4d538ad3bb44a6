"""Utilities module for entity-cache."""

from .datetime import utc_now, elapsed_millis

__all__ = [
    "utc_now",
    "elapsed_millis",
]
