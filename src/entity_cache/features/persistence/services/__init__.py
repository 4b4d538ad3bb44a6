"""Persistence services - change detection and cascading persistence."""

from .change_detector import (
    ChangeDetector,
    clear_properties,
    default_detector,
    detect_changes,
    register_fields,
)
from .cascade_strategy import CascadePersistenceStrategy

__all__ = [
    "ChangeDetector",
    "CascadePersistenceStrategy",
    "clear_properties",
    "default_detector",
    "detect_changes",
    "register_fields",
]
