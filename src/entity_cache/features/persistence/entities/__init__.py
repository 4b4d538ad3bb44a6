"""Persistence entities - configuration, results and the strategy contract."""

from .config import PersistenceConfig, validate_identifier
from .protocols import PersistenceStrategy
from .result import PersistenceResult

__all__ = [
    "PersistenceConfig",
    "PersistenceResult",
    "PersistenceStrategy",
    "validate_identifier",
]
