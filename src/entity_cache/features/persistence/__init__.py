"""Persistence feature for entity-cache.

Feature-First layout:
- entities/: persistence config, results and the strategy contract
- services/: change detection and the cascade strategy
- adapters/: in-memory, Redis and asyncpg backing stores
"""

# Contract and configuration
from .entities import PersistenceConfig, PersistenceResult, PersistenceStrategy

# Services
from .services import CascadePersistenceStrategy, ChangeDetector, clear_properties, detect_changes

# Backing stores
from .adapters import AsyncPGPersistenceStrategy, MemoryPersistenceStrategy, RedisPersistenceStrategy

__all__ = [
    # Contract and configuration
    "PersistenceConfig",
    "PersistenceResult",
    "PersistenceStrategy",

    # Services
    "CascadePersistenceStrategy",
    "ChangeDetector",
    "clear_properties",
    "detect_changes",

    # Adapters
    "AsyncPGPersistenceStrategy",
    "MemoryPersistenceStrategy",
    "RedisPersistenceStrategy",
]
