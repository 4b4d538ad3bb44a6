"""Persistence adapters - in-memory, Redis and PostgreSQL implementations."""

from .memory_adapter import MemoryPersistenceStrategy
from .redis_adapter import RedisPersistenceStrategy
from .asyncpg_adapter import AsyncPGPersistenceStrategy

__all__ = [
    "MemoryPersistenceStrategy",
    "RedisPersistenceStrategy",
    "AsyncPGPersistenceStrategy",
]
