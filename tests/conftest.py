"""Pytest configuration and fixtures for entity-cache tests."""

from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from entity_cache.config.settings import CacheSettings
from entity_cache.features.cache.services.cache_manager import EntityCacheManager
from entity_cache.features.cache.services.entity_cache import EntityCache
from entity_cache.features.persistence.adapters.memory_adapter import MemoryPersistenceStrategy
from entity_cache.features.persistence.entities.config import PersistenceConfig
from entity_cache.features.persistence.services.change_detector import ChangeDetector


@dataclass
class User:
    """Sample entity with one transient field."""
    id: str
    name: Optional[str] = None
    age: int = 0
    session_token: Optional[str] = None


@dataclass
class OrderLine:
    """Child entity of an order."""
    id: str
    sku: str
    quantity: int = 1
    order: Optional["Order"] = None


@dataclass
class Order:
    """Parent entity holding child lines."""
    id: str
    customer: Optional[str] = None
    lines: List[OrderLine] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


@pytest.fixture
def user_config():
    """Persistence config for users with a transient session token."""
    return (
        PersistenceConfig("users")
        .add_insertable_and_updatable_property("name")
        .add_insertable_and_updatable_property("age")
        .add_transient_property("session_token")
    )


@pytest.fixture
def memory_strategy(user_config):
    """In-memory strategy for users."""
    return MemoryPersistenceStrategy(config=user_config)


@pytest.fixture
def detector():
    """Fresh change detector, isolated from the shared default one."""
    return ChangeDetector()


@pytest.fixture
def user_cache(memory_strategy, user_config, detector):
    """User cache with a long flush interval so only manual flushes run."""
    cache = EntityCache(
        User,
        flush_interval_millis=3_600_000,
        shutdown_timeout_seconds=1.0,
        persistence_strategy=memory_strategy,
        persistence_config=user_config,
        change_detector=detector,
    )
    yield cache
    cache.shutdown()


@pytest.fixture
def settings():
    """Settings with a long flush interval and short shutdown grace."""
    return CacheSettings(flush_interval_millis=3_600_000, shutdown_timeout_seconds=1.0)


@pytest.fixture
def manager(settings):
    """Cache manager shut down after the test."""
    manager = EntityCacheManager(settings=settings)
    yield manager
    manager.shutdown()
