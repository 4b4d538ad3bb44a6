"""Cache settings for entity-cache.

Defaults for every cache created by an ``EntityCacheManager``. Values are read
from ``ENTITY_CACHE_*`` environment variables or an optional ``.env`` file.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_FLUSH_INTERVAL_MILLIS = 60_000
DEFAULT_MAX_BATCH_SIZE = 100
DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 5.0


class CacheSettings(BaseSettings):
    """Global write-back cache settings."""

    model_config = SettingsConfigDict(
        env_prefix="ENTITY_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Capacity limits (None = unbounded)
    max_records: Optional[int] = Field(default=None, ge=0, description="Max entries per cache")
    max_size_bytes: Optional[int] = Field(default=None, ge=0, description="Max approximate bytes per cache")

    # Flush scheduling
    flush_interval_millis: int = Field(
        default=DEFAULT_FLUSH_INTERVAL_MILLIS, ge=1, description="Interval between flush cycles"
    )
    shutdown_timeout_seconds: float = Field(
        default=DEFAULT_SHUTDOWN_TIMEOUT_SECONDS, ge=0, description="Grace period for the in-flight flush on shutdown"
    )

    # Persistence
    max_batch_size: int = Field(
        default=DEFAULT_MAX_BATCH_SIZE, ge=1, description="Max entities per backing-store execution"
    )

    def cache_kwargs(self) -> dict:
        """Keyword arguments for constructing an ``EntityCache``."""
        return {
            "max_records": self.max_records,
            "max_size_bytes": self.max_size_bytes,
            "flush_interval_millis": self.flush_interval_millis,
            "shutdown_timeout_seconds": self.shutdown_timeout_seconds,
        }
