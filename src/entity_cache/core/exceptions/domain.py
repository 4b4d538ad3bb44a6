"""Domain exceptions for entity-cache.

Raised for misuse of the public API: invalid configuration values and
invalid declarative persistence metadata.
"""

from .base import EntityCacheError


# Configuration Errors
class ConfigurationError(EntityCacheError):
    """Raised when a cache or strategy is configured with invalid values."""
    pass


# Validation Errors
class ValidationError(EntityCacheError):
    """Raised when input validation fails."""
    pass


class InvalidIdentifierError(ConfigurationError):
    """Raised when a collection or field name is not a plain identifier."""
    pass
