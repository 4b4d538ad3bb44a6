"""Field-level change detection for cached entities.

Compares two versions of an entity over a declared field list and resets
named fields to their empty state. Field lists come from, in order: an
explicit registration, dataclass fields, pydantic model fields, slots, or
the instance attributes.
"""

import dataclasses
import logging
import threading
import typing
from types import UnionType
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, Union

logger = logging.getLogger(__name__)

_MISSING = object()

# Fields with these annotations have no empty state and are never cleared
NON_NULLABLE_PRIMITIVES = (int, float, bool, complex)

_UNION_TYPES = (Union, UnionType)


class ChangeDetector:
    """Stateless comparison of entity versions over declared fields.

    The only state is the registry of explicit field lists and a cache of
    resolved type hints; both are guarded by a lock.
    """

    def __init__(self):
        self._registered: Dict[type, Tuple[str, ...]] = {}
        self._hints: Dict[type, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def register(self, entity_type: type, field_names: Iterable[str]) -> None:
        """Declare the field list compared for ``entity_type``."""
        with self._lock:
            self._registered[entity_type] = tuple(field_names)

    def field_names(self, entity: Any) -> List[str]:
        """Resolve the declared field list of an entity."""
        entity_type = type(entity)
        registered = self._registered.get(entity_type)
        if registered is not None:
            return list(registered)

        if dataclasses.is_dataclass(entity):
            return [f.name for f in dataclasses.fields(entity)]

        model_fields = getattr(entity_type, "model_fields", None)
        if isinstance(model_fields, dict):
            return list(model_fields)

        slots = getattr(entity_type, "__slots__", None)
        if slots:
            return [slots] if isinstance(slots, str) else [s for s in slots if s != "__weakref__"]

        return [name for name in getattr(entity, "__dict__", {}) if not name.startswith("_")]

    def detect_changes(
        self,
        old: Any,
        new: Any,
        field_names: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        """Map each differing field to its new value.

        Args:
            old: Previous version of the entity
            new: New version of the entity
            field_names: Restrict comparison to these fields

        Returns:
            ``{field: new_value}`` for every field whose value differs,
            including fields that went from ``None`` to a value and fields
            present only on ``new``
        """
        changes: Dict[str, Any] = {}
        if old is None or new is None:
            return changes

        if field_names is not None:
            names = list(field_names)
        else:
            names = list(dict.fromkeys([*self.field_names(old), *self.field_names(new)]))

        for name in names:
            old_value = getattr(old, name, _MISSING)
            new_value = getattr(new, name, _MISSING)
            if new_value is _MISSING:
                logger.debug(f"Skipping field {name!r} missing on new {type(new).__name__}")
                continue
            if old_value is _MISSING:
                changes[name] = new_value
                continue

            try:
                differs = bool(old_value != new_value)
            except Exception as e:
                logger.debug(f"Skipping field {name!r}, comparison failed: {e}")
                continue

            if differs:
                changes[name] = new_value

        return changes

    def has_changes(self, old: Any, new: Any, field_names: Optional[Iterable[str]] = None) -> bool:
        return bool(self.detect_changes(old, new, field_names))

    def clear_properties(self, entity: Any, field_names: Iterable[str]) -> List[str]:
        """Reset the named fields of ``entity`` in place.

        Non-nullable primitive fields are left untouched. Fields that cannot
        be set are skipped.

        Returns:
            Names of the fields that were cleared
        """
        cleared: List[str] = []
        if entity is None:
            return cleared

        hints = self._type_hints(type(entity))
        dataclass_fields = (
            {f.name: f for f in dataclasses.fields(entity)} if dataclasses.is_dataclass(entity) else {}
        )

        for name in field_names:
            if not hasattr(entity, name):
                logger.debug(f"Skipping missing field {name!r} on {type(entity).__name__}")
                continue

            annotation = hints.get(name, _MISSING)
            if annotation in NON_NULLABLE_PRIMITIVES:
                continue

            empty_value = self._empty_value(dataclass_fields.get(name))
            try:
                setattr(entity, name, empty_value)
                cleared.append(name)
            except (AttributeError, TypeError, ValueError) as e:
                logger.debug(f"Cannot clear field {name!r} on {type(entity).__name__}: {e}")

        return cleared

    def _type_hints(self, entity_type: type) -> Dict[str, Any]:
        hints = self._hints.get(entity_type)
        if hints is not None:
            return hints

        try:
            hints = typing.get_type_hints(entity_type)
        except Exception:
            # Unresolvable forward references; fall back to raw annotations
            hints = {}
            for klass in reversed(entity_type.__mro__):
                hints.update(getattr(klass, "__annotations__", {}))

        hints = {name: self._unwrap(annotation) for name, annotation in hints.items()}
        with self._lock:
            self._hints[entity_type] = hints
        return hints

    @staticmethod
    def _unwrap(annotation: Any) -> Any:
        """Reduce ``Optional[X]`` to ``None`` so it is never a primitive."""
        origin = typing.get_origin(annotation)
        if origin in _UNION_TYPES and type(None) in typing.get_args(annotation):
            return None
        if origin is typing.ClassVar:
            return _MISSING
        return annotation

    @staticmethod
    def _empty_value(dataclass_field: Optional[dataclasses.Field]) -> Any:
        if dataclass_field is not None and dataclass_field.default_factory is not dataclasses.MISSING:
            return dataclass_field.default_factory()
        return None


default_detector = ChangeDetector()


def detect_changes(old: Any, new: Any, field_names: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """Compare two entity versions with the shared detector."""
    return default_detector.detect_changes(old, new, field_names)


def clear_properties(entity: Any, field_names: Iterable[str]) -> List[str]:
    """Clear fields of an entity with the shared detector."""
    return default_detector.clear_properties(entity, field_names)


def register_fields(entity_type: Type, field_names: Iterable[str]) -> None:
    """Declare the compared field list of a type on the shared detector."""
    default_detector.register(entity_type, field_names)
