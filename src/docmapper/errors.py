"""Mapper exceptions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .types import Identity


class MapperError(RuntimeError):
    """Base class for document mapper errors."""


class ConfigurationError(MapperError):
    """Raised when settings do not describe a usable storage medium."""


class SchemaError(MapperError):
    """Raised for invalid schema declarations or unknown schemas."""


class ValidationError(MapperError):
    """Raised before any write when one or more fields fail validation."""

    def __init__(self, failing_fields: Mapping[str, Any]) -> None:
        self.failing_fields = dict(failing_fields)
        names = ", ".join(self.failing_fields)
        super().__init__(f"Invalid fields: {names}")


class ReferenceNotFound(MapperError):
    """Raised by join when a reference identifier resolves to no document."""

    def __init__(self, field_name: str, identity: Identity) -> None:
        self.field_name = field_name
        self.identity = identity
        super().__init__(f"Reference {field_name}={identity!r} not found")


class CursorConsumedError(MapperError):
    """Raised when a single-pass cursor is iterated a second time."""


class BackendError(MapperError):
    """Base class for failures raised by the bundled storage backends."""


class DuplicateIdentity(BackendError):
    """Raised when an insert collides with an existing document identity."""

    def __init__(self, identity: Identity, collection: str | None = None) -> None:
        self.identity = identity
        self.collection = collection
        where = f" in {collection}" if collection else ""
        super().__init__(f"Document {identity!r} already exists{where}")


class UniqueIndexViolation(BackendError):
    """Raised when a write breaks a unique index."""

    def __init__(self, field_name: str, value: Any) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(f"Unique index on {field_name} violated by {value!r}")


__all__ = [
    "BackendError",
    "ConfigurationError",
    "CursorConsumedError",
    "DuplicateIdentity",
    "MapperError",
    "ReferenceNotFound",
    "SchemaError",
    "UniqueIndexViolation",
    "ValidationError",
]
