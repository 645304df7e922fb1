"""Document-object mapper over pluggable document stores."""

from .config import MapperSettings
from .container import build_backend, build_mapper
from .errors import (
    BackendError,
    ConfigurationError,
    CursorConsumedError,
    DuplicateIdentity,
    MapperError,
    ReferenceNotFound,
    SchemaError,
    UniqueIndexViolation,
    ValidationError,
)
from .mapping import Collection, Cursor, DocumentMapper
from .model import ModelInstance
from .schema import (
    Boolean,
    EmbeddedReference,
    Integer,
    Number,
    Object,
    Primitive,
    Reference,
    Schema,
    SchemaRegistry,
    String,
)

__all__ = [
    "BackendError",
    "Boolean",
    "Collection",
    "ConfigurationError",
    "Cursor",
    "CursorConsumedError",
    "DocumentMapper",
    "DuplicateIdentity",
    "EmbeddedReference",
    "Integer",
    "MapperError",
    "MapperSettings",
    "ModelInstance",
    "Number",
    "Object",
    "Primitive",
    "Reference",
    "ReferenceNotFound",
    "Schema",
    "SchemaError",
    "SchemaRegistry",
    "String",
    "UniqueIndexViolation",
    "ValidationError",
    "build_backend",
    "build_mapper",
]
