"""Schema declaration layer exports."""

from .fields import (
    Boolean,
    Cardinality,
    EmbeddedReference,
    FieldDescriptor,
    FieldKind,
    Integer,
    Number,
    Object,
    Primitive,
    Reference,
    String,
    resolve_field,
)
from .registry import IndexSpec, Schema, SchemaRegistry

__all__ = [
    "Boolean",
    "Cardinality",
    "EmbeddedReference",
    "FieldDescriptor",
    "FieldKind",
    "IndexSpec",
    "Integer",
    "Number",
    "Object",
    "Primitive",
    "Reference",
    "Schema",
    "SchemaRegistry",
    "String",
    "resolve_field",
]
