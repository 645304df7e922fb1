"""Schema definitions and the registry that owns them."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from docmapper.base import DomainModel
from docmapper.errors import SchemaError

from .fields import (
    RESERVED_NAMES,
    EmbeddedReference,
    FieldDescriptor,
    Reference,
    resolve_field,
)


class IndexSpec(DomainModel):
    """Index declared on a schema's collection."""

    field_name: str
    unique: bool = False
    sparse: bool = False


class Schema:
    """A named collection definition composed of field descriptors.

    Fields keep declaration order so validation errors are reported
    deterministically. Index declarations are accepted until the schema is
    sealed, which happens when its collection is first initialised.
    """

    __slots__ = ("_fields", "_indexes", "_sealed", "name")

    def __init__(self, name: str, fields: Iterable[FieldDescriptor]) -> None:
        self.name = name
        self._fields: dict[str, FieldDescriptor] = {}
        for descriptor in fields:
            if descriptor.name in self._fields:
                msg = f"Field {descriptor.name!r} declared twice on {name}"
                raise SchemaError(msg)
            self._fields[descriptor.name] = descriptor
        self._indexes: list[IndexSpec] = []
        self._sealed = False

    @property
    def fields(self) -> Mapping[str, FieldDescriptor]:
        return MappingProxyType(self._fields)

    @property
    def indexes(self) -> tuple[IndexSpec, ...]:
        return tuple(self._indexes)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._fields

    def __repr__(self) -> str:
        return f"Schema({self.name!r}, fields={list(self._fields)})"

    def field(self, field_name: str) -> FieldDescriptor:
        try:
            return self._fields[field_name]
        except KeyError as exc:
            msg = f"{self.name} has no field {field_name!r}"
            raise SchemaError(msg) from exc

    def relations(self) -> tuple[FieldDescriptor, ...]:
        """Reference and embedded fields, in declaration order."""

        return tuple(descriptor for descriptor in self._fields.values() if descriptor.is_relation)

    def ref(self, *, required: bool = True) -> Reference:
        return Reference(self.name, required=required)

    def embed(self, *, required: bool = True) -> EmbeddedReference:
        return EmbeddedReference(self.name, required=required)

    def index(self, field_name: str, *, unique: bool = False, sparse: bool = False) -> IndexSpec:
        if self._sealed:
            msg = f"Cannot declare index on {self.name}.{field_name}: collection already in use"
            raise SchemaError(msg)
        root = field_name.split(".", maxsplit=1)[0]
        if root not in self._fields:
            msg = f"Cannot index unknown field {self.name}.{field_name}"
            raise SchemaError(msg)
        spec = IndexSpec(field_name=field_name, unique=unique, sparse=sparse)
        self._indexes = [existing for existing in self._indexes if existing.field_name != field_name]
        self._indexes.append(spec)
        return spec

    def seal(self) -> None:
        self._sealed = True


@dataclass(slots=True)
class SchemaRegistry:
    """Explicit registry mapping collection names to schemas."""

    _schemas: dict[str, Schema] = field(default_factory=dict)

    def declare(
        self,
        name: str,
        fields: Mapping[str, Any],
        *,
        override: bool = False,
    ) -> Schema:
        """Resolve ``fields`` into descriptors and register the schema."""

        if not name:
            raise SchemaError("Schema name must be a non-empty string")
        descriptors = []
        for field_name, declaration in fields.items():
            if not field_name or field_name.startswith("_") or field_name in RESERVED_NAMES:
                msg = f"Field name {field_name!r} is reserved ({name})"
                raise SchemaError(msg)
            descriptors.append(resolve_field(field_name, declaration))
        schema = Schema(name, descriptors)
        self.register(schema, override=override)
        return schema

    def register(self, schema: Schema, *, override: bool = False) -> None:
        if not override and schema.name in self._schemas:
            msg = f"Schema {schema.name} already declared"
            raise SchemaError(msg)
        self._schemas[schema.name] = schema

    def get(self, name: str) -> Schema:
        try:
            return self._schemas[name]
        except KeyError as exc:
            msg = f"Unknown schema {name}"
            raise SchemaError(msg) from exc

    def target_of(self, descriptor: FieldDescriptor) -> Schema:
        if descriptor.target is None:
            msg = f"Field {descriptor.name!r} is not a reference or embed"
            raise SchemaError(msg)
        return self.get(descriptor.target)

    def list_schemas(self) -> tuple[Schema, ...]:
        return tuple(self._schemas.values())

    def __contains__(self, name: object) -> bool:
        return name in self._schemas


__all__ = ["IndexSpec", "Schema", "SchemaRegistry"]
