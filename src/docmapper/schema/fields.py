"""Field declarations and the resolved field descriptor table."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from docmapper.errors import SchemaError
from docmapper.types import ID_FIELD

# Names that would shadow the model instance surface.
RESERVED_NAMES = frozenset(
    {
        ID_FIELD,
        "id",
        "is_new",
        "pending_changes",
        "values",
        "schema",
        "collection",
        "save",
        "save_all",
        "save_refs",
        "join",
        "delete",
        "copy",
        "to_document",
    }
)


class FieldKind(StrEnum):
    """How a field's value is stored."""

    PRIMITIVE = "primitive"
    REFERENCE = "reference"
    EMBEDDED = "embedded"


class Cardinality(StrEnum):
    SINGLE = "single"
    LIST = "list"


@dataclass(frozen=True, slots=True)
class FieldCheck:
    """Outcome of a primitive check: the coerced value, or the offending input."""

    ok: bool
    value: Any


@lru_cache(maxsize=None)
def _adapter(python_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(python_type)


@dataclass(frozen=True, slots=True)
class Primitive:
    """A scalar or mapping value checked by a pydantic type adapter.

    ``String[5]`` yields a copy bounded to five characters. Non-strict
    primitives use pydantic's lax mode (``Integer`` accepts ``"7"`` and
    stores ``7``); strict ones accept only values of their own type, so
    ``Number`` rejects ``True`` and ``"1.5"``.
    """

    python_type: Any
    max_length: int | None = None
    required: bool = True
    strict: bool = False

    def __getitem__(self, max_length: int) -> Primitive:
        if not isinstance(max_length, int) or max_length < 0:
            msg = f"max length must be a non-negative integer, got {max_length!r}"
            raise SchemaError(msg)
        return replace(self, max_length=max_length)

    def optional(self) -> Primitive:
        return replace(self, required=False)

    def check(self, value: Any) -> FieldCheck:
        try:
            coerced = _adapter(self.python_type).validate_python(value, strict=self.strict)
        except PydanticValidationError:
            return FieldCheck(False, value)
        if self.max_length is not None and hasattr(coerced, "__len__"):
            if len(coerced) > self.max_length:
                return FieldCheck(False, value)
        return FieldCheck(True, coerced)


def _target_name(target: Any) -> str:
    name = getattr(target, "name", target)
    if not isinstance(name, str) or not name:
        msg = f"Reference target must be a schema or schema name, got {target!r}"
        raise SchemaError(msg)
    return name


@dataclass(frozen=True, slots=True)
class Reference:
    """Stores only the identity of a document in the target schema."""

    target: str
    required: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", _target_name(self.target))

    def optional(self) -> Reference:
        return replace(self, required=False)


@dataclass(frozen=True, slots=True)
class EmbeddedReference:
    """Stores a full sub-document of the target schema inline."""

    target: str
    required: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", _target_name(self.target))

    def optional(self) -> EmbeddedReference:
        return replace(self, required=False)


String = Primitive(str)
Number = Primitive(int | float, strict=True)
Integer = Primitive(int)
Boolean = Primitive(bool, strict=True)
Object = Primitive(dict[str, Any])


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Resolved description of one schema field."""

    name: str
    kind: FieldKind
    cardinality: Cardinality = Cardinality.SINGLE
    required: bool = True
    primitive: Primitive | None = None
    target: str | None = None

    @property
    def is_list(self) -> bool:
        return self.cardinality is Cardinality.LIST

    @property
    def is_reference(self) -> bool:
        return self.kind is FieldKind.REFERENCE

    @property
    def is_embedded(self) -> bool:
        return self.kind is FieldKind.EMBEDDED

    @property
    def is_relation(self) -> bool:
        return self.kind is not FieldKind.PRIMITIVE


def resolve_field(name: str, declaration: Any) -> FieldDescriptor:
    """Turn a field declaration into a :class:`FieldDescriptor`.

    Accepts primitives, ``Reference``/``EmbeddedReference``, a bare schema
    (shorthand for a reference), a bare Python type, or a one-element list of
    any of these for list cardinality.
    """

    if isinstance(declaration, list | tuple):
        if len(declaration) != 1:
            msg = f"List field {name!r} must declare exactly one element type"
            raise SchemaError(msg)
        inner = resolve_field(name, declaration[0])
        if inner.is_list:
            msg = f"Nested list declarations are not supported ({name!r})"
            raise SchemaError(msg)
        return replace(inner, cardinality=Cardinality.LIST)

    if isinstance(declaration, Primitive):
        return FieldDescriptor(
            name=name,
            kind=FieldKind.PRIMITIVE,
            required=declaration.required,
            primitive=declaration,
        )
    if isinstance(declaration, Reference):
        return FieldDescriptor(
            name=name,
            kind=FieldKind.REFERENCE,
            required=declaration.required,
            target=declaration.target,
        )
    if isinstance(declaration, EmbeddedReference):
        return FieldDescriptor(
            name=name,
            kind=FieldKind.EMBEDDED,
            required=declaration.required,
            target=declaration.target,
        )
    if isinstance(declaration, type):
        return resolve_field(name, Primitive(declaration))

    as_reference = getattr(declaration, "ref", None)
    if callable(as_reference):
        return resolve_field(name, as_reference())

    msg = f"Unsupported declaration for field {name!r}: {declaration!r}"
    raise SchemaError(msg)


__all__ = [
    "RESERVED_NAMES",
    "Boolean",
    "Cardinality",
    "EmbeddedReference",
    "FieldCheck",
    "FieldDescriptor",
    "FieldKind",
    "Integer",
    "Number",
    "Object",
    "Primitive",
    "Reference",
    "String",
    "resolve_field",
]
