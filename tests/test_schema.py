from __future__ import annotations

import pytest

from docmapper.errors import SchemaError
from docmapper.schema import (
    Boolean,
    Cardinality,
    EmbeddedReference,
    FieldKind,
    Integer,
    Number,
    Object,
    Reference,
    SchemaRegistry,
    String,
    resolve_field,
)


def test_declarations_resolve_into_descriptor_table() -> None:
    registry = SchemaRegistry()
    tags = registry.declare("tags", {"label": String})
    items = registry.declare(
        "items",
        {
            "name": String[20],
            "tags": [tags.ref()],
            "owner": tags,
            "cover": tags.embed().optional(),
            "counts": [Integer],
        },
    )

    assert list(items.fields) == ["name", "tags", "owner", "cover", "counts"]

    name = items.field("name")
    assert name.kind is FieldKind.PRIMITIVE
    assert name.cardinality is Cardinality.SINGLE
    assert name.primitive is not None and name.primitive.max_length == 20

    tag_list = items.field("tags")
    assert tag_list.is_reference and tag_list.is_list
    assert tag_list.target == "tags"

    owner = items.field("owner")
    assert owner.is_reference and not owner.is_list

    cover = items.field("cover")
    assert cover.is_embedded and not cover.required

    counts = items.field("counts")
    assert counts.kind is FieldKind.PRIMITIVE and counts.is_list

    assert [descriptor.name for descriptor in items.relations()] == ["tags", "owner", "cover"]
    assert registry.target_of(tag_list) is tags


def test_reference_targets_accept_names_for_forward_declarations() -> None:
    registry = SchemaRegistry()
    people = registry.declare(
        "people",
        {"name": String, "friend": Reference("people").optional(), "pet": EmbeddedReference("pets")},
    )
    assert people.field("friend").target == "people"
    with pytest.raises(SchemaError):
        registry.target_of(people.field("pet"))

    pets = registry.declare("pets", {"name": String})
    assert registry.target_of(people.field("pet")) is pets


def test_bare_python_types_become_primitives() -> None:
    descriptor = resolve_field("flag", bool)
    assert descriptor.kind is FieldKind.PRIMITIVE
    assert descriptor.primitive is not None
    assert descriptor.primitive.check(True).ok


@pytest.mark.parametrize(
    "declaration",
    [
        [String, Integer],
        [[String]],
        42,
        "String",
    ],
)
def test_invalid_declarations_are_rejected(declaration: object) -> None:
    with pytest.raises(SchemaError):
        resolve_field("broken", declaration)


@pytest.mark.parametrize("field_name", ["_id", "_private", "save", "id", ""])
def test_reserved_field_names_are_rejected(field_name: str) -> None:
    registry = SchemaRegistry()
    with pytest.raises(SchemaError):
        registry.declare("things", {field_name: String})


def test_schema_names_are_unique_unless_overridden() -> None:
    registry = SchemaRegistry()
    first = registry.declare("things", {"name": String})
    with pytest.raises(SchemaError):
        registry.declare("things", {"title": String})
    second = registry.declare("things", {"title": String}, override=True)
    assert registry.get("things") is second
    assert second is not first
    with pytest.raises(SchemaError):
        registry.get("missing")


def test_primitive_checks_return_coerced_value_or_offending_input() -> None:
    assert String[5].check("ok").value == "ok"

    too_long = String[5].check("too long string")
    assert not too_long.ok
    assert too_long.value == "too long string"

    number = Number.check(3)
    assert number.ok and number.value == 3 and isinstance(number.value, int)

    assert Integer.check("7").value == 7
    assert not Boolean.check("maybe").ok
    assert Object.check({"nested": [1, 2]}).ok
    assert not Object.check("not a mapping").ok


def test_max_length_must_be_a_non_negative_integer() -> None:
    with pytest.raises(SchemaError):
        String[-1]


def test_indexes_are_declared_until_schema_is_sealed() -> None:
    registry = SchemaRegistry()
    users = registry.declare("users", {"email": String, "profile": Object})

    spec = users.index("email", unique=True)
    assert spec.unique and not spec.sparse
    users.index("profile.city", sparse=True)
    users.index("email", unique=False)
    assert [(index.field_name, index.unique) for index in users.indexes] == [
        ("profile.city", False),
        ("email", False),
    ]

    with pytest.raises(SchemaError):
        users.index("nickname")

    users.seal()
    with pytest.raises(SchemaError):
        users.index("email")


def test_number_and_boolean_are_strict() -> None:
    assert Number.check(1.5).ok
    assert not Number.check(True).ok
    assert not Number.check("1.5").ok
    assert Boolean.check(False).ok
    assert not Boolean.check("true").ok
    assert not Boolean.check(1).ok
    assert String[3].strict is False
