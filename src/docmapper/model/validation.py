"""Field validation over an instance's current values."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from typing import Any

from docmapper.errors import ValidationError
from docmapper.schema import FieldDescriptor, Schema

from .instance import ModelInstance


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Failing fields (name -> offending value, ``None`` when missing) and coerced primitives."""

    failing_fields: Mapping[str, Any] = field(default_factory=dict)
    coerced: Mapping[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failing_fields

    def raise_for_errors(self) -> None:
        if self.failing_fields:
            raise ValidationError(self.failing_fields)


class Validator:
    """Runs every field descriptor of a schema against a mapping of values.

    All failures are collected in declaration order instead of stopping at the
    first one. Reference and embedded fields are only checked for presence and
    cardinality here; embedded sub-documents are validated by the persister
    when the owning document is written.
    """

    def __init__(self, schema: Schema) -> None:
        self._schema = schema

    def validate(
        self,
        values: Mapping[str, Any],
        *,
        allow_unsaved_refs: bool = False,
        only: Collection[str] | None = None,
    ) -> ValidationOutcome:
        failing: dict[str, Any] = {}
        coerced: dict[str, Any] = {}
        for name, descriptor in self._schema.fields.items():
            if only is not None and name not in only:
                continue
            value = values.get(name)
            if value is None:
                if descriptor.required:
                    failing[name] = None
                continue
            ok, result = self._check(descriptor, value, allow_unsaved_refs=allow_unsaved_refs)
            if not ok:
                failing[name] = result
            elif not descriptor.is_relation:
                coerced[name] = result
        return ValidationOutcome(failing_fields=failing, coerced=coerced)

    def _check(
        self,
        descriptor: FieldDescriptor,
        value: Any,
        *,
        allow_unsaved_refs: bool,
    ) -> tuple[bool, Any]:
        if descriptor.is_list:
            if not isinstance(value, list | tuple):
                return False, value
            accepted = []
            for item in value:
                ok, result = self._check_item(descriptor, item, allow_unsaved_refs)
                if not ok:
                    return False, result
                accepted.append(result)
            return True, accepted
        if isinstance(value, list | tuple) and descriptor.is_relation:
            return False, value
        return self._check_item(descriptor, value, allow_unsaved_refs)

    @staticmethod
    def _check_item(
        descriptor: FieldDescriptor,
        item: Any,
        allow_unsaved_refs: bool,
    ) -> tuple[bool, Any]:
        if descriptor.primitive is not None:
            check = descriptor.primitive.check(item)
            return check.ok, check.value
        if item is None:
            return False, None
        if descriptor.is_reference:
            if isinstance(item, ModelInstance) and item.is_new and not allow_unsaved_refs:
                return False, item.to_document()
            return True, item
        if not isinstance(item, ModelInstance):
            return False, item
        return True, item


__all__ = ["ValidationOutcome", "Validator"]
