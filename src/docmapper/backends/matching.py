"""Query matching, projection and update application for raw documents.

Shared by the bundled backends. The query language is intentionally small:
equality on top-level or dotted paths (an array field matches when it
contains the value), ``$and``/``$or``, and the comparison operators below.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterable, Mapping
from copy import deepcopy
from typing import Any

from docmapper.errors import BackendError, UniqueIndexViolation
from docmapper.types import ID_FIELD, Projection, Query, RawDocument, UpdateOperations

from .interfaces import IndexOptions

_MISSING = object()

_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}


def get_path(document: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path; numeric segments index into lists."""

    current: Any = document
    for segment in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else _MISSING
        else:
            return _MISSING
        if current is _MISSING:
            return _MISSING
    return current


def is_identity_query(query: Query) -> bool:
    return len(query) == 1 and ID_FIELD in query and not _is_operator_map(query[ID_FIELD])


def _is_operator_map(condition: Any) -> bool:
    return (
        isinstance(condition, Mapping)
        and bool(condition)
        and all(isinstance(key, str) and key.startswith("$") for key in condition)
    )


def _equals(value: Any, expected: Any) -> bool:
    if value is _MISSING:
        return expected is None
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return bool(value == expected)


def _compare(value: Any, operand: Any, compare: Callable[[Any, Any], bool]) -> bool:
    candidates = value if isinstance(value, list) else [value]
    for candidate in candidates:
        if candidate is _MISSING or candidate is None:
            continue
        try:
            if compare(candidate, operand):
                return True
        except TypeError:
            continue
    return False


def _apply_operator(name: str, value: Any, operand: Any) -> bool:
    if name == "$eq":
        return _equals(value, operand)
    if name == "$ne":
        return not _equals(value, operand)
    if name == "$in":
        return any(_equals(value, option) for option in operand)
    if name == "$nin":
        return not any(_equals(value, option) for option in operand)
    if name == "$exists":
        return (value is not _MISSING) is bool(operand)
    if name in _COMPARISONS:
        return _compare(value, operand, _COMPARISONS[name])
    msg = f"Unsupported query operator {name}"
    raise BackendError(msg)


def matches(document: Mapping[str, Any], query: Query) -> bool:
    for key, condition in query.items():
        if key == "$and":
            if not all(matches(document, clause) for clause in condition):
                return False
            continue
        if key == "$or":
            if not any(matches(document, clause) for clause in condition):
                return False
            continue
        if key.startswith("$"):
            msg = f"Unsupported top-level query operator {key}"
            raise BackendError(msg)
        value = get_path(document, key)
        if _is_operator_map(condition):
            if not all(_apply_operator(name, value, operand) for name, operand in condition.items()):
                return False
        elif not _equals(value, condition):
            return False
    return True


def project(document: RawDocument, projection: Projection | None) -> RawDocument:
    """Copy ``document`` restricted by an inclusion or exclusion projection."""

    copied = deepcopy(document)
    if not projection:
        return copied
    spec = (
        dict(projection)
        if isinstance(projection, Mapping)
        else {field_name: 1 for field_name in projection}
    )
    keep_id = bool(spec.pop(ID_FIELD, 1))
    if not spec:
        if not keep_id:
            copied.pop(ID_FIELD, None)
        return copied
    if all(spec.values()):
        result = {key: value for key, value in copied.items() if key in spec}
        if keep_id and ID_FIELD in copied:
            result[ID_FIELD] = copied[ID_FIELD]
        return result
    if any(spec.values()):
        raise BackendError("Cannot mix inclusion and exclusion in a projection")
    result = {key: value for key, value in copied.items() if key not in spec}
    if not keep_id:
        result.pop(ID_FIELD, None)
    return result


def _set_path(document: RawDocument, path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    current = document
    for segment in parents:
        nested = current.get(segment)
        if not isinstance(nested, dict):
            nested = {}
            current[segment] = nested
        current = nested
    current[leaf] = value


def _unset_path(document: RawDocument, path: str) -> None:
    *parents, leaf = path.split(".")
    current: Any = document
    for segment in parents:
        current = current.get(segment) if isinstance(current, dict) else None
    if isinstance(current, dict):
        current.pop(leaf, None)


def apply_update(document: RawDocument, operations: UpdateOperations) -> RawDocument:
    """Return an updated copy of ``document``; ``$set`` and ``$unset`` only."""

    updated = deepcopy(document)
    for name, fields in operations.items():
        if ID_FIELD in fields:
            msg = f"Cannot modify {ID_FIELD} with {name}"
            raise BackendError(msg)
        if name == "$set":
            for path, value in fields.items():
                _set_path(updated, path, deepcopy(value))
        elif name == "$unset":
            for path in fields:
                _unset_path(updated, path)
        else:
            msg = f"Unsupported update operator {name}"
            raise BackendError(msg)
    return updated


def check_unique(
    candidate: RawDocument,
    others: Iterable[RawDocument],
    indexes: Mapping[str, IndexOptions],
) -> None:
    """Raise :class:`UniqueIndexViolation` if ``candidate`` collides on a unique index."""

    others = list(others)
    for field_name, options in indexes.items():
        if not options.unique:
            continue
        value = get_path(candidate, field_name)
        if value is _MISSING:
            if options.sparse:
                continue
            value = None
        for other in others:
            if other.get(ID_FIELD) == candidate.get(ID_FIELD):
                continue
            existing = get_path(other, field_name)
            if existing is _MISSING:
                if options.sparse:
                    continue
                existing = None
            if existing == value:
                raise UniqueIndexViolation(field_name, value)


__all__ = [
    "apply_update",
    "check_unique",
    "get_path",
    "is_identity_query",
    "matches",
    "project",
]
