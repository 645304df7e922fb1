"""Shared type aliases for the mapping layer."""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence
from typing import Any

ID_FIELD = "_id"

Identity = Hashable
RawDocument = dict[str, Any]
Query = Mapping[str, Any]
Projection = Mapping[str, Any] | Sequence[str]
UpdateOperations = Mapping[str, Mapping[str, Any]]

__all__ = [
    "ID_FIELD",
    "Identity",
    "Projection",
    "Query",
    "RawDocument",
    "UpdateOperations",
]
