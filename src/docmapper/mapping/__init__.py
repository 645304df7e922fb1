"""Mapping layer exports."""

from .collection import Collection
from .cursor import Cursor
from .mapper import DocumentMapper
from .persister import CascadingPersister, update_operations
from .resolver import ReferenceResolver

__all__ = [
    "CascadingPersister",
    "Collection",
    "Cursor",
    "DocumentMapper",
    "ReferenceResolver",
    "update_operations",
]
