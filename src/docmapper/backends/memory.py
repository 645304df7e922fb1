"""In-memory document backend, used for tests and ephemeral mappers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, TypeVar
from uuid import uuid4

from docmapper.errors import DuplicateIdentity
from docmapper.types import ID_FIELD, Identity, Projection, Query, RawDocument, UpdateOperations

from .interfaces import DocumentBackend, IndexOptions, WriteResult
from .matching import apply_update, check_unique, is_identity_query, matches, project

T = TypeVar("T")


def _copy(value: T) -> T:
    return deepcopy(value)


@dataclass
class InMemoryBackend(DocumentBackend):
    """Collections held as insertion-ordered dicts keyed by identity.

    Documents are copied on the way in and out so callers never share state
    with the store. Collections are created implicitly on first write.
    """

    _collections: dict[str, dict[Any, RawDocument]] = field(default_factory=dict)
    _indexes: dict[str, dict[str, IndexOptions]] = field(default_factory=dict)
    writes: int = 0

    def _documents(self, collection: str) -> dict[Any, RawDocument]:
        return self._collections.setdefault(collection, {})

    def _select(self, collection: str, query: Query) -> list[RawDocument]:
        documents = self._collections.get(collection, {})
        if is_identity_query(query):
            found = documents.get(query[ID_FIELD])
            return [found] if found is not None else []
        return [document for document in documents.values() if matches(document, query)]

    async def create_collection(self, name: str) -> None:
        self._documents(name)

    async def create_index(
        self,
        collection: str,
        field_name: str,
        options: IndexOptions,
    ) -> None:
        documents = self._documents(collection)
        indexes = {field_name: options}
        for document in documents.values():
            check_unique(document, documents.values(), indexes)
        self._indexes.setdefault(collection, {})[field_name] = options

    async def count(self, collection: str, query: Query) -> int:
        return len(self._select(collection, query))

    async def find(
        self,
        collection: str,
        query: Query,
        projection: Projection | None = None,
    ) -> AsyncIterator[RawDocument]:
        for document in self._select(collection, query):
            yield project(document, projection)

    async def find_one(
        self,
        collection: str,
        query: Query,
        projection: Projection | None = None,
    ) -> RawDocument | None:
        selected = self._select(collection, query)
        if not selected:
            return None
        return project(selected[0], projection)

    async def insert(self, collection: str, document: RawDocument) -> RawDocument:
        documents = self._documents(collection)
        stored = _copy(document)
        if stored.get(ID_FIELD) is None:
            stored[ID_FIELD] = self.new_identity()
        identity = stored[ID_FIELD]
        if identity in documents:
            raise DuplicateIdentity(identity, collection)
        check_unique(stored, documents.values(), self._indexes.get(collection, {}))
        documents[identity] = stored
        self.writes += 1
        return _copy(stored)

    async def update(
        self,
        collection: str,
        identity_query: Query,
        operations: UpdateOperations,
    ) -> WriteResult:
        selected = self._select(collection, identity_query)
        if not selected:
            return WriteResult(modified_count=0)
        current = selected[0]
        updated = apply_update(current, operations)
        if updated == current:
            return WriteResult(modified_count=0)
        documents = self._documents(collection)
        check_unique(updated, documents.values(), self._indexes.get(collection, {}))
        documents[current[ID_FIELD]] = updated
        self.writes += 1
        return WriteResult(modified_count=1)

    async def delete_one(self, collection: str, query: Query) -> int:
        selected = self._select(collection, query)
        if not selected:
            return 0
        del self._documents(collection)[selected[0][ID_FIELD]]
        self.writes += 1
        return 1

    async def delete_many(self, collection: str, query: Query) -> int:
        selected = self._select(collection, query)
        documents = self._documents(collection)
        for document in selected:
            del documents[document[ID_FIELD]]
        self.writes += len(selected)
        return len(selected)

    def new_identity(self) -> Identity:
        return uuid4().hex

    async def close(self) -> None:
        return None


__all__ = ["InMemoryBackend"]
