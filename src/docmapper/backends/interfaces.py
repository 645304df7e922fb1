"""Storage backend contract the mapper depends on."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from docmapper.base import DomainModel
from docmapper.types import Identity, Projection, Query, RawDocument, UpdateOperations


class IndexOptions(DomainModel):
    """Options passed to ``create_index``."""

    unique: bool = False
    sparse: bool = False


class WriteResult(DomainModel):
    """Acknowledgement returned by a partial update."""

    modified_count: int


class DocumentBackend(Protocol):
    """Asynchronous document store over named collections.

    Raw documents are plain mappings with the identity under ``_id``.
    """

    async def create_collection(self, name: str) -> None: ...

    async def create_index(
        self,
        collection: str,
        field_name: str,
        options: IndexOptions,
    ) -> None: ...

    async def count(self, collection: str, query: Query) -> int: ...

    def find(
        self,
        collection: str,
        query: Query,
        projection: Projection | None = None,
    ) -> AsyncIterator[RawDocument]: ...

    async def find_one(
        self,
        collection: str,
        query: Query,
        projection: Projection | None = None,
    ) -> RawDocument | None: ...

    async def insert(self, collection: str, document: RawDocument) -> RawDocument: ...

    async def update(
        self,
        collection: str,
        identity_query: Query,
        operations: UpdateOperations,
    ) -> WriteResult: ...

    async def delete_one(self, collection: str, query: Query) -> int: ...

    async def delete_many(self, collection: str, query: Query) -> int: ...

    def new_identity(self) -> Identity: ...

    async def close(self) -> None: ...


__all__ = ["DocumentBackend", "IndexOptions", "WriteResult"]
