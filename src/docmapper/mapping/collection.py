"""Schema-scoped facade over a backend collection."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from docmapper.backends.interfaces import DocumentBackend
from docmapper.model import ModelInstance
from docmapper.schema import FieldDescriptor, Schema
from docmapper.types import ID_FIELD, Identity, Projection, Query, RawDocument

from .cursor import Cursor

if TYPE_CHECKING:
    from .mapper import DocumentMapper


class Collection:
    """Binds a schema to its backend collection.

    Fetched documents are rehydrated as persisted instances with no pending
    changes; :meth:`create` builds new instances that are only written on save.
    """

    def __init__(self, mapper: DocumentMapper, schema: Schema) -> None:
        self._mapper = mapper
        self._schema = schema

    @property
    def name(self) -> str:
        return self._schema.name

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def mapper(self) -> DocumentMapper:
        return self._mapper

    @property
    def backend(self) -> DocumentBackend:
        return self._mapper.backend

    def __repr__(self) -> str:
        return f"Collection({self.name!r})"

    def related(self, descriptor: FieldDescriptor) -> Collection:
        """Collection of a reference or embedded field's target schema."""

        return self._mapper.collection(self._mapper.registry.target_of(descriptor))

    async def ensure_ready(self) -> None:
        await self._mapper.ensure_collection(self._schema)

    def create(self, values: Mapping[str, Any] | None = None, /, **fields: Any) -> ModelInstance:
        """Build a new, unsaved instance.

        The identity is only set when the caller supplies ``_id``; otherwise
        the backend assigns one on insert.
        """

        merged = {**(values or {}), **fields}
        return ModelInstance(self, merged, is_new=True)

    def hydrate(self, raw: RawDocument, *, projected: bool = False) -> ModelInstance:
        return ModelInstance(self, raw, is_new=False, projected=projected)

    async def count(self, query: Query | None = None) -> int:
        await self.ensure_ready()
        return await self.backend.count(self.name, query or {})

    def find(self, query: Query | None = None, projection: Projection | None = None) -> Cursor:
        return Cursor(self, query or {}, projection)

    async def find_one(
        self,
        query: Query | None = None,
        projection: Projection | None = None,
        *,
        join_depth: int = 0,
    ) -> ModelInstance | None:
        """First matching instance, joined to ``join_depth`` levels when non-zero."""

        await self.ensure_ready()
        raw = await self.backend.find_one(self.name, query or {}, projection)
        if raw is None:
            return None
        instance = self.hydrate(raw, projected=projection is not None)
        if join_depth:
            return await self._mapper.join(instance, depth=join_depth)
        return instance

    async def get(self, identity: Identity, *, join_depth: int = 0) -> ModelInstance | None:
        return await self.find_one({ID_FIELD: identity}, join_depth=join_depth)

    async def delete_one(self, query: Query) -> int:
        await self.ensure_ready()
        return await self.backend.delete_one(self.name, query)

    async def delete_many(self, query: Query | None = None) -> int:
        await self.ensure_ready()
        return await self.backend.delete_many(self.name, query or {})

    async def delete(self, instance: ModelInstance) -> int:
        """Delete one persisted instance by identity; references are left alone."""

        if instance.is_new:
            return 0
        removed = await self.delete_one({ID_FIELD: instance.id})
        if removed:
            instance._mark_deleted()
        return removed


__all__ = ["Collection"]
