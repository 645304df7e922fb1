"""Document mapper wiring schemas, collections and persistence together."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from docmapper.backends.interfaces import DocumentBackend, IndexOptions
from docmapper.model import ModelInstance
from docmapper.schema import Schema, SchemaRegistry

from .collection import Collection
from .persister import CascadingPersister
from .resolver import ReferenceResolver


class DocumentMapper:
    """Entry point binding an explicit schema registry to one backend.

    Collections are prepared lazily: the first operation touching a schema
    creates its backend collection and declared indexes, then seals the
    schema against further index declarations.
    """

    def __init__(
        self,
        backend: DocumentBackend,
        registry: SchemaRegistry | None = None,
        *,
        auto_index: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self._backend = backend
        self._registry = registry if registry is not None else SchemaRegistry()
        self._auto_index = auto_index
        self._logger = logger or logging.getLogger(__name__)
        self._collections: dict[str, Collection] = {}
        self._ready: set[str] = set()
        self._ready_lock = asyncio.Lock()
        self._persister = CascadingPersister(logger=self._logger)
        self._resolver = ReferenceResolver(logger=self._logger)

    @property
    def backend(self) -> DocumentBackend:
        return self._backend

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    def declare(
        self,
        name: str,
        fields: Mapping[str, Any],
        *,
        override: bool = False,
    ) -> Collection:
        """Declare a schema and return its collection facade."""

        schema = self._registry.declare(name, fields, override=override)
        self._collections.pop(name, None)
        self._ready.discard(name)
        return self.collection(schema)

    def collection(self, schema: Schema | str) -> Collection:
        name = schema if isinstance(schema, str) else schema.name
        existing = self._collections.get(name)
        if existing is not None:
            return existing
        collection = Collection(self, self._registry.get(name))
        self._collections[name] = collection
        return collection

    async def ensure_collection(self, schema: Schema) -> None:
        if schema.name in self._ready:
            return
        async with self._ready_lock:
            if schema.name in self._ready:
                return
            await self._backend.create_collection(schema.name)
            if self._auto_index:
                for index in schema.indexes:
                    await self._backend.create_index(
                        schema.name,
                        index.field_name,
                        IndexOptions(unique=index.unique, sparse=index.sparse),
                    )
            schema.seal()
            self._ready.add(schema.name)
            self._logger.debug(
                "Initialised collection %s (%d indexes)",
                schema.name,
                len(schema.indexes) if self._auto_index else 0,
            )

    async def save(self, instance: ModelInstance) -> ModelInstance:
        return await self._persister.save(instance)

    async def save_all(self, instance: ModelInstance) -> ModelInstance:
        return await self._persister.save_all(instance)

    async def save_refs(self, graph: ModelInstance) -> None:
        await self._persister.save_refs(graph)

    async def join(self, instance: ModelInstance, *, depth: int = 1) -> ModelInstance:
        return await self._resolver.join(instance, depth=depth)

    async def close(self) -> None:
        await self._backend.close()


__all__ = ["DocumentMapper"]
