"""Lazy, single-pass results of a collection query."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from docmapper.errors import CursorConsumedError
from docmapper.model import ModelInstance
from docmapper.types import Projection, Query

if TYPE_CHECKING:
    from .collection import Collection


class Cursor:
    """Hydrates raw documents into instances as they are iterated.

    A cursor can be consumed once; re-issue the query to start over.
    """

    def __init__(
        self,
        collection: Collection,
        query: Query,
        projection: Projection | None = None,
        *,
        join_depth: int = 0,
    ) -> None:
        self._collection = collection
        self._query = dict(query)
        self._projection = projection
        self._join_depth = join_depth
        self._consumed = False

    @property
    def query(self) -> Query:
        return dict(self._query)

    def joined(self, depth: int = 1) -> Cursor:
        """Cursor over the same query whose instances are joined before yielding."""

        return Cursor(self._collection, self._query, self._projection, join_depth=depth)

    def __aiter__(self) -> AsyncIterator[ModelInstance]:
        if self._consumed:
            msg = f"Cursor over {self._collection.name} already consumed; re-issue find()"
            raise CursorConsumedError(msg)
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ModelInstance]:
        collection = self._collection
        await collection.ensure_ready()
        raw_documents = collection.backend.find(collection.name, self._query, self._projection)
        async for raw in raw_documents:
            instance = collection.hydrate(raw, projected=self._projection is not None)
            if self._join_depth:
                instance = await collection.mapper.join(instance, depth=self._join_depth)
            yield instance

    async def to_list(self) -> list[ModelInstance]:
        return [instance async for instance in self]

    async def first(self) -> ModelInstance | None:
        iterator = aiter(self)
        try:
            return await anext(iterator)
        except StopAsyncIteration:
            return None
        finally:
            await iterator.aclose()  # type: ignore[attr-defined]


__all__ = ["Cursor"]
