"""Reference resolution ("join")."""

from __future__ import annotations

import logging
from typing import Any

from docmapper.errors import ReferenceNotFound
from docmapper.model import ModelInstance
from docmapper.schema import FieldDescriptor
from docmapper.types import ID_FIELD, Identity

from .collection import Collection

# Fetched instances per join call, keyed by (schema name, identity).
_Fetched = dict[tuple[str, Identity], ModelInstance]


class ReferenceResolver:
    """Replaces reference identities with fetched instances.

    ``join`` works on a copy of the instance and never writes to the backend.
    Each call keeps an id-keyed map of what it fetched, so a target referenced
    several times (or cyclically) is fetched once and the walk stops at
    ``depth`` levels of references. Embedded sub-documents are already inline
    and do not consume a level.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    async def join(self, instance: ModelInstance, *, depth: int = 1) -> ModelInstance:
        if depth < 1:
            msg = f"join depth must be at least 1, got {depth}"
            raise ValueError(msg)
        graph = instance.copy()
        fetched: _Fetched = {}
        await self._resolve(graph, depth, fetched, visited={})
        self._logger.debug(
            "Joined %s %r (%d referenced documents fetched)",
            instance.schema.name,
            instance.id,
            len(fetched),
        )
        return graph

    async def _resolve(
        self,
        node: ModelInstance,
        depth: int,
        fetched: _Fetched,
        visited: dict[int, int],
    ) -> None:
        # A node reached again with more remaining depth is walked again.
        if visited.get(id(node), 0) >= depth:
            return
        visited[id(node)] = depth
        for descriptor in node.schema.relations():
            value = node.values.get(descriptor.name)
            if value is None:
                continue
            items = list(value) if isinstance(value, list) else [value]
            if descriptor.is_embedded:
                for item in items:
                    if isinstance(item, ModelInstance):
                        await self._resolve(item, depth, fetched, visited)
                continue

            target = node.collection.related(descriptor)
            resolved = await self._fetch_all(target, descriptor, items, fetched)
            node._install(descriptor.name, resolved if isinstance(value, list) else resolved[0])
            if depth > 1:
                for item in resolved:
                    if isinstance(item, ModelInstance):
                        await self._resolve(item, depth - 1, fetched, visited)

    async def _fetch_all(
        self,
        target: Collection,
        descriptor: FieldDescriptor,
        items: list[Any],
        fetched: _Fetched,
    ) -> list[Any]:
        missing = [
            item
            for item in items
            if item is not None
            and not isinstance(item, ModelInstance)
            and (target.name, item) not in fetched
        ]
        if missing:
            unique_ids = list(dict.fromkeys(missing))
            query = (
                {ID_FIELD: unique_ids[0]}
                if len(unique_ids) == 1
                else {ID_FIELD: {"$in": unique_ids}}
            )
            async for instance in target.find(query):
                fetched[(target.name, instance.id)] = instance

        resolved: list[Any] = []
        for item in items:
            if item is None or isinstance(item, ModelInstance):
                resolved.append(item)
                continue
            instance = fetched.get((target.name, item))
            if instance is None:
                raise ReferenceNotFound(descriptor.name, item)
            resolved.append(instance)
        return resolved


__all__ = ["ReferenceResolver"]
