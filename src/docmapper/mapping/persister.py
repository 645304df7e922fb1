"""Cascading persistence: ``save``, ``save_all`` and ``save_refs``."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from docmapper.errors import ValidationError
from docmapper.model import ModelInstance, Validator, storage_value
from docmapper.schema import Schema
from docmapper.types import ID_FIELD, UpdateOperations


def update_operations(schema: Schema, delta: Mapping[str, Any]) -> UpdateOperations:
    """Translate a field delta into ``$set`` operations on top-level fields.

    Nested values are replaced whole; no merge below the first level.
    """

    assignments = {}
    for name, value in delta.items():
        if name == ID_FIELD:
            continue
        if name in schema:
            assignments[name] = storage_value(schema.field(name), value)
        else:
            assignments[name] = value
    return {"$set": assignments} if assignments else {}


def _relation_items(instance: ModelInstance) -> Iterator[tuple[bool, ModelInstance]]:
    """Yield ``(is_reference, sub_instance)`` for every instance held in a relation field."""

    for descriptor in instance.schema.relations():
        value = instance.values.get(descriptor.name)
        items = value if isinstance(value, list) else [value]
        for item in items:
            if isinstance(item, ModelInstance):
                yield descriptor.is_reference, item


class CascadingPersister:
    """Validates instances and writes them, cascading through relations.

    Writes are blind: a persisted instance only sends the fields recorded
    since its last save, so fields changed concurrently elsewhere survive
    (last write wins per field). ``save_all`` is not transactional; targets
    written before a later failure stay written. ``save_all`` and ``save_refs``
    also upsert embedded sub-documents into their own collections; the inline
    copy in the owner stays authoritative.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    async def save(self, instance: ModelInstance) -> ModelInstance:
        root = instance.root
        await self._write(root)
        return root

    async def save_all(self, instance: ModelInstance) -> ModelInstance:
        root = instance.root
        await self._cascade(root, visiting=set())
        return root

    async def save_refs(self, instance: ModelInstance) -> None:
        await self._push(instance.root, visited=set())

    # -- cascades -----------------------------------------------------------

    async def _cascade(self, instance: ModelInstance, visiting: set[int]) -> None:
        """Depth-first: unsaved reference targets are inserted before their holder."""

        if id(instance) in visiting:
            return
        visiting.add(id(instance))
        failing = self._failures(instance, allow_unsaved_refs=True)
        if failing:
            raise ValidationError(failing)
        for is_reference, item in _relation_items(instance):
            if is_reference and item.is_new:
                await self._cascade(item, visiting)
            elif not is_reference:
                await self._cascade_embedded(item, visiting)
        if instance.owner is None:
            await self._write(instance)
            await self._mirror_embedded(instance)

    async def _cascade_embedded(self, embedded: ModelInstance, visiting: set[int]) -> None:
        for is_reference, item in _relation_items(embedded):
            if is_reference and item.is_new:
                await self._cascade(item, visiting)
            elif not is_reference:
                await self._cascade_embedded(item, visiting)

    async def _push(self, instance: ModelInstance, visited: set[int]) -> None:
        """Write every modified node of a joined graph, children first."""

        if id(instance) in visited:
            return
        visited.add(id(instance))
        for _, item in _relation_items(instance):
            await self._push(item, visited)
        if instance.owner is not None:
            return
        if instance.is_new or instance.pending_changes:
            await self._write(instance)
            await self._mirror_embedded(instance)
        else:
            self._logger.debug(
                "Skipping unmodified %s %r",
                instance.schema.name,
                instance.id,
            )

    # -- single document write ---------------------------------------------

    def _failures(self, instance: ModelInstance, *, allow_unsaved_refs: bool) -> dict[str, Any]:
        only = instance.pending_changes.keys() if instance.is_partial else None
        outcome = Validator(instance.schema).validate(
            instance.values,
            allow_unsaved_refs=allow_unsaved_refs,
            only=only,
        )
        failing = dict(outcome.failing_fields)
        for path, embedded in instance.embedded_instances():
            if path.split(".", maxsplit=1)[0] in failing:
                continue
            nested = self._failures(embedded, allow_unsaved_refs=allow_unsaved_refs)
            failing.update({f"{path}.{name}": reason for name, reason in nested.items()})
        return failing

    def _prepare(self, instance: ModelInstance, *, whole: bool) -> None:
        """Adopt coerced values for the fields about to be written.

        A persisted instance only writes its pending fields, so untouched
        fields keep their loaded values even when they would coerce.
        """

        outcome = Validator(instance.schema).validate(instance.values, allow_unsaved_refs=True)
        written = None if whole else set(instance.pending_changes)
        instance._accept_coerced(
            {
                name: value
                for name, value in outcome.coerced.items()
                if written is None or name in written
            }
        )
        for path, embedded in instance.embedded_instances():
            if written is not None and path.split(".", maxsplit=1)[0] not in written:
                continue
            if embedded.id is None:
                embedded._assign_identity(instance.collection.backend.new_identity())
            self._prepare(embedded, whole=True)

    async def _write(self, instance: ModelInstance) -> None:
        failing = self._failures(instance, allow_unsaved_refs=False)
        if failing:
            raise ValidationError(failing)
        self._prepare(instance, whole=instance.is_new)

        collection = instance.collection
        await collection.ensure_ready()
        backend = collection.backend

        if instance.is_new:
            inserted = await backend.insert(collection.name, instance.to_document())
            instance._assign_identity(inserted[ID_FIELD])
            instance._mark_persisted()
            self._logger.debug("Inserted %s %r", collection.name, instance.id)
            return

        delta = instance.compute_delta()
        operations = update_operations(instance.schema, delta)
        if not operations:
            self._logger.debug("No changes to save for %s %r", collection.name, instance.id)
            return
        result = await backend.update(collection.name, {ID_FIELD: instance.id}, operations)
        instance._mark_written(delta, result)
        self._logger.debug(
            "Updated %s %r fields=%s modified=%d",
            collection.name,
            instance.id,
            sorted(delta),
            result.modified_count,
        )

    # -- embedded mirrors ---------------------------------------------------

    async def _mirror_embedded(self, instance: ModelInstance) -> None:
        """Upsert every embedded sub-document into its own collection too."""

        for _, embedded in instance.embedded_instances():
            await self._mirror(embedded)
            await self._mirror_embedded(embedded)

    async def _mirror(self, embedded: ModelInstance) -> None:
        collection = embedded.collection
        if embedded.id is None:
            self._logger.debug("Embedded %s has no identity, not mirrored", collection.name)
            return
        await collection.ensure_ready()
        backend = collection.backend
        document = embedded.to_document()
        identity_query = {ID_FIELD: embedded.id}
        if not await backend.count(collection.name, identity_query):
            await backend.insert(collection.name, document)
            self._logger.debug("Inserted embedded %s %r", collection.name, embedded.id)
            return
        assignments = {name: value for name, value in document.items() if name != ID_FIELD}
        if assignments:
            await backend.update(collection.name, identity_query, {"$set": assignments})


__all__ = ["CascadingPersister", "update_operations"]
