"""Model instances bound to a schema-scoped collection."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from copy import deepcopy
from functools import partial
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from docmapper.errors import SchemaError
from docmapper.schema import FieldDescriptor, Schema
from docmapper.types import ID_FIELD, Identity, RawDocument

from .tracking import ChangeTracker, TrackedList

if TYPE_CHECKING:
    from docmapper.backends.interfaces import WriteResult
    from docmapper.mapping.collection import Collection


def storage_value(descriptor: FieldDescriptor, value: Any) -> Any:
    """Translate an in-memory field value into its stored representation.

    References collapse to identities and embedded instances expand to full
    sub-documents, so a resolved graph never reaches the backend as-is.
    """

    if value is None:
        return None
    if descriptor.is_list and isinstance(value, list | tuple):
        return [_storage_item(descriptor, item) for item in value]
    return _storage_item(descriptor, value)


def _storage_item(descriptor: FieldDescriptor, item: Any) -> Any:
    if isinstance(item, ModelInstance):
        if descriptor.is_reference:
            return item.id
        return item.to_document()
    if isinstance(item, list):
        return [deepcopy(element) for element in item]
    return deepcopy(item)


class ModelInstance:
    """In-memory document bound to a schema, with change tracking.

    Field values are exposed as attributes and items. Reference fields hold
    identities (or, after a join, the fetched instances); embedded fields hold
    owned sub-instances whose mutations mark the owning field as changed.
    """

    __slots__ = (
        "_collection",
        "_last_write",
        "_owner",
        "_partial",
        "_tracker",
        "_values",
    )

    def __init__(
        self,
        collection: Collection,
        values: Mapping[str, Any] | None = None,
        *,
        is_new: bool = True,
        projected: bool = False,
        owner: tuple[ModelInstance, str] | None = None,
    ) -> None:
        object.__setattr__(self, "_collection", collection)
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_tracker", ChangeTracker(is_new=is_new))
        object.__setattr__(self, "_owner", owner)
        object.__setattr__(self, "_partial", projected)
        object.__setattr__(self, "_last_write", None)
        schema = collection.schema
        for key, value in (values or {}).items():
            if key == ID_FIELD:
                self._values[ID_FIELD] = value
            elif key in schema:
                self._values[key] = self._adopt(schema.field(key), value, persisted=not is_new)
            elif is_new:
                msg = f"{schema.name} has no field {key!r}"
                raise SchemaError(msg)
            else:
                # Undeclared keys read back from storage are carried through untouched.
                self._values[key] = value

    # -- identity and state -------------------------------------------------

    @property
    def id(self) -> Identity | None:
        return self._values.get(ID_FIELD)

    @property
    def is_new(self) -> bool:
        return self._tracker.is_new

    @property
    def is_partial(self) -> bool:
        return self._partial

    @property
    def pending_changes(self) -> Mapping[str, Any]:
        return self._tracker.pending

    @property
    def values(self) -> Mapping[str, Any]:
        return MappingProxyType(self._values)

    @property
    def schema(self) -> Schema:
        return self._collection.schema

    @property
    def collection(self) -> Collection:
        return self._collection

    @property
    def owner(self) -> tuple[ModelInstance, str] | None:
        return self._owner

    @property
    def root(self) -> ModelInstance:
        """The top-level instance that owns this one (itself if not embedded)."""

        node = self
        while node._owner is not None:
            node = node._owner[0]
        return node

    @property
    def last_write(self) -> WriteResult | None:
        """Acknowledgement of the most recent partial update, if any."""

        return self._last_write

    def compute_delta(self) -> dict[str, Any]:
        return self._tracker.compute_delta(self._values)

    # -- field access -------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._collection.schema:
            return self._values.get(name)
        msg = f"{self._collection.schema.name} has no field {name!r}"
        raise AttributeError(msg)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id":
            self._set_identity(value)
            return
        if name not in self._collection.schema:
            msg = f"{self._collection.schema.name} has no field {name!r}"
            raise AttributeError(msg)
        self._set(name, value)

    def __getitem__(self, name: str) -> Any:
        if name == ID_FIELD or name in self._collection.schema:
            return self._values.get(name)
        raise KeyError(name)

    def __setitem__(self, name: str, value: Any) -> None:
        if name == ID_FIELD:
            self._set_identity(value)
            return
        if name not in self._collection.schema:
            raise KeyError(name)
        self._set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:
        state = "new" if self.is_new else "persisted"
        return f"<{self._collection.schema.name} {self.id!r} ({state}) {dict(self._values)!r}>"

    def _set_identity(self, value: Identity) -> None:
        if not self.is_new:
            msg = f"Cannot change the identity of persisted {self.schema.name} {self.id!r}"
            raise AttributeError(msg)
        self._values[ID_FIELD] = value

    def _set(self, name: str, value: Any) -> None:
        descriptor = self._collection.schema.field(name)
        self._values[name] = self._adopt(descriptor, value, persisted=False)
        self._touch(name)

    def _touch(self, name: str) -> None:
        self._tracker.record(name, self._values.get(name))
        if self._owner is not None:
            owner, field_name = self._owner
            owner._touch(field_name)

    # -- value adoption -----------------------------------------------------

    def _adopt(self, descriptor: FieldDescriptor, value: Any, *, persisted: bool) -> Any:
        if descriptor.is_list and isinstance(value, list | tuple):
            return TrackedList(
                (self._adopt_item(descriptor, item, persisted=persisted) for item in value),
                on_change=partial(self._touch, descriptor.name),
                coerce=partial(self._adopt_item, descriptor, persisted=False),
            )
        if descriptor.is_list:
            return value
        return self._adopt_item(descriptor, value, persisted=persisted)

    def _adopt_item(self, descriptor: FieldDescriptor, item: Any, *, persisted: bool) -> Any:
        if not descriptor.is_relation or item is None:
            return item
        target = self._collection.related(descriptor)
        if isinstance(item, ModelInstance) and item.schema is not target.schema:
            msg = (
                f"{self.schema.name}.{descriptor.name} expects {target.schema.name}, "
                f"got {item.schema.name}"
            )
            raise SchemaError(msg)

        if descriptor.is_reference:
            if isinstance(item, Mapping):
                return ModelInstance(target, item, is_new=True)
            return item

        owner = (self, descriptor.name)
        if isinstance(item, Mapping):
            return ModelInstance(target, item, is_new=not persisted, owner=owner)
        if isinstance(item, ModelInstance):
            if item._owner is not None and item._owner[0] is not self:
                item = item.copy()
            elif item._owner is None and not item.is_new:
                item = item.copy()
            object.__setattr__(item, "_owner", owner)
            return item
        return item

    def _install(self, name: str, value: Any) -> None:
        """Replace a field value without recording a change (used by join)."""

        descriptor = self._collection.schema.field(name)
        self._values[name] = self._adopt(descriptor, value, persisted=not self.is_new)
        self._tracker.repoint(name, self._values[name])

    # -- persistence bookkeeping -------------------------------------------

    def embedded_instances(self) -> Iterator[tuple[str, ModelInstance]]:
        """Yield ``(path, instance)`` for every directly embedded sub-instance."""

        for descriptor in self.schema.relations():
            if not descriptor.is_embedded:
                continue
            value = self._values.get(descriptor.name)
            if isinstance(value, ModelInstance):
                yield descriptor.name, value
            elif isinstance(value, list):
                for index, item in enumerate(value):
                    if isinstance(item, ModelInstance):
                        yield f"{descriptor.name}.{index}", item

    def _accept_coerced(self, coerced: Mapping[str, Any]) -> None:
        for name, value in coerced.items():
            current = self._values.get(name)
            if current == value and type(current) is type(value):
                continue
            if isinstance(current, TrackedList):
                list.__init__(current, value)
                self._tracker.repoint(name, current)
            else:
                self._values[name] = value
                self._tracker.repoint(name, value)

    def _assign_identity(self, identity: Identity) -> None:
        self._values[ID_FIELD] = identity

    def _mark_persisted(self) -> None:
        self._tracker.mark_persisted()
        for _, embedded in self.embedded_instances():
            embedded._mark_persisted()

    def _mark_written(self, written: Mapping[str, Any], result: WriteResult) -> None:
        self._tracker.clear_written(written)
        object.__setattr__(self, "_last_write", result)
        for path, embedded in self.embedded_instances():
            if path.split(".", maxsplit=1)[0] in written:
                embedded._mark_persisted()

    def _mark_deleted(self) -> None:
        self._tracker.mark_new()

    # -- conversion ---------------------------------------------------------

    def to_document(self) -> RawDocument:
        """Stored representation: identities for references, inline embeds."""

        document: RawDocument = {}
        schema = self._collection.schema
        for key, value in self._values.items():
            if key in schema:
                document[key] = storage_value(schema.field(key), value)
            else:
                document[key] = deepcopy(value)
        return document

    def copy(self) -> ModelInstance:
        """Detached copy sharing referenced instances but owning its embeds."""

        clone = ModelInstance.__new__(ModelInstance)
        object.__setattr__(clone, "_collection", self._collection)
        object.__setattr__(clone, "_values", {})
        object.__setattr__(clone, "_owner", None)
        object.__setattr__(clone, "_partial", self._partial)
        object.__setattr__(clone, "_last_write", self._last_write)
        schema = self._collection.schema
        for key, value in self._values.items():
            if key in schema:
                clone._values[key] = clone._copy_value(schema.field(key), value)
            else:
                clone._values[key] = deepcopy(value)
        object.__setattr__(clone, "_tracker", self._tracker.copy_for(clone._values))
        return clone

    def _copy_value(self, descriptor: FieldDescriptor, value: Any) -> Any:
        if isinstance(value, list):
            return TrackedList(
                (self._copy_item(descriptor, item) for item in value),
                on_change=partial(self._touch, descriptor.name),
                coerce=partial(self._adopt_item, descriptor, persisted=False),
            )
        return self._copy_item(descriptor, value)

    def _copy_item(self, descriptor: FieldDescriptor, item: Any) -> Any:
        if isinstance(item, ModelInstance):
            if descriptor.is_embedded:
                embedded = item.copy()
                object.__setattr__(embedded, "_owner", (self, descriptor.name))
                return embedded
            return item
        return deepcopy(item)

    # -- persistence shortcuts ----------------------------------------------

    async def save(self) -> ModelInstance:
        return await self._collection.mapper.save(self)

    async def save_all(self) -> ModelInstance:
        return await self._collection.mapper.save_all(self)

    async def save_refs(self) -> None:
        await self._collection.mapper.save_refs(self)

    async def join(self, depth: int = 1) -> ModelInstance:
        return await self._collection.mapper.join(self, depth=depth)

    async def delete(self) -> int:
        return await self._collection.delete(self)


__all__ = ["ModelInstance", "storage_value"]
