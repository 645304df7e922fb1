from __future__ import annotations

import asyncio

from docmapper import DocumentMapper, EmbeddedReference, ModelInstance, Reference, String
from docmapper.backends import InMemoryBackend


def _catalogue(mapper: DocumentMapper):
    tags = mapper.declare("tags", {"label": String})
    items = mapper.declare("items", {"name": String, "tags": [Reference("tags")]})
    return tags, items


def test_unmodified_graph_writes_nothing(
    mapper: DocumentMapper,
    backend: InMemoryBackend,
) -> None:
    tags, items = _catalogue(mapper)

    async def _run() -> None:
        red = await tags.create(label="red").save()
        item = await items.create(name="shirt", tags=[red.id]).save()

        graph = await item.join()
        writes = backend.writes
        await graph.save_refs()

        assert backend.writes == writes

    asyncio.run(_run())


def test_only_modified_targets_are_written(
    mapper: DocumentMapper,
    backend: InMemoryBackend,
) -> None:
    tags, items = _catalogue(mapper)

    async def _run() -> None:
        red = await tags.create(label="red").save()
        blue = await tags.create(label="blue").save()
        item = await items.create(name="shirt", tags=[red.id, blue.id]).save()

        graph = await item.join()
        graph.tags[0].label = "green"
        writes = backend.writes
        await graph.save_refs()

        assert backend.writes == writes + 1
        stored = await tags.get(red.id)
        assert stored is not None
        assert stored.label == "green"
        stored_item = await backend.find_one("items", {"_id": item.id})
        assert stored_item is not None
        assert stored_item["tags"] == [red.id, blue.id]

    asyncio.run(_run())


def test_pushed_inline_reference_is_inserted_and_linked(mapper: DocumentMapper) -> None:
    tags, items = _catalogue(mapper)

    async def _run() -> None:
        red = await tags.create(label="red").save()
        item = await items.create(name="shirt", tags=[red.id]).save()

        graph = await item.join()
        graph.tags.append({"label": "new"})
        new_tag = graph.tags[-1]
        assert isinstance(new_tag, ModelInstance) and new_tag.is_new

        await graph.save_refs()

        assert not new_tag.is_new
        assert await tags.count() == 2
        reloaded = await items.get(item.id)
        assert reloaded is not None
        assert reloaded.tags == [red.id, new_tag.id]

    asyncio.run(_run())


def test_embedded_changes_are_saved_with_their_owner(
    mapper: DocumentMapper,
    backend: InMemoryBackend,
) -> None:
    embedded = mapper.declare("embedded", {"string": String})
    holders = mapper.declare("holders", {"ref": EmbeddedReference("embedded")})

    async def _run() -> None:
        holder = await holders.create(ref={"string": "In the database"}).save_all()

        loaded = (await holders.find({}).to_list())[0]
        loaded.ref.string = "New value"
        await loaded.save_refs()

        stored = await backend.find_one("holders", {"_id": holder.id})
        assert stored is not None
        assert stored["ref"] == {"_id": holder.ref.id, "string": "New value"}
        assert dict(loaded.pending_changes) == {}
        assert dict(loaded.ref.pending_changes) == {}
        assert [document.string for document in await embedded.find().to_list()] == ["New value"]

    asyncio.run(_run())


def test_saving_an_embedded_instance_saves_its_owner(
    mapper: DocumentMapper,
    backend: InMemoryBackend,
) -> None:
    mapper.declare("embedded", {"string": String})
    holders = mapper.declare("holders", {"ref": EmbeddedReference("embedded")})

    async def _run() -> None:
        holder = await holders.create(ref={"string": "a"}).save()

        holder.ref.string = "b"
        saved = await holder.ref.save()

        assert saved is holder
        stored = await backend.find_one("holders", {"_id": holder.id})
        assert stored is not None
        assert stored["ref"]["string"] == "b"

    asyncio.run(_run())


def test_plain_save_keeps_embedded_documents_inline_only(mapper: DocumentMapper) -> None:
    embedded = mapper.declare("embedded", {"string": String})
    holders = mapper.declare("holders", {"ref": EmbeddedReference("embedded")})

    async def _run() -> None:
        holder = await holders.create(ref={"string": "a"}).save()

        assert isinstance(holder.ref.id, str)
        assert await embedded.count() == 0

        await holder.save_all()
        assert await embedded.count({"_id": holder.ref.id}) == 1

    asyncio.run(_run())
