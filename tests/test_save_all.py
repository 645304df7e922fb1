from __future__ import annotations

import asyncio

import pytest

from docmapper import DocumentMapper, EmbeddedReference, Reference, String
from docmapper.backends import InMemoryBackend
from docmapper.errors import ValidationError


def test_save_all_inserts_inline_reference_first(
    mapper: DocumentMapper,
    backend: InMemoryBackend,
) -> None:
    referenced = mapper.declare("referenced", {"string": String})
    holders = mapper.declare("holders", {"field": String, "ref": Reference("referenced")})

    async def _run() -> None:
        holder = holders.create(_id="1", field="aaa", ref={"_id": "1", "string": "goodbye"})
        await holder.save_all()

        assert await referenced.count() == 1
        assert await holders.count() == 1
        assert not holder.ref.is_new
        stored = await backend.find_one("holders", {"_id": "1"})
        assert stored == {"_id": "1", "field": "aaa", "ref": "1"}

    asyncio.run(_run())


def test_save_all_stores_embedded_documents_inline_and_in_their_collection(
    mapper: DocumentMapper,
    backend: InMemoryBackend,
) -> None:
    embedded = mapper.declare("embedded", {"string": String})
    holders = mapper.declare("holders", {"ref": EmbeddedReference("embedded")})

    async def _run() -> None:
        holder = holders.create(ref={"string": "In the database"})
        await holder.save_all()

        assert isinstance(holder.ref.id, str)
        assert not holder.ref.is_new
        stored = await backend.find_one("holders", {"_id": holder.id})
        assert stored == {
            "_id": holder.id,
            "ref": {"_id": holder.ref.id, "string": "In the database"},
        }
        mirrored = await embedded.get(holder.ref.id)
        assert mirrored is not None
        assert mirrored.string == "In the database"
        assert await embedded.count({"_id": holder.ref.id}) == 1

    asyncio.run(_run())


def test_save_all_handles_reference_lists(
    mapper: DocumentMapper,
    backend: InMemoryBackend,
) -> None:
    referenced = mapper.declare("referenced", {"string": String})
    holders = mapper.declare("holders", {"name": String, "refs": [referenced.ref()]})

    async def _run() -> None:
        await referenced.create(_id=0, string="a").save()
        holder = holders.create(name="three", refs=[0, {"_id": 4, "string": "e"}])
        await holder.save_all()

        stored = await backend.find_one("holders", {"_id": holder.id})
        assert stored is not None
        assert stored["refs"] == [0, 4]
        assert await referenced.count() == 2

    asyncio.run(_run())


def test_save_all_cascades_through_nested_references(mapper: DocumentMapper) -> None:
    mapper.declare("grandchildren", {"label": String})
    children = mapper.declare("children", {"label": String, "child": Reference("grandchildren")})
    parents = mapper.declare("parents", {"child": Reference("children")})

    async def _run() -> None:
        parent = parents.create(child={"label": "kid", "child": {"label": "grandkid"}})
        await parent.save_all()

        kid = await children.get(parent.child.id)
        assert kid is not None
        graph = await kid.join()
        assert graph.child.label == "grandkid"

    asyncio.run(_run())


def test_save_all_is_not_transactional(mapper: DocumentMapper) -> None:
    children = mapper.declare("children", {"label": String[3]})
    parents = mapper.declare("parents", {"name": String, "refs": [Reference("children")]})

    async def _run() -> None:
        parent = parents.create(name="p", refs=[{"label": "ok"}, {"label": "far too long"}])
        with pytest.raises(ValidationError) as excinfo:
            await parent.save_all()

        assert excinfo.value.failing_fields == {"label": "far too long"}
        assert await children.count() == 1
        assert await parents.count() == 0
        assert parent.is_new

    asyncio.run(_run())


def test_save_all_validates_root_before_writing_anything(mapper: DocumentMapper) -> None:
    children = mapper.declare("children", {"label": String})
    parents = mapper.declare("parents", {"name": String, "child": Reference("children")})

    async def _run() -> None:
        parent = parents.create(child={"label": "ok"})
        with pytest.raises(ValidationError) as excinfo:
            await parent.save_all()

        assert excinfo.value.failing_fields == {"name": None}
        assert await children.count() == 0

    asyncio.run(_run())


def test_embedded_failures_use_dotted_paths(mapper: DocumentMapper) -> None:
    mapper.declare("covers", {"caption": String})
    items = mapper.declare("items", {"covers": [EmbeddedReference("covers")]})

    async def _run() -> None:
        item = items.create(covers=[{"caption": "fine"}, {}])
        with pytest.raises(ValidationError) as excinfo:
            await item.save_all()

        assert excinfo.value.failing_fields == {"covers.1.caption": None}
        assert await items.count() == 0

    asyncio.run(_run())
