from __future__ import annotations

import asyncio

import pytest

from docmapper import DocumentMapper, EmbeddedReference, ModelInstance, Reference, String
from docmapper.backends import InMemoryBackend
from docmapper.errors import ReferenceNotFound


def _catalogue(mapper: DocumentMapper):
    tags = mapper.declare("tags", {"label": String})
    items = mapper.declare("items", {"name": String, "tags": [Reference("tags")]})
    return tags, items


def test_join_resolves_reference_lists_in_order(
    mapper: DocumentMapper,
    backend: InMemoryBackend,
) -> None:
    tags, items = _catalogue(mapper)

    async def _run() -> None:
        red = await tags.create(label="red").save()
        blue = await tags.create(label="blue").save()
        await items.create(name="shirt", tags=[blue.id, red.id]).save()

        found = await items.find({}).to_list()
        assert len(found) == 1
        item = found[0]
        assert item.tags == [blue.id, red.id]

        writes = backend.writes
        graph = await item.join()

        assert [tag.label for tag in graph.tags] == ["blue", "red"]
        assert all(isinstance(tag, ModelInstance) and not tag.is_new for tag in graph.tags)
        assert item.tags == [blue.id, red.id]
        assert dict(graph.pending_changes) == {}
        assert backend.writes == writes

    asyncio.run(_run())


def test_join_fetches_repeated_targets_once(mapper: DocumentMapper) -> None:
    tags, items = _catalogue(mapper)

    async def _run() -> None:
        red = await tags.create(label="red").save()
        item = await items.create(name="shirt", tags=[red.id, red.id]).save()

        graph = await item.join()

        first, second = graph.tags
        assert first is second

    asyncio.run(_run())


def test_join_raises_for_dangling_references(mapper: DocumentMapper) -> None:
    tags, items = _catalogue(mapper)

    async def _run() -> None:
        red = await tags.create(label="red").save()
        item = await items.create(name="shirt", tags=[red.id, "missing"]).save()

        with pytest.raises(ReferenceNotFound) as excinfo:
            await item.join()
        assert excinfo.value.field_name == "tags"
        assert excinfo.value.identity == "missing"

    asyncio.run(_run())


def test_join_resolves_references_inside_embedded_documents(mapper: DocumentMapper) -> None:
    authors = mapper.declare("authors", {"name": String})
    mapper.declare("bylines", {"author": Reference("authors")})
    posts = mapper.declare("posts", {"title": String, "byline": EmbeddedReference("bylines")})

    async def _run() -> None:
        author = await authors.create(name="Ada").save()
        post = await posts.create(title="Notes", byline={"author": author.id}).save()

        loaded = await posts.get(post.id)
        assert loaded is not None
        graph = await loaded.join()

        assert graph.byline.author.name == "Ada"
        assert graph.byline.owner == (graph, "byline")
        assert loaded.byline.author == author.id

    asyncio.run(_run())


def test_join_depth_bounds_cyclic_references(mapper: DocumentMapper) -> None:
    people = mapper.declare("people", {"name": String, "friend": Reference("people").optional()})

    async def _run() -> None:
        alice = await people.create(name="alice").save()
        bob = await people.create(name="bob", friend=alice.id).save()
        alice.friend = bob.id
        await alice.save()

        shallow = await alice.join()
        assert shallow.friend.name == "bob"
        assert shallow.friend.friend == alice.id

        deep = await alice.join(depth=3)
        assert deep.friend.name == "bob"
        assert deep.friend.friend.name == "alice"
        assert deep.friend.friend.friend is deep.friend

        with pytest.raises(ValueError):
            await alice.join(depth=0)

    asyncio.run(_run())


def test_joined_cursor_yields_resolved_instances(mapper: DocumentMapper) -> None:
    tags, items = _catalogue(mapper)

    async def _run() -> None:
        red = await tags.create(label="red").save()
        await items.create(name="shirt", tags=[red.id]).save()
        await items.create(name="socks", tags=[]).save()

        graphs = await items.find({"name": "shirt"}).joined().to_list()

        assert [[tag.label for tag in graph.tags] for graph in graphs] == [["red"]]

    asyncio.run(_run())


def test_save_after_join_stores_identities(
    mapper: DocumentMapper,
    backend: InMemoryBackend,
) -> None:
    tags, items = _catalogue(mapper)

    async def _run() -> None:
        red = await tags.create(label="red").save()
        item = await items.create(name="shirt", tags=[red.id]).save()

        graph = await item.join()
        graph.name = "jacket"
        await graph.save()

        stored = await backend.find_one("items", {"_id": item.id})
        assert stored == {"_id": item.id, "name": "jacket", "tags": [red.id]}

    asyncio.run(_run())


def test_join_walks_nodes_again_when_reached_with_more_depth(mapper: DocumentMapper) -> None:
    nodes = mapper.declare("nodes", {"label": String, "links": [Reference("nodes")]})

    async def _run() -> None:
        e = await nodes.create(label="e", links=[]).save()
        d = await nodes.create(label="d", links=[e.id]).save()
        c = await nodes.create(label="c", links=[d.id]).save()
        b = await nodes.create(label="b", links=[c.id]).save()
        a = await nodes.create(label="a", links=[b.id, c.id]).save()

        graph = await a.join(depth=3)

        via_b, direct_c = graph.links
        assert via_b.links[0] is direct_c
        assert direct_c.links[0].label == "d"
        assert direct_c.links[0].links[0].label == "e"
        assert direct_c.links[0].links[0].links == []

    asyncio.run(_run())


def test_find_one_and_get_can_join(mapper: DocumentMapper) -> None:
    tags, items = _catalogue(mapper)

    async def _run() -> None:
        red = await tags.create(label="red").save()
        item = await items.create(name="shirt", tags=[red.id]).save()

        found = await items.find_one({"name": "shirt"}, join_depth=1)
        fetched = await items.get(item.id, join_depth=1)
        plain = await items.get(item.id)

        assert found is not None and fetched is not None and plain is not None
        assert [tag.label for tag in found.tags] == ["red"]
        assert [tag.label for tag in fetched.tags] == ["red"]
        assert plain.tags == [red.id]

    asyncio.run(_run())
