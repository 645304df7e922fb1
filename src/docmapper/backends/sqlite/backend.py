"""Async SQLite document backend."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from copy import deepcopy
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from docmapper.backends.interfaces import DocumentBackend, IndexOptions, WriteResult
from docmapper.backends.matching import (
    apply_update,
    check_unique,
    is_identity_query,
    matches,
    project,
)
from docmapper.errors import DuplicateIdentity
from docmapper.types import ID_FIELD, Identity, Projection, Query, RawDocument, UpdateOperations

from .migrations import apply_migrations
from .models import CollectionRecord, DocumentRecord, IndexRecord


def encode_key(identity: Identity) -> str:
    """Stable text key for an identity; ``1`` and ``"1"`` stay distinct."""

    return json.dumps(identity, sort_keys=True, separators=(",", ":"))


class SQLiteBackend(DocumentBackend):
    """Stores every collection in one ``documents`` table as JSON payloads.

    Identity uniqueness is enforced by the (collection, key) constraint;
    query matching and projection happen in Python on the loaded payloads.
    """

    def __init__(self, database_url: str, *, engine: AsyncEngine | None = None) -> None:
        self._database_url = database_url
        self._engine = engine or create_async_engine(database_url, future=True)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        self._migration_lock = asyncio.Lock()
        self._migrated = False

    @property
    def database_url(self) -> str:
        return self._database_url

    async def _ensure_migrated(self) -> None:
        async with self._migration_lock:
            if self._migrated:
                return
            await apply_migrations(self._engine)
            self._migrated = True

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        await self._ensure_migrated()
        async with self._session_factory() as session, session.begin():
            yield session

    async def _load(
        self,
        session: AsyncSession,
        collection: str,
        query: Query,
    ) -> Sequence[DocumentRecord]:
        stmt = (
            select(DocumentRecord)
            .where(DocumentRecord.collection == collection)
            .order_by(DocumentRecord.id)
        )
        if is_identity_query(query):
            stmt = stmt.where(DocumentRecord.key == encode_key(query[ID_FIELD]))
        records = (await session.scalars(stmt)).all()
        return [record for record in records if matches(record.payload, query)]

    async def _index_options(self, session: AsyncSession, collection: str) -> dict[str, IndexOptions]:
        stmt = select(IndexRecord).where(IndexRecord.collection == collection)
        records = (await session.scalars(stmt)).all()
        return {
            record.field_name: IndexOptions(unique=record.is_unique, sparse=record.is_sparse)
            for record in records
        }

    async def _check_unique(
        self,
        session: AsyncSession,
        collection: str,
        candidate: RawDocument,
    ) -> None:
        indexes = await self._index_options(session, collection)
        if not any(options.unique for options in indexes.values()):
            return
        others = [record.payload for record in await self._load(session, collection, {})]
        check_unique(candidate, others, indexes)

    async def create_collection(self, name: str) -> None:
        async with self._transaction() as session:
            await session.merge(CollectionRecord(name=name))

    async def create_index(
        self,
        collection: str,
        field_name: str,
        options: IndexOptions,
    ) -> None:
        async with self._transaction() as session:
            await session.merge(CollectionRecord(name=collection))
            if options.unique:
                payloads = [record.payload for record in await self._load(session, collection, {})]
                for payload in payloads:
                    check_unique(payload, payloads, {field_name: options})
            stmt = select(IndexRecord).where(
                IndexRecord.collection == collection,
                IndexRecord.field_name == field_name,
            )
            record = (await session.scalars(stmt)).first()
            if record is None:
                record = IndexRecord(collection=collection, field_name=field_name)
                session.add(record)
            record.is_unique = options.unique
            record.is_sparse = options.sparse

    async def count(self, collection: str, query: Query) -> int:
        async with self._transaction() as session:
            return len(await self._load(session, collection, query))

    async def find(
        self,
        collection: str,
        query: Query,
        projection: Projection | None = None,
    ) -> AsyncIterator[RawDocument]:
        async with self._transaction() as session:
            payloads = [record.payload for record in await self._load(session, collection, query)]
        for payload in payloads:
            yield project(payload, projection)

    async def find_one(
        self,
        collection: str,
        query: Query,
        projection: Projection | None = None,
    ) -> RawDocument | None:
        async with self._transaction() as session:
            records = await self._load(session, collection, query)
            if not records:
                return None
            return project(records[0].payload, projection)

    async def insert(self, collection: str, document: RawDocument) -> RawDocument:
        stored = deepcopy(document)
        if stored.get(ID_FIELD) is None:
            stored[ID_FIELD] = self.new_identity()
        try:
            async with self._transaction() as session:
                await session.merge(CollectionRecord(name=collection))
                await self._check_unique(session, collection, stored)
                session.add(
                    DocumentRecord(
                        collection=collection,
                        key=encode_key(stored[ID_FIELD]),
                        payload=stored,
                    )
                )
                await session.flush()
        except IntegrityError as exc:
            raise DuplicateIdentity(stored[ID_FIELD], collection) from exc
        return deepcopy(stored)

    async def update(
        self,
        collection: str,
        identity_query: Query,
        operations: UpdateOperations,
    ) -> WriteResult:
        async with self._transaction() as session:
            records = await self._load(session, collection, identity_query)
            if not records:
                return WriteResult(modified_count=0)
            record = records[0]
            updated = apply_update(record.payload, operations)
            if updated == record.payload:
                return WriteResult(modified_count=0)
            await self._check_unique(session, collection, updated)
            record.payload = updated
        return WriteResult(modified_count=1)

    async def delete_one(self, collection: str, query: Query) -> int:
        async with self._transaction() as session:
            records = await self._load(session, collection, query)
            if not records:
                return 0
            await session.delete(records[0])
        return 1

    async def delete_many(self, collection: str, query: Query) -> int:
        async with self._transaction() as session:
            records = await self._load(session, collection, query)
            for record in records:
                await session.delete(record)
        return len(records)

    def new_identity(self) -> Identity:
        return uuid4().hex

    async def close(self) -> None:
        await self._engine.dispose()


def create_sqlite_backend(database_url: str) -> SQLiteBackend:
    return SQLiteBackend(database_url)


__all__ = ["SQLiteBackend", "create_sqlite_backend", "encode_key"]
