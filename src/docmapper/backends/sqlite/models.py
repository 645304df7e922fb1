"""SQLAlchemy ORM models for the SQLite document store."""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):  # type: ignore[misc]
    pass


class CollectionRecord(Base):
    __tablename__ = "collections"

    name: Mapped[str] = mapped_column(String, primary_key=True)


class DocumentRecord(Base):
    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection", "key", name="uq_documents_collection_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String, nullable=False, index=True)
    key: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)


class IndexRecord(Base):
    __tablename__ = "collection_indexes"
    __table_args__ = (UniqueConstraint("collection", "field_name", name="uq_index_collection_field"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String, nullable=False)
    field_name: Mapped[str] = mapped_column(String, nullable=False)
    is_unique: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_sparse: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


__all__ = ["Base", "CollectionRecord", "DocumentRecord", "IndexRecord"]
