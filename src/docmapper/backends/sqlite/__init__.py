"""SQLite document backend."""

from .backend import SQLiteBackend, create_sqlite_backend, encode_key

__all__ = ["SQLiteBackend", "create_sqlite_backend", "encode_key"]
