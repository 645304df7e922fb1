"""Storage backend exports."""

from .interfaces import DocumentBackend, IndexOptions, WriteResult
from .memory import InMemoryBackend
from .sqlite import SQLiteBackend

__all__ = [
    "DocumentBackend",
    "InMemoryBackend",
    "IndexOptions",
    "SQLiteBackend",
    "WriteResult",
]
