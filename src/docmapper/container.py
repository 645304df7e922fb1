"""Wiring of settings, backend and mapper."""

from __future__ import annotations

import logging
from pathlib import Path

from docmapper.backends import DocumentBackend, InMemoryBackend
from docmapper.backends.sqlite import create_sqlite_backend
from docmapper.config import MapperSettings
from docmapper.errors import ConfigurationError
from docmapper.mapping import DocumentMapper
from docmapper.schema import SchemaRegistry

logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(database_url: str) -> None:
    try:
        _, path = database_url.split(":///", maxsplit=1)
    except ValueError:
        return
    db_path = Path(path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)


def build_backend(settings: MapperSettings) -> DocumentBackend:
    """Pick a storage medium from the database URL scheme."""

    url = settings.database_url
    if url.startswith("memory:"):
        return InMemoryBackend()
    if url.startswith("sqlite"):
        if ":///" not in url or url.endswith(":///") or ":memory:" in url:
            msg = f"SQLite backend needs a database file path, got {url!r}"
            raise ConfigurationError(msg)
        _ensure_sqlite_directory(url)
        return create_sqlite_backend(url)
    msg = f"Did not specify a storage medium: unsupported database URL {url!r}"
    raise ConfigurationError(msg)


def build_mapper(
    settings: MapperSettings | None = None,
    *,
    registry: SchemaRegistry | None = None,
) -> DocumentMapper:
    """Construct a mapper for the configured backend."""

    resolved_settings = settings or MapperSettings.from_env()
    backend = build_backend(resolved_settings)
    logger.debug(
        "Building mapper for %s (%s backend, environment=%s)",
        resolved_settings.database_url,
        type(backend).__name__,
        resolved_settings.environment,
    )
    return DocumentMapper(
        backend,
        registry,
        auto_index=resolved_settings.auto_index,
    )


__all__ = ["build_backend", "build_mapper"]
