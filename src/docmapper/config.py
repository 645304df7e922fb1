"""Lightweight mapper configuration loader."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no"}


@dataclass(frozen=True)
class MapperSettings:
    """Immutable configuration sourced from environment variables."""

    environment: str = "development"
    database_url: str = "memory://"
    auto_index: bool = True

    @classmethod
    def from_env(cls) -> MapperSettings:
        return cls(
            environment=os.getenv("DOCMAPPER_ENV", cls.environment),
            database_url=os.getenv("DOCMAPPER_DATABASE_URL", cls.database_url),
            auto_index=_env_bool("DOCMAPPER_AUTO_INDEX", True),
        )


__all__ = ["MapperSettings"]
