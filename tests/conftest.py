from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the src/ directory is importable when tests run without installation.
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from docmapper import DocumentMapper  # noqa: E402
from docmapper.backends import InMemoryBackend  # noqa: E402


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def mapper(backend: InMemoryBackend) -> DocumentMapper:
    return DocumentMapper(backend)
