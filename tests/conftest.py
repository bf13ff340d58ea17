"""Shared fixtures: an in-memory store and a small-chunk database on it."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from propdb.backend import MemoryStore
from propdb.database import Database


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def db(store: MemoryStore) -> Database:
    """Database "test" with 10-char chunks so small values already split."""
    return Database("test", store, max_chunk_size=10)


@pytest.fixture
def parts_of(store: MemoryStore) -> Callable[[str], list[str]]:
    """Chunk part keys currently stored for an entry-key."""

    def _parts(entry_key: str) -> list[str]:
        return sorted(k for k in store.data if k.startswith(f"{entry_key}_part"))

    return _parts
