"""Primitive property stores: flat str -> str maps with a per-entry ceiling.

Every backend exposes the same two calls:

    store.get("world/pointers")          # -> str | None
    store.set("world/pos", '{"x":1}')    # write
    store.set("world/pos", None)         # delete (no-op when absent)

plus keys(prefix), used by Database.repair() and stats().

Backends:
    MemoryStore     dict in process memory (tests, scratch use)
    SqliteStore     one table in a local SQLite file, WAL mode
    DiskCacheStore  a diskcache.Cache directory
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from propdb.errors import ConfigError, EntryTooLargeError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from diskcache import Cache

    from propdb.config import PropDBConfig

logger = logging.getLogger("propdb.backend")


@runtime_checkable
class PropertyStore(Protocol):
    """Minimal contract the database layer needs from a backend."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str | None) -> None: ...


@runtime_checkable
class EnumerableStore(PropertyStore, Protocol):
    """A PropertyStore that can also list its keys."""

    def keys(self, prefix: str = "") -> Iterator[str]: ...


def _check_size(key: str, value: str, limit: int | None) -> None:
    if limit is not None and len(value) > limit:
        raise EntryTooLargeError(key, len(value), limit)


# ---------------------------------------------------------------------------
# MemoryStore
# ---------------------------------------------------------------------------


class MemoryStore:
    """dict-backed store. Insertion-ordered, lost when the process exits."""

    def __init__(self, max_entry_size: int | None = None) -> None:
        self.max_entry_size = max_entry_size
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str | None) -> None:
        if value is None:
            self.data.pop(key, None)
            return
        _check_size(key, value, self.max_entry_size)
        self.data[key] = value

    def keys(self, prefix: str = "") -> Iterator[str]:
        # Snapshot so callers may delete while iterating
        return iter([k for k in self.data if k.startswith(prefix)])

    def __len__(self) -> int:
        return len(self.data)


# ---------------------------------------------------------------------------
# SqliteStore
# ---------------------------------------------------------------------------

_SCHEMA = """
CREATE TABLE IF NOT EXISTS properties (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


def connect(db_path: Path) -> sqlite3.Connection:
    """Open a local SQLite connection in autocommit mode.

    Creates the parent directory, enables WAL mode and makes sure the
    properties table exists.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), isolation_level=None)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_SCHEMA)
    return conn


class SqliteStore:
    """Properties in a single SQLite table. Each set() commits on its own."""

    def __init__(self, db_path: Path | str, max_entry_size: int | None = None) -> None:
        self.db_path = Path(db_path)
        self.max_entry_size = max_entry_size
        self._conn = connect(self.db_path)

    def get(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM properties WHERE key = ?", (key,),
        ).fetchone()
        return None if row is None else row[0]

    def set(self, key: str, value: str | None) -> None:
        if value is None:
            self._conn.execute("DELETE FROM properties WHERE key = ?", (key,))
            return
        _check_size(key, value, self.max_entry_size)
        self._conn.execute(
            "INSERT INTO properties (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    def keys(self, prefix: str = "") -> Iterator[str]:
        rows = self._conn.execute(
            "SELECT key FROM properties WHERE substr(key, 1, ?) = ? ORDER BY rowid",
            (len(prefix), prefix),
        ).fetchall()
        return iter([r[0] for r in rows])

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SqliteStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# DiskCacheStore
# ---------------------------------------------------------------------------


class DiskCacheStore:
    """Properties in a diskcache.Cache directory (created lazily)."""

    def __init__(self, directory: Path | str, max_entry_size: int | None = None) -> None:
        self.directory = Path(directory)
        self.max_entry_size = max_entry_size
        self._disk_cache: Cache | None = None  # pyright: ignore[reportUndefinedVariable]

    @property
    def _cache(self) -> Cache:  # pyright: ignore[reportUndefinedVariable]
        if self._disk_cache is None:
            try:
                from diskcache import Cache
            except ImportError as e:
                msg = "diskcache is required for the diskcache backend: pip install diskcache"
                raise ImportError(msg) from e
            self.directory.mkdir(parents=True, exist_ok=True)
            self._disk_cache = Cache(str(self.directory))
        return self._disk_cache

    def get(self, key: str) -> str | None:
        return self._cache.get(key)  # type: ignore[no-any-return]

    def set(self, key: str, value: str | None) -> None:
        if value is None:
            self._cache.delete(key)
            return
        _check_size(key, value, self.max_entry_size)
        self._cache.set(key, value)

    def keys(self, prefix: str = "") -> Iterator[str]:
        return iter([k for k in self._cache.iterkeys() if isinstance(k, str) and k.startswith(prefix)])

    def close(self) -> None:
        if self._disk_cache is not None:
            self._disk_cache.close()
            self._disk_cache = None

    def __enter__(self) -> DiskCacheStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

BACKENDS = ("sqlite", "diskcache", "memory")


def open_store(cfg: PropDBConfig) -> PropertyStore:
    """Build the backend named in cfg.storage.backend."""
    storage = cfg.storage
    logger.debug("opening %s store at %s", storage.backend, storage.path)
    if storage.backend == "sqlite":
        return SqliteStore(storage.path, max_entry_size=storage.max_entry_size)
    if storage.backend == "diskcache":
        return DiskCacheStore(storage.path, max_entry_size=storage.max_entry_size)
    if storage.backend == "memory":
        return MemoryStore(max_entry_size=storage.max_entry_size)
    msg = f"unknown storage backend {storage.backend!r} (expected one of: {', '.join(BACKENDS)})"
    raise ConfigError(msg)
