"""Database: named key-value collections on top of a primitive property store.

    store = SqliteStore(".propdb/store.db")
    db = Database("rc1", store)
    db.set("pos", {"x": 1, "y": 2, "z": 3})     # -> False (new key)
    db.get("pos")                               # -> {"x": 1, "y": 2, "z": 3}
    db.entries()                                # -> [("pos", {...})]

Backend layout for database "rc1":

    rc1/pointers      JSON array of live entry-keys, in insertion order
    rc1/<key>         serialized value, or a part count (see propdb.chunks)
    rc1/<key>_part<i> value slices of a chunked entry

Values are serialized with compact JSON unless other dumps/loads functions
are given.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from propdb.chunks import ChunkedValueStore, chunk_count, is_part_key, part_key
from propdb.config import DEFAULT_MAX_CHUNK_SIZE
from propdb.errors import (
    DeserializationError,
    InvalidKeyError,
    InvalidNameError,
    RepairUnsupportedError,
)
from propdb.pointers import PointerIndex

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from propdb.backend import PropertyStore
    from propdb.config import PropDBConfig

logger = logging.getLogger("propdb.database")

T = TypeVar("T")

_POINTERS_SUFFIX = "pointers"
_FORBIDDEN = ('"', "/")


def json_dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def validate_name(name: str) -> None:
    """Raise InvalidNameError unless name is usable as a database name."""
    if not name:
        raise InvalidNameError(name, "name cannot be empty")
    for ch in _FORBIDDEN:
        if ch in name:
            raise InvalidNameError(name, 'name cannot include the characters `"` or `/`')


def validate_key(key: str) -> None:
    """Raise InvalidKeyError if key would land on a reserved backend key.

    "pointers" is the index itself and "<k>_part<i>" is a chunk slot of k.
    """
    if key == _POINTERS_SUFFIX:
        raise InvalidKeyError(key, "reserved for the pointer index")
    if is_part_key(key):
        raise InvalidKeyError(key, "keys ending in _part<digits> are reserved for chunk parts")


@dataclass
class RepairReport:
    """What Database.repair() changed."""

    dangling_pointers: int = 0    # listed keys with no stored entry, unlinked
    duplicate_pointers: int = 0   # repeated list entries, dropped
    orphaned_entries: int = 0     # unlisted base entries and stray parts, deleted

    @property
    def changed(self) -> bool:
        return bool(self.dangling_pointers or self.duplicate_pointers or self.orphaned_entries)


@dataclass
class DatabaseStats:
    keys: int = 0
    chunked: int = 0
    parts: int = 0
    chars: int = 0


class Database(Generic[T]):
    """A named key-value database stored in a PropertyStore."""

    def __init__(
        self,
        name: str,
        store: PropertyStore,
        *,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        strict: bool = False,
        dumps: Callable[[T], str] = json_dumps,
        loads: Callable[[str], T] = json.loads,
    ) -> None:
        validate_name(name)
        self.name = name
        self.store = store
        self.index_key = f"{name}/{_POINTERS_SUFFIX}"
        self._dumps = dumps
        self._loads = loads
        self._pointers = PointerIndex(store, self.index_key)
        self._chunks = ChunkedValueStore(store, max_chunk_size, strict=strict)

        if not self._pointers.exists():
            self._pointers.save([])
            logger.info("created pointer index %s", self.index_key)

    @classmethod
    def from_config(
        cls,
        cfg: PropDBConfig,
        store: PropertyStore,
        name: str | None = None,
    ) -> Database[Any]:
        """Build a JSON database using the chunk settings from cfg."""
        return cls(
            name or cfg.name,
            store,
            max_chunk_size=cfg.chunks.max_chunk_size,
            strict=cfg.chunks.strict,
        )

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def entry_key(self, key: str) -> str:
        return f"{self.name}/{key}"

    def _key_of(self, entry_key: str) -> str:
        # name never contains "/", so the key is everything after the first one
        return entry_key[len(self.name) + 1:]

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def set(self, key: str, value: T) -> bool:
        """Store value under key. Returns True if key already existed.

        Raises InvalidKeyError for "pointers" and keys ending in _part<digits>.
        """
        validate_key(key)
        text = self._dumps(value)
        entry_key = self.entry_key(key)

        existed = entry_key in self._pointers.load()
        if existed:
            # Drop the old marker and parts so a shorter value leaves no strays
            self.delete(key)

        self._chunks.write(entry_key, text)
        self._pointers.add(entry_key)
        return existed

    def get(self, key: str) -> T | None:
        """Return the value stored under key, or None if absent."""
        validate_key(key)
        return self._read(key, self.entry_key(key))

    def _read(self, key: str, entry_key: str) -> T | None:
        text = self._chunks.read(entry_key)
        if text is None:
            return None
        try:
            return self._loads(text)
        except (ValueError, TypeError) as exc:
            raise DeserializationError(key, text) from exc

    def delete(self, key: str) -> None:
        """Remove key and all of its chunk parts. No-op if absent."""
        validate_key(key)
        entry_key = self.entry_key(key)
        if entry_key not in self._pointers.load():
            return
        self._chunks.erase(entry_key)
        self._pointers.remove(entry_key)

    def clear(self) -> None:
        """Remove every key of this database."""
        pointers = self._pointers.load()
        for entry_key in pointers:
            self._chunks.erase(entry_key)
        self._pointers.save([])
        logger.info("cleared %s (%d keys)", self.name, len(pointers))

    def entries(self) -> list[tuple[str, T | None]]:
        """All (key, value) pairs in insertion order.

        A key is everything after "<name>/" in its entry-key, so keys that
        contain "/" come back whole rather than as their last path segment.

        Raises DeserializationError on the first value that cannot be parsed.
        """
        result: list[tuple[str, T | None]] = []
        for entry_key in self._pointers.load():
            key = self._key_of(entry_key)
            result.append((key, self._read(key, entry_key)))
        return result

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def has(self, key: str) -> bool:
        """True if key is listed, even when its stored value is JSON null."""
        return self.entry_key(key) in self._pointers.load()

    def keys(self) -> list[str]:
        return [self._key_of(p) for p in self._pointers.load()]

    def reload(self) -> None:
        """Forget the cached pointer list; the next call re-reads the backend."""
        self._pointers.invalidate()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._pointers.load())

    def __repr__(self) -> str:
        return f"Database(name={self.name!r}, store={type(self.store).__name__})"

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def stats(self) -> DatabaseStats:
        """Count keys, chunked keys, parts and stored characters."""
        stats = DatabaseStats()
        for entry_key in self._pointers.load():
            info = self._chunks.info(entry_key)
            if info is None:
                continue
            stats.keys += 1
            stats.chars += info.size
            if info.parts:
                stats.chunked += 1
                stats.parts += info.parts
        return stats

    def repair(self) -> RepairReport:
        """Reconcile the pointer list with what the backend actually holds.

        Needs a backend with keys(prefix). Unlinks pointers whose entry is
        gone, drops duplicate pointers, and deletes stored entries and chunk
        parts that no listed key accounts for.
        """
        list_keys = getattr(self.store, "keys", None)
        if list_keys is None:
            msg = f"{type(self.store).__name__} cannot enumerate keys"
            raise RepairUnsupportedError(msg)

        report = RepairReport()
        self._pointers.invalidate()
        pointers = self._pointers.load()

        live: list[str] = []
        expected = {self.index_key}
        for entry_key in pointers:
            if entry_key in live:
                report.duplicate_pointers += 1
                continue
            meta = self.store.get(entry_key)
            if meta is None:
                report.dangling_pointers += 1
                logger.info("repair: unlinking dangling pointer %s", entry_key)
                continue
            live.append(entry_key)
            expected.add(entry_key)
            n = chunk_count(meta)
            if n is not None:
                expected.update(part_key(entry_key, i) for i in range(n))

        if len(live) != len(pointers):
            self._pointers.save(live)

        for stored_key in list(list_keys(f"{self.name}/")):
            if stored_key in expected:
                continue
            self.store.set(stored_key, None)
            report.orphaned_entries += 1
            logger.info("repair: deleted orphaned entry %s", stored_key)

        logger.info(
            "repair %s: %d dangling, %d duplicate, %d orphaned",
            self.name, report.dangling_pointers, report.duplicate_pointers, report.orphaned_entries,
        )
        return report
