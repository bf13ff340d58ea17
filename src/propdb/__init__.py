"""Chunked key-value databases on top of a flat string property store.

Layout of database "world" in the backend:
    world/pointers          JSON array of entry-keys (the live key list)
    world/<key>             serialized value, or a decimal part count
    world/<key>_part<i>     slice i of a value too large for one entry

Backends (propdb.backend) only need get(key) and set(key, value | None).
The per-entry ceiling of the backend bounds each slice; values of any size
are split on write and joined on read.
"""

from propdb.backend import DiskCacheStore, MemoryStore, PropertyStore, SqliteStore, open_store
from propdb.chunks import ChunkedValueStore
from propdb.config import PropDBConfig, init_config, load_config
from propdb.database import Database, DatabaseStats, RepairReport
from propdb.errors import (
    CorruptEntryError,
    DeserializationError,
    InvalidKeyError,
    InvalidNameError,
    PropDBError,
)
from propdb.pointers import PointerIndex

__all__ = [
    "ChunkedValueStore",
    "CorruptEntryError",
    "Database",
    "DatabaseStats",
    "DeserializationError",
    "DiskCacheStore",
    "InvalidKeyError",
    "InvalidNameError",
    "MemoryStore",
    "PointerIndex",
    "PropDBConfig",
    "PropDBError",
    "PropertyStore",
    "RepairReport",
    "SqliteStore",
    "init_config",
    "load_config",
    "open_store",
]
