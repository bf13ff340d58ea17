"""Exception types raised by propdb.

Backend failures (sqlite3.Error, OSError, diskcache errors) are not wrapped:
they reach the caller unmodified.
"""

from __future__ import annotations


class PropDBError(Exception):
    """Base class for all propdb errors."""


class InvalidNameError(PropDBError, ValueError):
    """Database name is empty or contains `"` or `/`."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        super().__init__(f"invalid database name {name!r}: {reason}")


class InvalidKeyError(PropDBError, ValueError):
    """Key would map onto the pointer index or onto another key's chunk parts."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        super().__init__(f"invalid key {key!r}: {reason}")


class DeserializationError(PropDBError, ValueError):
    """Stored text could not be parsed back into a value."""

    def __init__(self, key: str, text: str) -> None:
        self.key = key
        self.text = text
        preview = text if len(text) <= 60 else text[:57] + "..."
        super().__init__(f"cannot deserialize value for {key!r}: {preview!r}")


class CorruptEntryError(PropDBError):
    """A chunked entry is missing one of its parts (strict mode only)."""

    def __init__(self, entry_key: str, part: int, count: int) -> None:
        self.entry_key = entry_key
        self.part = part
        self.count = count
        super().__init__(f"{entry_key}: chunk part {part} of {count} is missing")


class EntryTooLargeError(PropDBError):
    """A single backend write exceeded the store's per-entry ceiling."""

    def __init__(self, key: str, size: int, limit: int) -> None:
        self.key = key
        self.size = size
        self.limit = limit
        super().__init__(f"{key}: {size} chars exceeds entry limit of {limit}")


class ConfigError(PropDBError):
    """propdb.toml holds an invalid combination of settings."""


class RepairUnsupportedError(PropDBError):
    """The backend cannot enumerate keys, so repair() cannot run."""
