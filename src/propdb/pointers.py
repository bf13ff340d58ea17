"""Pointer index: the ordered list of live entry-keys of one database."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from propdb.backend import PropertyStore

logger = logging.getLogger("propdb.pointers")


class PointerIndex:
    """JSON array of entry-keys stored under a single backend key.

    The list is cached after the first load. Writes go through to the
    backend and replace the cache, so the cache never runs ahead of what
    was persisted. Another PointerIndex over the same key is not seen
    until reload().
    """

    def __init__(self, store: PropertyStore, index_key: str) -> None:
        self.store = store
        self.index_key = index_key
        self._cached: list[str] | None = None

    def load(self) -> list[str]:
        if self._cached is not None:
            return self._cached
        raw = self.store.get(self.index_key)
        self._cached = self._parse(raw)
        return self._cached

    def _parse(self, raw: str | None) -> list[str]:
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("unparseable pointer list at %s, treating as empty", self.index_key)
            return []
        if not isinstance(data, list):
            logger.warning("pointer list at %s is not an array, treating as empty", self.index_key)
            return []
        return [p for p in data if isinstance(p, str)]

    def save(self, pointers: list[str]) -> None:
        self.store.set(self.index_key, json.dumps(pointers, separators=(",", ":")))
        self._cached = list(pointers)

    def add(self, entry_key: str) -> None:
        pointers = self.load()
        if entry_key in pointers:
            return
        self.save([*pointers, entry_key])

    def remove(self, entry_key: str) -> None:
        pointers = self.load()
        kept = [p for p in pointers if p != entry_key]
        if len(kept) != len(pointers):
            self.save(kept)

    def exists(self) -> bool:
        """True when the backend holds an entry at index_key."""
        return self.store.get(self.index_key) is not None

    def invalidate(self) -> None:
        self._cached = None

    def __contains__(self, entry_key: object) -> bool:
        return entry_key in self.load()
