"""Chunked values: one logical text value spread over bounded backend entries.

Layout for a base key K:

    K            -> the text itself              (direct)
    K            -> "3"                          (chunked: decimal part count)
    K_part0..2   -> consecutive slices of the text

A base entry made only of decimal digits is always a part count. Texts that
are themselves all digits (a bare JSON integer, say) are therefore never
written directly; they go through the chunked form even when they fit in one
entry.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from propdb.config import DEFAULT_MAX_CHUNK_SIZE
from propdb.errors import CorruptEntryError

if TYPE_CHECKING:
    from propdb.backend import PropertyStore

logger = logging.getLogger("propdb.chunks")

_COUNT_RE = re.compile(r"[0-9]+")
_PART_SUFFIX = "_part"
_PART_KEY_RE = re.compile(r".*_part[0-9]+", re.DOTALL)


def part_key(entry_key: str, i: int) -> str:
    return f"{entry_key}{_PART_SUFFIX}{i}"


def is_part_key(key: str) -> bool:
    """True if key has the shape of a chunk part key (ends in _part<digits>)."""
    return _PART_KEY_RE.fullmatch(key) is not None


def chunk_count(meta: str | None) -> int | None:
    """Return the part count if meta is a count marker, else None."""
    if meta is None or not _COUNT_RE.fullmatch(meta):
        return None
    return int(meta)


def split_text(text: str, size: int) -> list[str]:
    """Split text into ceil(len/size) contiguous slices of at most size chars."""
    n = max(1, math.ceil(len(text) / size))
    return [text[i * size:(i + 1) * size] for i in range(n)]


@dataclass
class EntryInfo:
    """Shape of one stored entry, as seen by stats() and repair()."""

    entry_key: str
    parts: int          # 0 for a direct entry
    size: int           # stored characters, marker and parts included


class ChunkedValueStore:
    """Read, write and erase values that may exceed one backend entry."""

    def __init__(
        self,
        store: PropertyStore,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        *,
        strict: bool = False,
    ) -> None:
        if max_chunk_size <= 0:
            msg = f"max_chunk_size must be positive, got {max_chunk_size}"
            raise ValueError(msg)
        self.store = store
        self.max_chunk_size = max_chunk_size
        self.strict = strict

    def write(self, entry_key: str, text: str) -> None:
        if len(text) <= self.max_chunk_size and not _COUNT_RE.fullmatch(text):
            self.store.set(entry_key, text)
            logger.debug("wrote %s (%d chars)", entry_key, len(text))
            return

        parts = split_text(text, self.max_chunk_size)
        for i, chunk in enumerate(parts):
            self.store.set(part_key(entry_key, i), chunk)
        # Marker last: a reader never sees a count before its parts exist
        self.store.set(entry_key, str(len(parts)))
        logger.debug("wrote %s in %d parts (%d chars)", entry_key, len(parts), len(text))

    def read(self, entry_key: str) -> str | None:
        meta = self.store.get(entry_key)
        if meta is None:
            return None
        n = chunk_count(meta)
        if n is None:
            return meta

        pieces: list[str] = []
        for i in range(n):
            part = self.store.get(part_key(entry_key, i))
            if part is None:
                if self.strict:
                    raise CorruptEntryError(entry_key, i, n)
                logger.warning("%s: chunk part %d of %d missing, reading as empty", entry_key, i, n)
                continue
            pieces.append(part)
        return "".join(pieces)

    def erase(self, entry_key: str) -> None:
        n = chunk_count(self.store.get(entry_key))
        if n is not None:
            for i in range(n):
                self.store.set(part_key(entry_key, i), None)
        self.store.set(entry_key, None)
        logger.debug("erased %s (%s parts)", entry_key, n or 0)

    def info(self, entry_key: str) -> EntryInfo | None:
        """Describe the stored shape of entry_key, or None when absent."""
        meta = self.store.get(entry_key)
        if meta is None:
            return None
        n = chunk_count(meta)
        if n is None:
            return EntryInfo(entry_key, parts=0, size=len(meta))
        size = len(meta)
        for i in range(n):
            part = self.store.get(part_key(entry_key, i))
            size += len(part) if part is not None else 0
        return EntryInfo(entry_key, parts=n, size=size)
