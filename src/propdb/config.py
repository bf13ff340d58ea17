"""PropDBConfig: project-local settings for the propdb CLI.

Default layout (relative to the project root):

    propdb.toml           # project config
    .env                  # optional: PROPDB_BACKEND, PROPDB_PATH
    .propdb/
        store.db          # SQLite backend file (default)

propdb.toml example:

    [propdb]
    name = "world"

    [storage]
    backend = "sqlite"          # sqlite | diskcache | memory
    path = ".propdb/store.db"   # file for sqlite, directory for diskcache
    max_entry_size = 32767

    [chunks]
    max_chunk_size = 30000
    strict = false
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from propdb.errors import ConfigError

_CONFIG_FILENAME = "propdb.toml"
_DEFAULT_NAME = "world"
_DEFAULT_BACKEND = "sqlite"
_DEFAULT_PATHS = {
    "sqlite": ".propdb/store.db",
    "diskcache": ".propdb/cache",
    "memory": "",
}

# Host property stores cap a single string value at 32767 chars; chunks stay
# comfortably below that.
DEFAULT_MAX_ENTRY_SIZE = 32767
DEFAULT_MAX_CHUNK_SIZE = 30000


@dataclass
class StorageConfig:
    backend: str = _DEFAULT_BACKEND
    path: Path = field(default_factory=Path)
    max_entry_size: int = DEFAULT_MAX_ENTRY_SIZE


@dataclass
class ChunkConfig:
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE
    strict: bool = False              # raise on missing chunk parts instead of reading ""


@dataclass
class PropDBConfig:
    """Resolved configuration for a propdb project."""

    root: Path                        # directory that contains propdb.toml
    name: str = _DEFAULT_NAME         # default database name
    storage: StorageConfig = field(default_factory=StorageConfig)
    chunks: ChunkConfig = field(default_factory=ChunkConfig)

    @property
    def config_path(self) -> Path:
        return self.root / _CONFIG_FILENAME

    def validate(self) -> None:
        """Raise ConfigError when chunks would not fit the backend."""
        size = self.chunks.max_chunk_size
        if size <= 0:
            msg = f"chunks.max_chunk_size must be positive, got {size}"
            raise ConfigError(msg)
        if size > self.storage.max_entry_size:
            msg = (
                f"chunks.max_chunk_size ({size}) exceeds "
                f"storage.max_entry_size ({self.storage.max_entry_size})"
            )
            raise ConfigError(msg)


def _load_env(root: Path) -> dict[str, str]:
    """Parse a simple KEY=VALUE .env file (no external dependency)."""
    env_file = root / ".env"
    if not env_file.exists():
        return {}
    env: dict[str, str] = {}
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            env[k.strip()] = v.strip().strip('"').strip("'")
    return env


def load_config(root: Path | str | None = None) -> PropDBConfig:
    """Load propdb.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    # .env overrides propdb.toml for the storage location
    env = _load_env(root_path)

    db_section = raw.get("propdb", {})
    st_section = raw.get("storage", {})
    ch_section = raw.get("chunks", {})

    strict = ch_section.get("strict", False)
    if not isinstance(strict, bool):
        msg = f"chunks.strict must be true or false, got {strict!r}"
        raise ConfigError(msg)

    backend = env.get("PROPDB_BACKEND") or str(st_section.get("backend", _DEFAULT_BACKEND))
    path_rel = env.get("PROPDB_PATH") or str(st_section.get("path", _DEFAULT_PATHS.get(backend, "")))

    cfg = PropDBConfig(
        root=root_path,
        name=str(db_section.get("name", _DEFAULT_NAME)),
        storage=StorageConfig(
            backend=backend,
            path=root_path / path_rel,
            max_entry_size=int(st_section.get("max_entry_size", DEFAULT_MAX_ENTRY_SIZE)),
        ),
        chunks=ChunkConfig(
            max_chunk_size=int(ch_section.get("max_chunk_size", DEFAULT_MAX_CHUNK_SIZE)),
            strict=strict,
        ),
    )
    cfg.validate()
    return cfg


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for propdb.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default propdb.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"propdb.toml already exists at {config_path}"
        raise FileExistsError(msg)

    db_name = name or _DEFAULT_NAME
    content = f"""\
[propdb]
name = "{db_name}"

[storage]
backend = "sqlite"            # sqlite | diskcache | memory; or set PROPDB_BACKEND in .env
# path = ".propdb/store.db"   # default; or set PROPDB_PATH in .env
# max_entry_size = {DEFAULT_MAX_ENTRY_SIZE}

# [chunks]
# max_chunk_size = {DEFAULT_MAX_CHUNK_SIZE}   # must not exceed max_entry_size
# strict = false              # raise when a chunk part is missing
"""
    config_path.write_text(content)
    return config_path
