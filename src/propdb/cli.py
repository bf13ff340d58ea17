"""propdb CLI: inspect and edit a database from the shell.

Commands:
    propdb init [NAME]         create propdb.toml
    propdb set KEY VALUE       store VALUE (JSON, or a plain string)
    propdb get KEY             print the stored JSON value
    propdb delete KEY          remove a key and its chunk parts
    propdb clear               remove every key of the database
    propdb entries             dump key<TAB>value lines
    propdb repair              reconcile the pointer list with stored entries
    propdb stats               key / chunk / size summary
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click

from propdb.backend import open_store
from propdb.config import PropDBConfig, init_config, load_config
from propdb.database import Database, json_dumps
from propdb.errors import PropDBError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@dataclass
class _State:
    root: str | None
    name: str | None


def _load_cfg(state: _State) -> PropDBConfig:
    try:
        return load_config(state.root)
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _open_db(ctx: click.Context) -> Database[Any]:
    """Open the configured store and database; the store closes with ctx."""
    state: _State = ctx.obj
    cfg = _load_cfg(state)
    try:
        store = open_store(cfg)
    except PropDBError as exc:
        raise click.ClickException(str(exc)) from exc
    close = getattr(store, "close", None)
    if close is not None:
        ctx.call_on_close(close)
    try:
        return Database.from_config(cfg, store, name=state.name)
    except PropDBError as exc:
        raise click.ClickException(str(exc)) from exc


def _parse_value(raw: str) -> Any:
    """JSON if it parses, otherwise the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="propdb")
@click.option("--dir", "root", default=None, help="Project root (default: search upward for propdb.toml)")
@click.option("--db", "name", default=None, help="Database name (default: [propdb] name)")
@click.option("-v", "--verbose", is_flag=True, help="Log backend activity to stderr")
@click.pass_context
def cli(ctx: click.Context, root: str | None, name: str | None, verbose: bool) -> None:
    """propdb: chunked key-value databases on a flat property store."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(message)s")
    ctx.obj = _State(root=root, name=name)


# ---------------------------------------------------------------------------
# propdb init
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.pass_obj
def init(state: _State, name: str | None) -> None:
    """Create propdb.toml in the project root."""
    root_path = Path(state.root or ".").resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("propdb.toml already exists, skipping init")

    cfg = _load_cfg(_State(root=str(root_path), name=None))
    click.echo(f"Database : {cfg.name}")
    click.echo(f"Backend  : {cfg.storage.backend} ({cfg.storage.path})")


# ---------------------------------------------------------------------------
# propdb set / get / delete
# ---------------------------------------------------------------------------


@cli.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def set_cmd(ctx: click.Context, key: str, value: str) -> None:
    """Store VALUE under KEY."""
    db = _open_db(ctx)
    try:
        existed = db.set(key, _parse_value(value))
    except PropDBError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"{'Updated' if existed else 'Added'} {key}")


@cli.command("get")
@click.argument("key")
@click.pass_context
def get_cmd(ctx: click.Context, key: str) -> None:
    """Print the value stored under KEY as JSON."""
    db = _open_db(ctx)
    if not db.has(key):
        click.echo(f"No such key: {key}", err=True)
        ctx.exit(1)
    try:
        value = db.get(key)
    except PropDBError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(json.dumps(value, indent=2, ensure_ascii=False))


@cli.command("delete")
@click.argument("key")
@click.pass_context
def delete_cmd(ctx: click.Context, key: str) -> None:
    """Remove KEY and its chunk parts."""
    db = _open_db(ctx)
    if not db.has(key):
        click.echo(f"No such key: {key}")
        return
    db.delete(key)
    click.echo(f"Deleted {key}")


# ---------------------------------------------------------------------------
# propdb clear / entries
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear(ctx: click.Context, yes: bool) -> None:
    """Remove every key of the database."""
    db = _open_db(ctx)
    n = len(db)
    if not yes:
        click.confirm(f"Delete all {n} keys of {db.name}?", abort=True)
    db.clear()
    click.echo(f"Cleared {n} keys")


@cli.command()
@click.pass_context
def entries(ctx: click.Context) -> None:
    """Print one key<TAB>json line per entry."""
    db = _open_db(ctx)
    try:
        pairs = db.entries()
    except PropDBError as exc:
        raise click.ClickException(str(exc)) from exc
    for key, value in pairs:
        click.echo(f"{key}\t{json_dumps(value)}")


# ---------------------------------------------------------------------------
# propdb repair / stats
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def repair(ctx: click.Context) -> None:
    """Drop dangling pointers and delete orphaned entries."""
    db = _open_db(ctx)
    try:
        report = db.repair()
    except PropDBError as exc:
        raise click.ClickException(str(exc)) from exc
    if not report.changed:
        click.echo("Nothing to repair")
        return
    click.echo(f"Dangling pointers : {report.dangling_pointers}")
    click.echo(f"Duplicate pointers: {report.duplicate_pointers}")
    click.echo(f"Orphaned entries  : {report.orphaned_entries}")


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show key, chunk and size counts for the database."""
    from rich.console import Console
    from rich.table import Table

    db = _open_db(ctx)
    cfg = _load_cfg(ctx.obj)
    s = db.stats()

    table = Table(title=f"propdb: {db.name}", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Backend", f"{cfg.storage.backend}")
    table.add_row("Path", str(cfg.storage.path))
    table.add_row("Chunk size", str(cfg.chunks.max_chunk_size))
    table.add_row("", "")
    table.add_row("Keys", str(s.keys))
    table.add_row("Chunked keys", str(s.chunked))
    table.add_row("Chunk parts", str(s.parts))
    table.add_row("Stored chars", f"{s.chars:,}")

    Console().print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
