from __future__ import annotations

import logging
import os
from pathlib import Path

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__
from .commands.export_cmds import export_cmd
from .commands.history_cmds import (
    add_cmd,
    apps_cmd,
    blob_path_cmd,
    clear_cmd,
    delete_cmd,
    recent_cmd,
    search_cmd,
    set_pinned_cmd,
    show_cmd,
    toggle_pin_cmd,
)
from .commands.ignore_cmds import ignore_add_cmd, ignore_list_cmd, ignore_remove_cmd
from .commands.maintenance_cmds import (
    init_db_cmd,
    rebuild_index_cmd,
    stats_cmd,
    sweep_blobs_cmd,
)
from .config import load_config
from .db import DEFAULT_DB_PATH
from .errors import StorageUnavailable
from .store import ClipStore

app = typer.Typer(help="clipvault: persistent clipboard history")
db_app = typer.Typer(help="Database maintenance")
ignore_app = typer.Typer(help="Manage ignored source applications")
app.add_typer(db_app, name="db")
app.add_typer(ignore_app, name="ignore")

DB_PATH_HELP = "Path to SQLite database"


def _store(db_path: str | None) -> ClipStore:
    cfg = load_config()
    store = ClipStore(
        db_path or cfg.db_path or DEFAULT_DB_PATH,
        blob_dir=cfg.blob_dir,
        full_text=cfg.full_text_enabled,
    )
    try:
        store.open()
    except StorageUnavailable as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    return store


def _configure_logging(level_name: str) -> None:
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    root = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    root.setLevel(level)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        os.getenv("CLIPVAULT_LOG_LEVEL", "WARNING"),
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    _configure_logging(log_level)


@app.command("init-db")
def init_db(db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Create the SQLite database (no-op if it already exists)."""

    init_db_cmd(store_from_path=_store, db_path=db_path)


@app.command()
def stats(db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Show database and image store statistics."""

    stats_cmd(store_from_path=_store, db_path=db_path)


@app.command()
def recent(
    limit: int = typer.Option(20, help="Max results"),
    offset: int = typer.Option(0, help="Skip this many items"),
    kind: str | None = typer.Option(None, help="Filter by kind (text or image)"),
    source: str | None = typer.Option(None, help="Filter by source application id"),
    since: str | None = typer.Option(None, help="Only items at or after (epoch or ISO 8601)"),
    pinned_only: bool = typer.Option(False, "--pinned", help="Only pinned items"),
    unpinned_only: bool = typer.Option(False, "--unpinned", help="Only unpinned items"),
    newest_first: bool = typer.Option(False, help="Ignore pin state when ordering"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Show recent clipboard items."""

    recent_cmd(
        store_from_path=_store,
        db_path=db_path,
        limit=limit,
        offset=offset,
        kind=kind,
        source=source,
        since=since,
        pinned_only=pinned_only,
        unpinned_only=unpinned_only,
        newest_first=newest_first,
    )


@app.command()
def search(
    query: str,
    limit: int = typer.Option(20, help="Max results"),
    offset: int = typer.Option(0, help="Skip this many matches"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Search text items."""

    search_cmd(store_from_path=_store, db_path=db_path, query=query, limit=limit, offset=offset)


@app.command()
def show(record_id: int, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Print a clipboard item as JSON."""

    show_cmd(store_from_path=_store, db_path=db_path, record_id=record_id)


@app.command()
def add(
    text: str | None = typer.Argument(None, help="Text to store"),
    image: Path | None = typer.Option(None, help="Image file to store"),
    source: str | None = typer.Option(None, help="Source application id"),
    read_stdin: bool = typer.Option(False, "--stdin", help="Read text from stdin"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Capture text or an image as if it had been copied."""

    add_cmd(
        store_from_path=_store,
        load_config=load_config,
        db_path=db_path,
        text=text,
        image=image,
        source=source,
        read_stdin=read_stdin,
    )


@app.command()
def pin(record_id: int, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Pin an item so eviction never removes it."""

    set_pinned_cmd(store_from_path=_store, db_path=db_path, record_id=record_id, pinned=True)


@app.command()
def unpin(record_id: int, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Unpin an item."""

    set_pinned_cmd(store_from_path=_store, db_path=db_path, record_id=record_id, pinned=False)


@app.command("toggle-pin")
def toggle_pin(record_id: int, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Flip the pin state of an item."""

    toggle_pin_cmd(store_from_path=_store, db_path=db_path, record_id=record_id)


@app.command()
def delete(record_id: int, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Delete an item and its image file."""

    delete_cmd(store_from_path=_store, db_path=db_path, record_id=record_id)


@app.command()
def clear(
    include_pinned: bool = typer.Option(False, "--all", help="Also delete pinned items"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Delete clipboard history."""

    clear_cmd(store_from_path=_store, db_path=db_path, include_pinned=include_pinned, yes=yes)


@app.command()
def export(
    output: str = typer.Argument(..., help="Output file path (use '-' for stdout)"),
    fmt: str = typer.Option("json", "--format", help="json or markdown"),
    last: int | None = typer.Option(None, help="Only the newest N items"),
    since: str | None = typer.Option(None, help="Only items at or after (epoch or ISO 8601)"),
    pinned_only: bool = typer.Option(False, help="Only pinned items"),
    ids: list[int] | None = typer.Option(None, "--id", help="Repeat for multiple item ids"),
    sources: list[str] | None = typer.Option(
        None, "--source", help="Repeat for multiple source application ids"
    ),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Export clipboard history to JSON or Markdown."""

    export_cmd(
        store_from_path=_store,
        db_path=db_path,
        output=output,
        fmt=fmt,
        last=last,
        since=since,
        pinned_only=pinned_only,
        ids=ids,
        sources=sources,
    )


@app.command()
def apps(db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """List source applications seen in history."""

    apps_cmd(store_from_path=_store, db_path=db_path)


@app.command("blob-path")
def blob_path(ref: str, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Print the file path for an image reference."""

    blob_path_cmd(store_from_path=_store, db_path=db_path, ref=ref)


@db_app.command("rebuild-index")
def db_rebuild_index(db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Rebuild the full-text index."""

    rebuild_index_cmd(store_from_path=_store, db_path=db_path)


@db_app.command("sweep-blobs")
def db_sweep_blobs(
    min_age_s: float = typer.Option(3600, help="Leave files younger than this many seconds"),
    dry_run: bool = typer.Option(False, help="Report without deleting"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Remove image files no item references."""

    sweep_blobs_cmd(
        store_from_path=_store, db_path=db_path, min_age_s=min_age_s, dry_run=dry_run
    )


@ignore_app.command("list")
def ignore_list() -> None:
    """Show ignored source applications."""

    ignore_list_cmd()


@ignore_app.command("add")
def ignore_add(source_id: str) -> None:
    """Never store copies from this source application."""

    ignore_add_cmd(source_id=source_id)


@ignore_app.command("remove")
def ignore_remove(source_id: str) -> None:
    """Stop ignoring a source application."""

    ignore_remove_cmd(source_id=source_id)


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)
