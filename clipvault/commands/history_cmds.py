from __future__ import annotations

import json
import sys
from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from clipvault.ingest import CapturedPayload, IngestPipeline, SkipReason
from clipvault.store import ClipKind, OrderPolicy, RecordFilter

from .common import format_record, parse_since_or_exit


def recent_cmd(
    *,
    store_from_path,
    db_path: str | None,
    limit: int,
    offset: int,
    kind: str | None,
    source: str | None,
    since: str | None,
    pinned_only: bool,
    unpinned_only: bool,
    newest_first: bool,
) -> None:
    """Show a page of clipboard history."""

    if pinned_only and unpinned_only:
        print("[red]Use --pinned or --unpinned, not both[/red]")
        raise typer.Exit(code=2)
    pinned = True if pinned_only else (False if unpinned_only else None)
    try:
        kind_filter = ClipKind(kind) if kind else None
    except ValueError as exc:
        print(f"[red]Unknown kind: {escape(kind or '')} (expected text or image)[/red]")
        raise typer.Exit(code=2) from exc
    filters = RecordFilter(
        kind=kind_filter,
        source_app_id=source,
        since=parse_since_or_exit(since),
        pinned=pinned,
    )
    order = OrderPolicy.NEWEST_FIRST if newest_first else OrderPolicy.PINNED_FIRST
    store = store_from_path(db_path)
    try:
        records = store.fetch_page(limit, offset, order=order, filters=filters)
    finally:
        store.close()
    if not records:
        print("[yellow]No clipboard items[/yellow]")
        return
    for record in records:
        print(format_record(record))


def search_cmd(
    *, store_from_path, db_path: str | None, query: str, limit: int, offset: int
) -> None:
    """Search text items."""

    store = store_from_path(db_path)
    try:
        records = store.search(query, limit, offset)
    finally:
        store.close()
    if not records:
        print(f"[yellow]No matches for '{escape(query)}'[/yellow]")
        return
    for record in records:
        print(format_record(record))


def show_cmd(*, store_from_path, db_path: str | None, record_id: int) -> None:
    """Print a clipboard item as JSON."""

    store = store_from_path(db_path)
    try:
        record = store.fetch_item(record_id)
        if record is None:
            print(f"[red]Item {record_id} not found[/red]")
            raise typer.Exit(code=1)
        data = record.to_dict()
        if record.blob_ref:
            data["blob_path"] = str(store.blob_path(record.blob_ref))
    finally:
        store.close()
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def add_cmd(
    *,
    store_from_path,
    load_config,
    db_path: str | None,
    text: str | None,
    image: Path | None,
    source: str | None,
    read_stdin: bool,
) -> None:
    """Capture text or an image file through the ingest pipeline."""

    if image is not None and (text is not None or read_stdin):
        print("[red]Pass either text or --image, not both[/red]")
        raise typer.Exit(code=2)
    if image is not None:
        try:
            payload = CapturedPayload(
                kind=ClipKind.IMAGE, raw_bytes=image.read_bytes(), source_app_id=source
            )
        except OSError as exc:
            print(f"[red]Cannot read {escape(str(image))}: {exc}[/red]")
            raise typer.Exit(code=1) from exc
    else:
        if read_stdin:
            text = sys.stdin.read()
        if text is None:
            print("[red]Nothing to add: pass text, --stdin or --image[/red]")
            raise typer.Exit(code=2)
        payload = CapturedPayload(kind=ClipKind.TEXT, text_content=text, source_app_id=source)

    store = store_from_path(db_path)
    try:
        result = IngestPipeline(store, load_config()).ingest(payload)
    finally:
        store.close()
    if result.stored:
        print(f"Stored item {result.record_id}")
        return
    print(f"[yellow]Skipped ({result.skipped})[/yellow]")
    if result.skipped is SkipReason.FAILED:
        raise typer.Exit(code=1)


def set_pinned_cmd(
    *, store_from_path, db_path: str | None, record_id: int, pinned: bool
) -> None:
    store = store_from_path(db_path)
    try:
        found = store.set_pinned(record_id, pinned)
    finally:
        store.close()
    if not found:
        print(f"[red]Item {record_id} not found[/red]")
        raise typer.Exit(code=1)
    print(f"Item {record_id} {'pinned' if pinned else 'unpinned'}")


def toggle_pin_cmd(*, store_from_path, db_path: str | None, record_id: int) -> None:
    store = store_from_path(db_path)
    try:
        state = store.toggle_pinned(record_id)
    finally:
        store.close()
    if state is None:
        print(f"[red]Item {record_id} not found[/red]")
        raise typer.Exit(code=1)
    print(f"Item {record_id} {'pinned' if state else 'unpinned'}")


def delete_cmd(*, store_from_path, db_path: str | None, record_id: int) -> None:
    """Delete a clipboard item and its image file."""

    store = store_from_path(db_path)
    try:
        found = store.delete(record_id)
    finally:
        store.close()
    if not found:
        print(f"[yellow]Item {record_id} not found[/yellow]")
        return
    print(f"Deleted item {record_id}")


def clear_cmd(
    *, store_from_path, db_path: str | None, include_pinned: bool, yes: bool
) -> None:
    """Delete clipboard history (pinned items survive unless --all)."""

    scope = "all items" if include_pinned else "all unpinned items"
    if not yes and not typer.confirm(f"Delete {scope}?"):
        raise typer.Exit(code=1)
    store = store_from_path(db_path)
    try:
        removed = store.clear_all(keep_pinned=not include_pinned)
    finally:
        store.close()
    print(f"Deleted {removed} items")


def apps_cmd(*, store_from_path, db_path: str | None) -> None:
    """List source applications seen in history."""

    store = store_from_path(db_path)
    try:
        sources = store.unique_sources()
    finally:
        store.close()
    if not sources:
        print("[yellow]No source applications recorded[/yellow]")
        return
    for source in sources:
        print(escape(source))


def blob_path_cmd(*, store_from_path, db_path: str | None, ref: str) -> None:
    store = store_from_path(db_path)
    try:
        try:
            path = store.blob_path(ref)
        except ValueError as exc:
            print(f"[red]{escape(str(exc))}[/red]")
            raise typer.Exit(code=2) from exc
    finally:
        store.close()
    typer.echo(str(path))
