from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Any

import typer
from rich import print
from rich.markup import escape

from clipvault import __version__
from clipvault.store import ClipKind, ClipRecord, ExportFilter

from .common import format_timestamp, parse_since_or_exit

EXPORT_VERSION = "1.0"
EXPORT_FORMATS = ("json", "markdown")


def render_json(records: list[ClipRecord], filters: dict[str, Any], blob_path) -> str:
    items: list[dict[str, Any]] = []
    for record in records:
        data = record.to_dict()
        if record.blob_ref:
            data["blob_path"] = str(blob_path(record.blob_ref))
        items.append(data)
    export_data = {
        "version": EXPORT_VERSION,
        "exported_at": dt.datetime.now(dt.UTC).isoformat(),
        "export_metadata": {
            "tool_version": f"clipvault {__version__}",
            "total_items": len(items),
            "filters": filters,
        },
        "items": items,
    }
    return json.dumps(export_data, ensure_ascii=False, indent=2)


def render_markdown(records: list[ClipRecord], blob_path) -> str:
    now = dt.datetime.now().strftime("%Y-%m-%d %H:%M")
    parts = [f"# Clipboard Export ({now})\n\n"]
    for record in records:
        source = record.source_app_id or "unknown"
        parts.append(f"## {format_timestamp(record.created_at)} ({source})\n\n")
        if record.kind is ClipKind.IMAGE:
            parts.append(f"[Image] {blob_path(record.blob_ref)}\n\n")
            continue
        parts.append(f"```text\n{record.text_content or ''}\n```\n\n")
    return "".join(parts)


def export_cmd(
    *,
    store_from_path,
    db_path: str | None,
    output: str,
    fmt: str,
    last: int | None,
    since: str | None,
    pinned_only: bool,
    ids: list[int] | None,
    sources: list[str] | None,
) -> None:
    """Export clipboard history to a JSON or Markdown file."""

    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        print(f"[red]Unknown format: {escape(fmt)} (expected json or markdown)[/red]")
        raise typer.Exit(code=2)
    spec = ExportFilter(
        last_n=last,
        since=parse_since_or_exit(since),
        pinned_only=pinned_only,
        ids=ids or None,
        source_app_ids=sources or None,
    )
    filters: dict[str, Any] = {
        key: value
        for key, value in {
            "last_n": spec.last_n,
            "since": spec.since,
            "pinned_only": spec.pinned_only or None,
            "ids": list(spec.ids) if spec.ids else None,
            "source_app_ids": list(spec.source_app_ids) if spec.source_app_ids else None,
        }.items()
        if value is not None
    }

    store = store_from_path(db_path)
    try:
        records = store.fetch_for_export(spec)
        if not records:
            print("[yellow]No items to export[/yellow]")
            raise typer.Exit(code=0)
        if fmt == "json":
            content = render_json(records, filters, store.blob_path)
        else:
            content = render_markdown(records, store.blob_path)
    finally:
        store.close()

    if output == "-":
        typer.echo(content)
        return
    output_path = Path(output).expanduser()
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
    except OSError as exc:
        print(f"[red]Failed to write {escape(str(output_path))}: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    print(f"[green]Exported {len(records)} items to {escape(str(output_path))}[/green]")
