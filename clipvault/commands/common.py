from __future__ import annotations

import datetime as dt
from typing import Any

import typer
from rich import print
from rich.markup import escape

from clipvault.config import read_config_file, write_config_file
from clipvault.store import ClipRecord
from clipvault.store.utils import parse_timestamp


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def write_config_or_exit(data: dict[str, Any]) -> None:
    try:
        write_config_file(data)
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def parse_since_or_exit(value: str | None) -> int | None:
    if value is None:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        print(f"[red]Invalid timestamp: {escape(value)}[/red]")
        raise typer.Exit(code=2)
    return parsed


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / 1024 / 1024:.1f} MB"
    return f"{size / 1024 / 1024 / 1024:.1f} GB"


def format_timestamp(epoch: int) -> str:
    return dt.datetime.fromtimestamp(epoch, tz=dt.UTC).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def format_record(record: ClipRecord) -> str:
    pin = "[yellow]*[/yellow] " if record.pinned else ""
    source = f" {escape(record.source_app_name)}" if record.source_app_name else ""
    return (
        f"{pin}[{record.id}] ({record.kind.value}){source} "
        f"[dim]{format_timestamp(record.created_at)} · {format_bytes(record.byte_size)}[/dim]\n"
        f"{escape(record.preview)}\n"
    )
