from __future__ import annotations

from rich import print
from rich.markup import escape

from .common import read_config_or_exit, write_config_or_exit


def _ignored(config_data: dict) -> list[str]:
    value = config_data.get("ignored_source_ids") or []
    if isinstance(value, str):
        value = [p.strip() for p in value.split(",")]
    return [str(v) for v in value if str(v).strip()]


def ignore_list_cmd() -> None:
    """Show source applications whose copies are never stored."""

    ignored = _ignored(read_config_or_exit())
    if not ignored:
        print("[yellow]Ignore list is empty[/yellow]")
        return
    for source in ignored:
        print(escape(source))


def ignore_add_cmd(*, source_id: str) -> None:
    config_data = read_config_or_exit()
    ignored = _ignored(config_data)
    if source_id in ignored:
        print(f"{escape(source_id)} already ignored")
        return
    ignored.append(source_id)
    config_data["ignored_source_ids"] = ignored
    write_config_or_exit(config_data)
    print(f"Ignoring {escape(source_id)}")


def ignore_remove_cmd(*, source_id: str) -> None:
    config_data = read_config_or_exit()
    ignored = _ignored(config_data)
    if source_id not in ignored:
        print(f"[yellow]{escape(source_id)} is not ignored[/yellow]")
        return
    config_data["ignored_source_ids"] = [s for s in ignored if s != source_id]
    write_config_or_exit(config_data)
    print(f"No longer ignoring {escape(source_id)}")
