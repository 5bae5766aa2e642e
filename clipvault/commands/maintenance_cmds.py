from __future__ import annotations

from rich import print

from .common import format_bytes


def init_db_cmd(*, store_from_path, db_path: str | None) -> None:
    """Create the SQLite database (no-op if it already exists)."""

    store = store_from_path(db_path)
    try:
        version = store.schema_version()
    finally:
        store.close()
    print(f"Initialized database at {store.db_path} (schema v{version})")


def stats_cmd(*, store_from_path, db_path: str | None) -> None:
    store = store_from_path(db_path)
    try:
        stats_data = store.stats()
    finally:
        store.close()

    print("[bold]Database[/bold]")
    print(f"- Path: {stats_data['path']}")
    print(f"- Size: {format_bytes(int(stats_data['database_bytes']))}")
    print(f"- Schema version: {stats_data['schema_version']}")
    print(f"- Full-text search: {'fts5' if stats_data['full_text'] else 'substring fallback'}")

    print("\n[bold]History[/bold]")
    print(f"- Items: {stats_data['items']} (pinned {stats_data['pinned']})")
    print(f"- Source apps: {stats_data['sources']}")

    print("\n[bold]Images[/bold]")
    print(f"- Directory: {stats_data['blob_dir']}")
    print(f"- Size: {format_bytes(int(stats_data['blob_bytes']))}")


def rebuild_index_cmd(*, store_from_path, db_path: str | None) -> None:
    """Rebuild the full-text index from stored text."""

    store = store_from_path(db_path)
    try:
        rebuilt = store.rebuild_full_text_index()
    finally:
        store.close()
    if not rebuilt:
        print("[yellow]FTS5 unavailable; search uses substring fallback[/yellow]")
        return
    print("Full-text index rebuilt")


def sweep_blobs_cmd(
    *, store_from_path, db_path: str | None, min_age_s: float, dry_run: bool
) -> None:
    """Remove image files that no history item references."""

    store = store_from_path(db_path)
    try:
        removed = store.sweep_orphan_blobs(min_age_s=min_age_s, dry_run=dry_run)
    finally:
        store.close()
    action = "Would remove" if dry_run else "Removed"
    print(f"{action} {len(removed)} orphan image files")
