from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest
from conftest import requires_fts5

from clipvault import db
from clipvault.store import ClipKind, ClipStore


def _names(conn: sqlite3.Connection, object_type: str) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = ?", (object_type,))
    return {row[0] for row in rows}


def test_initialize_schema_sets_user_version(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "clips.sqlite")
    try:
        db.initialize_schema(conn)
        assert db.get_schema_version(conn) == db.SCHEMA_VERSION
        journal = conn.execute("PRAGMA journal_mode").fetchone()[0]
    finally:
        conn.close()

    assert journal.lower() == "wal"


def test_v1_database_is_migrated_forward(monkeypatch, tmp_path: Path) -> None:
    path = tmp_path / "clips.sqlite"
    conn = db.connect(path)
    try:
        all_steps = db.MIGRATIONS
        monkeypatch.setattr(db, "MIGRATIONS", all_steps[:1])
        assert db.migrate(conn) == 1
        conn.execute(
            """
            INSERT INTO items(created_at, kind, text_content, content_hash, byte_size)
            VALUES (1, 'text', 'legacy row', 'abc', 10)
            """
        )
        conn.commit()
        assert "idx_items_pinned_created" not in _names(conn, "index")
        monkeypatch.setattr(db, "MIGRATIONS", all_steps)

        db.initialize_schema(conn, full_text=False)

        assert db.get_schema_version(conn) == 2
        indexes = _names(conn, "index")
        assert {"idx_items_pinned_created", "idx_items_source"} <= indexes
        text = conn.execute("SELECT text_content FROM items").fetchone()[0]
    finally:
        conn.close()

    assert text == "legacy row"


def test_failed_migration_keeps_previous_version(monkeypatch, tmp_path: Path) -> None:
    def broken(conn: sqlite3.Connection) -> None:
        conn.execute("CREATE INDEX idx_half_done ON items(kind)")
        raise sqlite3.OperationalError("boom")

    monkeypatch.setattr(db, "MIGRATIONS", [(1, db._migrate_v1), (2, broken)])
    conn = db.connect(tmp_path / "clips.sqlite")
    try:
        with pytest.raises(sqlite3.OperationalError):
            db.migrate(conn)
        assert db.get_schema_version(conn) == 1
        assert "idx_half_done" not in _names(conn, "index")
    finally:
        conn.close()


def test_current_schema_skips_migrations(monkeypatch, tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "clips.sqlite")
    try:
        db.initialize_schema(conn)

        def unexpected(_conn: sqlite3.Connection) -> None:
            raise AssertionError("migration should not rerun at current version")

        monkeypatch.setattr(db, "MIGRATIONS", [(1, unexpected), (2, unexpected)])
        assert db.migrate(conn) == db.SCHEMA_VERSION
    finally:
        conn.close()


def test_unavailable_full_text_drops_triggers(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "clips.sqlite")
    try:
        db.migrate(conn)
        assert db.ensure_full_text_index(conn, False) is False
        assert not {"items_ai", "items_ad", "items_au"} & _names(conn, "trigger")
        conn.execute(
            """
            INSERT INTO items(created_at, kind, text_content, content_hash, byte_size)
            VALUES (1, 'text', 'still insertable', 'h', 16)
            """
        )
        conn.commit()
    finally:
        conn.close()


@requires_fts5
def test_full_text_index_rebuilt_after_fallback_session(tmp_path: Path) -> None:
    path = tmp_path / "clips.sqlite"

    def add(store: ClipStore, text: str) -> int:
        return store.insert(
            ClipKind.TEXT, text_content=text, content_hash=text, byte_size=len(text)
        )

    with ClipStore(path) as store:
        first = add(store, "indexed normally")
    with ClipStore(path, full_text=False) as store:
        second = add(store, "written without triggers")
        assert [r.id for r in store.search("triggers", 10)] == [second]
    with ClipStore(path) as store:
        assert store.is_full_text_available()
        assert [r.id for r in store.search("triggers", 10)] == [second]
        assert [r.id for r in store.search("indexed", 10)] == [first]
        assert store.rebuild_full_text_index() is True


def test_rebuild_index_reports_fallback(tmp_path: Path) -> None:
    with ClipStore(tmp_path / "clips.sqlite", full_text=False) as store:
        assert store.rebuild_full_text_index() is False
