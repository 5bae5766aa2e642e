from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path

DEFAULT_DATA_DIR = Path.home() / ".clipvault"
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "clipvault.sqlite"
BLOB_DIR_NAME = "images"

SCHEMA_VERSION = 2

logger = logging.getLogger(__name__)


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


def fts5_available(conn: sqlite3.Connection) -> bool:
    try:
        conn.execute("CREATE VIRTUAL TABLE IF NOT EXISTS temp._fts5_probe USING fts5(c)")
        conn.execute("DROP TABLE IF EXISTS temp._fts5_probe")
    except sqlite3.Error:
        return False
    return True


def get_schema_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("PRAGMA user_version").fetchone()
    return int(row[0]) if row else 0


def _migrate_v1(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at INTEGER NOT NULL,
            kind TEXT NOT NULL,
            text_content TEXT,
            blob_ref TEXT,
            source_app_id TEXT,
            content_hash TEXT NOT NULL,
            pinned INTEGER NOT NULL DEFAULT 0,
            protected INTEGER NOT NULL DEFAULT 0,
            byte_size INTEGER NOT NULL
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_items_created_at ON items(created_at DESC)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_items_content_hash ON items(content_hash)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_items_pinned ON items(pinned)")


def _migrate_v2(conn: sqlite3.Connection) -> None:
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_items_pinned_created ON items(pinned, created_at, id)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_items_source ON items(source_app_id)")


MIGRATIONS: list[tuple[int, Callable[[sqlite3.Connection], None]]] = [
    (1, _migrate_v1),
    (2, _migrate_v2),
]


def migrate(conn: sqlite3.Connection) -> int:
    """Run pending forward migrations; returns the resulting schema version.

    Each step runs in its own transaction and bumps ``user_version`` inside it,
    so a failed step leaves the database at the previous version.
    """
    current = get_schema_version(conn)
    for version, step in MIGRATIONS:
        if version <= current:
            continue
        logger.info("migrating schema to version %s", version)
        conn.execute("BEGIN")
        try:
            step(conn)
            conn.execute(f"PRAGMA user_version = {int(version)}")
        except Exception:
            conn.rollback()
            raise
        conn.commit()
        current = version
    return current


_FTS_TRIGGERS = {
    "items_ai": """
        CREATE TRIGGER items_ai AFTER INSERT ON items BEGIN
            INSERT INTO items_fts(rowid, text_content) VALUES (new.id, new.text_content);
        END
    """,
    "items_ad": """
        CREATE TRIGGER items_ad AFTER DELETE ON items BEGIN
            INSERT INTO items_fts(items_fts, rowid, text_content)
            VALUES('delete', old.id, old.text_content);
        END
    """,
    "items_au": """
        CREATE TRIGGER items_au AFTER UPDATE OF text_content ON items BEGIN
            INSERT INTO items_fts(items_fts, rowid, text_content)
            VALUES('delete', old.id, old.text_content);
            INSERT INTO items_fts(rowid, text_content) VALUES (new.id, new.text_content);
        END
    """,
}


def _object_names(conn: sqlite3.Connection, object_type: str) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = ?", (object_type,)).fetchall()
    return {str(row[0]) for row in rows}


def ensure_full_text_index(conn: sqlite3.Connection, available: bool) -> bool:
    """Bring the FTS mirror of ``items.text_content`` in line with the runtime.

    With FTS5 present the virtual table and its sync triggers are created when
    missing and the index is rebuilt from the base table. Without FTS5 the
    triggers are dropped so inserts keep working; a later open with FTS5
    rebuilds the stale index. Returns whether search can use the index.
    """
    if not available:
        for name in _FTS_TRIGGERS:
            conn.execute(f"DROP TRIGGER IF EXISTS {name}")
        conn.commit()
        return False

    tables = _object_names(conn, "table")
    triggers = _object_names(conn, "trigger")
    needs_rebuild = "items_fts" not in tables or not set(_FTS_TRIGGERS) <= triggers
    if not needs_rebuild:
        return True

    conn.execute("BEGIN")
    try:
        conn.execute(
            """
            CREATE VIRTUAL TABLE IF NOT EXISTS items_fts USING fts5(
                text_content,
                content='items',
                content_rowid='id'
            )
            """
        )
        for name, sql in _FTS_TRIGGERS.items():
            conn.execute(f"DROP TRIGGER IF EXISTS {name}")
            conn.execute(sql)
        conn.execute("INSERT INTO items_fts(items_fts) VALUES('rebuild')")
    except Exception:
        conn.rollback()
        raise
    conn.commit()
    logger.info("full-text index rebuilt")
    return True


def rebuild_full_text_index(conn: sqlite3.Connection) -> None:
    conn.execute("INSERT INTO items_fts(items_fts) VALUES('rebuild')")
    conn.commit()


def initialize_schema(conn: sqlite3.Connection, *, full_text: bool = True) -> bool:
    migrate(conn)
    return ensure_full_text_index(conn, full_text and fts5_available(conn))
