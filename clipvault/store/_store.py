from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .. import db
from ..blobs import BlobStore
from ..errors import QueryFailed, StorageUnavailable, WriteFailed
from . import search as store_search
from .types import ClipKind, ClipRecord, ExportFilter, OrderPolicy, RecordFilter
from .utils import ITEM_COLUMNS, placeholders

logger = logging.getLogger(__name__)


class ClipStore:
    """Clipboard history persisted in SQLite plus a sibling blob directory.

    Every public operation holds ``self._lock`` for its full duration, so the
    store behaves as a single serialized owner of the connection no matter
    how many threads call into it.
    """

    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        blob_dir: Path | str | None = None,
        full_text: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = Path(db_path).expanduser()
        self.blobs = BlobStore(blob_dir or self.db_path.parent / db.BLOB_DIR_NAME)
        self._full_text_requested = full_text
        self._full_text_available = False
        self._clock = clock
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> ClipStore:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # lifecycle

    def open(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            conn: sqlite3.Connection | None = None
            try:
                self.blobs.ensure()
                conn = db.connect(self.db_path, check_same_thread=False)
                self._full_text_available = db.initialize_schema(
                    conn, full_text=self._full_text_requested
                )
            except (OSError, sqlite3.Error) as exc:
                if conn is not None:
                    conn.close()
                raise StorageUnavailable(f"cannot open {self.db_path}: {exc}") from exc
            self._conn = conn
            logger.debug(
                "store opened",
                extra={"db_path": str(self.db_path), "fts": self._full_text_available},
            )

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            finally:
                self._conn = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageUnavailable("store is not open")
        return self._conn

    @contextmanager
    def _reading(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self.conn
            try:
                yield conn
            except sqlite3.Error as exc:
                raise QueryFailed(str(exc)) from exc

    @contextmanager
    def _writing(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self.conn
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise WriteFailed(str(exc)) from exc

    # writes

    def insert(
        self,
        kind: ClipKind | str,
        *,
        text_content: str | None = None,
        blob_data: bytes | None = None,
        source_app_id: str | None = None,
        content_hash: str,
        byte_size: int,
    ) -> int:
        kind = ClipKind(kind)
        if kind is ClipKind.TEXT and (text_content is None or blob_data is not None):
            raise ValueError("text records need text_content and no blob data")
        if kind is ClipKind.IMAGE and (blob_data is None or text_content is not None):
            raise ValueError("image records need blob data and no text_content")

        with self._lock:
            conn = self.conn
            blob_ref = self.blobs.write(blob_data) if blob_data is not None else None
            try:
                cur = conn.execute(
                    """
                    INSERT INTO items(
                        created_at, kind, text_content, blob_ref, source_app_id,
                        content_hash, pinned, protected, byte_size
                    )
                    VALUES (?, ?, ?, ?, ?, ?, 0, 0, ?)
                    """,
                    (
                        int(self._clock()),
                        kind.value,
                        text_content,
                        blob_ref,
                        source_app_id,
                        content_hash,
                        int(byte_size),
                    ),
                )
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                if blob_ref is not None:
                    logger.warning(
                        "row insert failed; blob left for sweep", extra={"blob_ref": blob_ref}
                    )
                raise WriteFailed(f"insert failed: {exc}") from exc
            return int(cur.lastrowid)

    def delete(self, record_id: int) -> bool:
        with self._lock:
            with self._writing() as conn:
                row = conn.execute(
                    "SELECT blob_ref FROM items WHERE id = ?", (record_id,)
                ).fetchone()
                if row is None:
                    return False
                conn.execute("DELETE FROM items WHERE id = ?", (record_id,))
            # The row is gone either way; a leftover file is reaped by sweep_orphan_blobs.
            if row["blob_ref"]:
                self.blobs.delete(row["blob_ref"])
            return True

    def set_pinned(self, record_id: int, value: bool) -> bool:
        with self._writing() as conn:
            cur = conn.execute(
                "UPDATE items SET pinned = ? WHERE id = ?", (1 if value else 0, record_id)
            )
            return cur.rowcount > 0

    def toggle_pinned(self, record_id: int) -> bool | None:
        with self._writing() as conn:
            cur = conn.execute("UPDATE items SET pinned = NOT pinned WHERE id = ?", (record_id,))
            if cur.rowcount == 0:
                return None
            row = conn.execute("SELECT pinned FROM items WHERE id = ?", (record_id,)).fetchone()
            return bool(row["pinned"])

    def set_protected(self, record_id: int, value: bool) -> bool:
        with self._writing() as conn:
            cur = conn.execute(
                "UPDATE items SET protected = ? WHERE id = ?", (1 if value else 0, record_id)
            )
            return cur.rowcount > 0

    def evict(self, limit: int) -> int:
        """Delete the oldest unpinned records until at most ``limit`` remain."""
        limit = max(0, int(limit))
        with self._lock:
            with self._writing() as conn:
                unpinned = int(
                    conn.execute("SELECT COUNT(*) FROM items WHERE pinned = 0").fetchone()[0]
                )
                excess = unpinned - limit
                if excess <= 0:
                    return 0
                rows = conn.execute(
                    """
                    SELECT id, blob_ref FROM items
                    WHERE pinned = 0
                    ORDER BY created_at ASC, id ASC
                    LIMIT ?
                    """,
                    (excess,),
                ).fetchall()
                ids = [int(row["id"]) for row in rows]
                blob_refs = [row["blob_ref"] for row in rows if row["blob_ref"]]
                conn.execute(f"DELETE FROM items WHERE id IN ({placeholders(len(ids))})", ids)
            self.blobs.delete_many(blob_refs)
            logger.debug("evicted %s records", len(ids))
            return len(ids)

    def clear_all(self, keep_pinned: bool = True) -> int:
        scope = "pinned = 0" if keep_pinned else "1 = 1"
        with self._lock:
            with self._writing() as conn:
                rows = conn.execute(
                    f"SELECT id, blob_ref FROM items WHERE {scope}"
                ).fetchall()
                conn.execute(f"DELETE FROM items WHERE {scope}")
            self.blobs.delete_many(row["blob_ref"] for row in rows if row["blob_ref"])
            return len(rows)

    # reads

    def exists(self, content_hash: str) -> bool:
        with self._reading() as conn:
            row = conn.execute(
                "SELECT 1 FROM items WHERE content_hash = ? LIMIT 1", (content_hash,)
            ).fetchone()
            return row is not None

    def fetch_item(self, record_id: int) -> ClipRecord | None:
        with self._reading() as conn:
            row = conn.execute(
                f"SELECT {ITEM_COLUMNS} FROM items WHERE id = ?", (record_id,)
            ).fetchone()
            return ClipRecord.from_row(row) if row else None

    def fetch_page(
        self,
        limit: int,
        offset: int = 0,
        order: OrderPolicy = OrderPolicy.PINNED_FIRST,
        filters: RecordFilter | None = None,
    ) -> list[ClipRecord]:
        with self._reading():
            return store_search.fetch_page(self, limit, offset, order=order, filters=filters)

    def search(self, term: str, limit: int, offset: int = 0) -> list[ClipRecord]:
        with self._reading():
            return store_search.search(self, term, limit, offset)

    def fetch_for_export(self, spec: ExportFilter) -> list[ClipRecord]:
        with self._reading():
            return store_search.fetch_for_export(self, spec)

    def unique_sources(self) -> list[str]:
        with self._reading():
            return store_search.unique_sources(self)

    def count(self) -> int:
        with self._reading() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM items").fetchone()[0])

    def count_unpinned(self) -> int:
        with self._reading() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM items WHERE pinned = 0").fetchone()[0])

    def blob_path(self, ref: str) -> Path:
        return self.blobs.path(ref)

    # diagnostics

    def is_full_text_available(self) -> bool:
        with self._lock:
            return self._conn is not None and self._full_text_available

    def schema_version(self) -> int:
        with self._reading() as conn:
            return db.get_schema_version(conn)

    def database_size_bytes(self) -> int:
        try:
            return self.db_path.stat().st_size
        except OSError:
            return 0

    def blob_store_size_bytes(self) -> int:
        return self.blobs.size_bytes()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self.count()
            unpinned = self.count_unpinned()
            return {
                "path": str(self.db_path),
                "blob_dir": str(self.blobs.root),
                "schema_version": self.schema_version(),
                "items": total,
                "pinned": total - unpinned,
                "unpinned": unpinned,
                "database_bytes": self.database_size_bytes(),
                "blob_bytes": self.blob_store_size_bytes(),
                "full_text": self.is_full_text_available(),
                "sources": len(self.unique_sources()),
            }

    # maintenance

    def rebuild_full_text_index(self) -> bool:
        with self._writing() as conn:
            if not self._full_text_available:
                return False
            db.rebuild_full_text_index(conn)
            return True

    def sweep_orphan_blobs(
        self, min_age_s: float | None = None, *, dry_run: bool = False
    ) -> list[str]:
        with self._lock:
            with self._reading() as conn:
                rows = conn.execute(
                    "SELECT blob_ref FROM items WHERE blob_ref IS NOT NULL"
                ).fetchall()
            live = {str(row["blob_ref"]) for row in rows}
            return self.blobs.sweep_orphans(live, min_age_s=min_age_s, dry_run=dry_run)
