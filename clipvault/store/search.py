from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .types import ClipRecord, ExportFilter, OrderPolicy, RecordFilter
from .utils import (
    ITEM_COLUMNS,
    filter_clauses,
    fts_phrase,
    like_pattern,
    order_clause,
    placeholders,
    where_sql,
)

if TYPE_CHECKING:
    from ._store import ClipStore


def fetch_page(
    store: ClipStore,
    limit: int,
    offset: int = 0,
    order: OrderPolicy = OrderPolicy.PINNED_FIRST,
    filters: RecordFilter | None = None,
) -> list[ClipRecord]:
    if limit <= 0:
        return []
    clauses, params = filter_clauses(filters)
    sql = f"""
        SELECT {ITEM_COLUMNS}
        FROM items
        {where_sql(clauses)}
        ORDER BY {order_clause(order)}
        LIMIT ? OFFSET ?
    """
    rows = store.conn.execute(sql, (*params, int(limit), max(0, int(offset)))).fetchall()
    return [ClipRecord.from_row(row) for row in rows]


def search(store: ClipStore, term: str, limit: int, offset: int = 0) -> list[ClipRecord]:
    """Phrase search over text content, index-backed when FTS5 is usable.

    Both paths share the pinned-first ordering and offset pagination, so
    callers see the same shape of result either way.
    """
    if limit <= 0:
        return []
    if not term.strip():
        return fetch_page(store, limit, offset)
    if store.is_full_text_available():
        match_clause = "id IN (SELECT rowid FROM items_fts WHERE items_fts MATCH ?)"
        param = fts_phrase(term)
    else:
        match_clause = "text_content LIKE ? ESCAPE '\\'"
        param = like_pattern(term)
    sql = f"""
        SELECT {ITEM_COLUMNS}
        FROM items
        WHERE {match_clause}
        ORDER BY {order_clause(OrderPolicy.PINNED_FIRST)}
        LIMIT ? OFFSET ?
    """
    rows = store.conn.execute(sql, (param, int(limit), max(0, int(offset)))).fetchall()
    return [ClipRecord.from_row(row) for row in rows]


def fetch_for_export(store: ClipStore, spec: ExportFilter) -> list[ClipRecord]:
    clauses: list[str] = []
    params: list[Any] = []
    if spec.pinned_only:
        clauses.append("pinned = 1")
    if spec.since is not None:
        clauses.append("created_at >= ?")
        params.append(int(spec.since))
    if spec.ids is not None:
        ids = [int(i) for i in spec.ids]
        if not ids:
            return []
        clauses.append(f"id IN ({placeholders(len(ids))})")
        params.extend(ids)
    if spec.source_app_ids is not None:
        sources = [str(s) for s in spec.source_app_ids]
        if not sources:
            return []
        clauses.append(f"source_app_id IN ({placeholders(len(sources))})")
        params.extend(sources)
    limit_sql = ""
    if spec.last_n is not None:
        if spec.last_n <= 0:
            return []
        limit_sql = "LIMIT ?"
        params.append(int(spec.last_n))
    sql = f"""
        SELECT {ITEM_COLUMNS}
        FROM items
        {where_sql(clauses)}
        ORDER BY {order_clause(OrderPolicy.NEWEST_FIRST)}
        {limit_sql}
    """
    rows = store.conn.execute(sql, params).fetchall()
    return [ClipRecord.from_row(row) for row in rows]


def unique_sources(store: ClipStore) -> list[str]:
    rows = store.conn.execute(
        """
        SELECT DISTINCT source_app_id FROM items
        WHERE source_app_id IS NOT NULL
        ORDER BY source_app_id
        """
    ).fetchall()
    return [str(row[0]) for row in rows]
