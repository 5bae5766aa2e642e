from __future__ import annotations

import datetime as dt
from typing import Any

from .types import OrderPolicy, RecordFilter

ITEM_COLUMNS = (
    "id, created_at, kind, text_content, blob_ref, source_app_id, "
    "content_hash, pinned, protected, byte_size"
)


def order_clause(order: OrderPolicy) -> str:
    if order is OrderPolicy.NEWEST_FIRST:
        return "created_at DESC, id DESC"
    return "pinned DESC, created_at DESC, id DESC"


def filter_clauses(filters: RecordFilter | None) -> tuple[list[str], list[Any]]:
    if filters is None:
        return [], []
    clauses: list[str] = []
    params: list[Any] = []
    if filters.kind is not None:
        clauses.append("kind = ?")
        params.append(str(filters.kind))
    if filters.source_app_id is not None:
        clauses.append("source_app_id = ?")
        params.append(filters.source_app_id)
    if filters.since is not None:
        clauses.append("created_at >= ?")
        params.append(int(filters.since))
    if filters.until is not None:
        clauses.append("created_at < ?")
        params.append(int(filters.until))
    if filters.pinned is not None:
        clauses.append("pinned = ?")
        params.append(1 if filters.pinned else 0)
    return clauses, params


def where_sql(clauses: list[str]) -> str:
    if not clauses:
        return ""
    return "WHERE " + " AND ".join(clauses)


def fts_phrase(term: str) -> str:
    return '"' + term.replace('"', '""') + '"'


def like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def placeholders(count: int) -> str:
    return ",".join("?" for _ in range(count))


def parse_iso8601(value: str) -> dt.datetime | None:
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


def parse_timestamp(value: str) -> int | None:
    """Accept Unix seconds or an ISO-8601 string."""
    raw = value.strip()
    if raw.lstrip("-").isdigit():
        return int(raw)
    parsed = parse_iso8601(raw)
    if parsed is None:
        return None
    return int(parsed.timestamp())
