from __future__ import annotations

import datetime as dt
import sqlite3
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from enum import Enum, StrEnum
from typing import Any

PREVIEW_CHARS = 100


class ClipKind(StrEnum):
    TEXT = "text"
    IMAGE = "image"


class OrderPolicy(Enum):
    PINNED_FIRST = "pinned_first"
    NEWEST_FIRST = "newest_first"


@dataclass
class ClipRecord:
    id: int
    created_at: int
    kind: ClipKind
    text_content: str | None
    blob_ref: str | None
    source_app_id: str | None
    content_hash: str
    pinned: bool
    protected: bool
    byte_size: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ClipRecord:
        return cls(
            id=int(row["id"]),
            created_at=int(row["created_at"]),
            kind=ClipKind(row["kind"]),
            text_content=row["text_content"],
            blob_ref=row["blob_ref"],
            source_app_id=row["source_app_id"],
            content_hash=row["content_hash"],
            pinned=bool(row["pinned"]),
            protected=bool(row["protected"]),
            byte_size=int(row["byte_size"]),
        )

    @property
    def created_datetime(self) -> dt.datetime:
        return dt.datetime.fromtimestamp(self.created_at, tz=dt.UTC)

    @property
    def preview(self) -> str:
        if self.kind is ClipKind.IMAGE:
            return "[Image]"
        text = self.text_content or ""
        if len(text) <= PREVIEW_CHARS:
            return text
        return text[:PREVIEW_CHARS] + "..."

    @property
    def source_app_name(self) -> str | None:
        if not self.source_app_id:
            return None
        last = self.source_app_id.split(".")[-1]
        return last.capitalize() if last else self.source_app_id

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["created_at_iso"] = self.created_datetime.isoformat()
        return data


@dataclass
class RecordFilter:
    kind: ClipKind | None = None
    source_app_id: str | None = None
    since: int | None = None
    until: int | None = None
    pinned: bool | None = None


@dataclass
class ExportFilter:
    """Selection for export; every set field narrows the result."""

    last_n: int | None = None
    since: int | None = None
    pinned_only: bool = False
    ids: Sequence[int] | None = None
    source_app_ids: Sequence[str] | None = None
