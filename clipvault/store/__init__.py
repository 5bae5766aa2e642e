from __future__ import annotations

from ._store import ClipStore
from .types import ClipKind, ClipRecord, ExportFilter, OrderPolicy, RecordFilter

__all__ = [
    "ClipKind",
    "ClipRecord",
    "ClipStore",
    "ExportFilter",
    "OrderPolicy",
    "RecordFilter",
]
