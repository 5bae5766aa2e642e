from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from .config import ClipVaultConfig
from .hashing import content_hash, text_bytes
from .store import ClipKind, ClipStore

logger = logging.getLogger(__name__)


@dataclass
class CapturedPayload:
    kind: ClipKind
    text_content: str | None = None
    raw_bytes: bytes | None = None
    source_app_id: str | None = None
    is_concealed: bool = False
    is_transient: bool = False


class SkipReason(StrEnum):
    CONCEALED = "concealed"
    TRANSIENT = "transient"
    IGNORED_SOURCE = "ignored_source"
    IMAGES_DISABLED = "images_disabled"
    EMPTY = "empty"
    TOO_LARGE = "too_large"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class IngestResult:
    record_id: int | None = None
    skipped: SkipReason | None = None

    @property
    def stored(self) -> bool:
        return self.record_id is not None


class IngestPipeline:
    """Policy gate in front of ``ClipStore.insert``.

    ``config`` is read on every call and never mutated here, so the owner
    can swap or edit it between events.
    """

    def __init__(self, store: ClipStore, config: ClipVaultConfig | None = None):
        self.store = store
        self.config = config or ClipVaultConfig()

    def ingest(self, payload: CapturedPayload) -> IngestResult:
        cfg = self.config
        if payload.is_concealed and cfg.ignore_concealed:
            return IngestResult(skipped=SkipReason.CONCEALED)
        if payload.is_transient and cfg.ignore_transient:
            return IngestResult(skipped=SkipReason.TRANSIENT)
        if cfg.is_ignored(payload.source_app_id):
            return IngestResult(skipped=SkipReason.IGNORED_SOURCE)

        kind = ClipKind(payload.kind)
        text: str | None = None
        if kind is ClipKind.TEXT:
            text = payload.text_content or ""
            if not cfg.byte_preserve_mode:
                text = text.strip()
            if not text:
                return IngestResult(skipped=SkipReason.EMPTY)
            data = text_bytes(text)
            ceiling = cfg.text_max_bytes
        else:
            if not cfg.save_images:
                return IngestResult(skipped=SkipReason.IMAGES_DISABLED)
            data = payload.raw_bytes or b""
            ceiling = cfg.image_max_bytes
        if len(data) > ceiling:
            logger.debug(
                "payload over size ceiling", extra={"kind": kind.value, "size": len(data)}
            )
            return IngestResult(skipped=SkipReason.TOO_LARGE)

        try:
            digest = content_hash(kind, data)
            if cfg.dedup_enabled and self.store.exists(digest):
                return IngestResult(skipped=SkipReason.DUPLICATE)
            record_id = self.store.insert(
                kind,
                text_content=text,
                blob_data=data if kind is ClipKind.IMAGE else None,
                source_app_id=payload.source_app_id,
                content_hash=digest,
                byte_size=len(data),
            )
        except Exception as exc:
            logger.exception("clipboard ingest failed", exc_info=exc)
            return IngestResult(skipped=SkipReason.FAILED)

        try:
            self.store.evict(cfg.history_limit)
        except Exception as exc:
            logger.exception("eviction after ingest failed", exc_info=exc)
        return IngestResult(record_id=record_id)
