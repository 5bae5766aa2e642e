from __future__ import annotations

import pytest

from clipvault.config import ClipVaultConfig
from clipvault.errors import QueryFailed, WriteFailed
from clipvault.hashing import content_hash
from clipvault.ingest import CapturedPayload, IngestPipeline, SkipReason
from clipvault.store import ClipKind, ClipStore


def text_payload(text: str, **kwargs) -> CapturedPayload:
    return CapturedPayload(kind=ClipKind.TEXT, text_content=text, **kwargs)


def test_stores_trimmed_text(store: ClipStore) -> None:
    result = IngestPipeline(store).ingest(text_payload("  hello world \n"))

    assert result.stored
    record = store.fetch_item(result.record_id)
    assert record.text_content == "hello world"
    assert record.byte_size == len("hello world")
    assert record.content_hash == content_hash(ClipKind.TEXT, b"hello world")


def test_byte_preserve_mode_keeps_whitespace(store: ClipStore) -> None:
    pipeline = IngestPipeline(store, ClipVaultConfig(byte_preserve_mode=True))
    result = pipeline.ingest(text_payload("  padded  "))
    assert store.fetch_item(result.record_id).text_content == "  padded  "


@pytest.mark.parametrize(
    ("payload", "config", "reason"),
    [
        (text_payload("pw", is_concealed=True), ClipVaultConfig(), SkipReason.CONCEALED),
        (text_payload("otp", is_transient=True), ClipVaultConfig(), SkipReason.TRANSIENT),
        (
            text_payload("x", source_app_id="com.agilebits.onepassword"),
            ClipVaultConfig(ignored_source_ids=["com.agilebits.onepassword"]),
            SkipReason.IGNORED_SOURCE,
        ),
        (
            CapturedPayload(kind=ClipKind.IMAGE, raw_bytes=b"png"),
            ClipVaultConfig(save_images=False),
            SkipReason.IMAGES_DISABLED,
        ),
        (text_payload("   \n\t"), ClipVaultConfig(), SkipReason.EMPTY),
        (text_payload("0123456789A"), ClipVaultConfig(text_max_bytes=10), SkipReason.TOO_LARGE),
        (
            CapturedPayload(kind=ClipKind.IMAGE, raw_bytes=b"x" * 11),
            ClipVaultConfig(image_max_bytes=10),
            SkipReason.TOO_LARGE,
        ),
    ],
)
def test_policy_gates(
    store: ClipStore, payload: CapturedPayload, config: ClipVaultConfig, reason: SkipReason
) -> None:
    result = IngestPipeline(store, config).ingest(payload)
    assert not result.stored
    assert result.skipped is reason
    assert store.count() == 0


def test_gates_can_be_disabled(store: ClipStore) -> None:
    config = ClipVaultConfig(ignore_concealed=False, ignore_transient=False)
    pipeline = IngestPipeline(store, config)
    assert pipeline.ingest(text_payload("secret", is_concealed=True)).stored
    assert pipeline.ingest(text_payload("token", is_transient=True)).stored


def test_size_ceiling_is_inclusive(store: ClipStore) -> None:
    pipeline = IngestPipeline(store, ClipVaultConfig(text_max_bytes=10))
    assert pipeline.ingest(text_payload("0123456789")).stored


def test_duplicates_are_skipped(store: ClipStore) -> None:
    pipeline = IngestPipeline(store)
    first = pipeline.ingest(text_payload("same"))
    second = pipeline.ingest(text_payload("  same  "))

    assert first.stored
    assert second.skipped is SkipReason.DUPLICATE
    assert store.count() == 1


def test_dedup_can_be_disabled(store: ClipStore) -> None:
    pipeline = IngestPipeline(store, ClipVaultConfig(dedup_enabled=False))
    pipeline.ingest(text_payload("again"))
    pipeline.ingest(text_payload("again"))
    assert store.count() == 2


def test_image_is_stored_as_blob(store: ClipStore) -> None:
    result = IngestPipeline(store).ingest(
        CapturedPayload(kind=ClipKind.IMAGE, raw_bytes=b"\x89PNG", source_app_id="app.shot")
    )
    record = store.fetch_item(result.record_id)
    assert record.kind is ClipKind.IMAGE
    assert store.blob_path(record.blob_ref).read_bytes() == b"\x89PNG"
    assert record.source_app_id == "app.shot"


def test_ingest_evicts_to_history_limit(store: ClipStore) -> None:
    pipeline = IngestPipeline(store, ClipVaultConfig(history_limit=3))
    ids = [pipeline.ingest(text_payload(f"clip {i}")).record_id for i in range(5)]

    remaining = [r.id for r in store.fetch_page(10)]
    assert remaining == list(reversed(ids[2:]))


def test_pinned_items_do_not_count_toward_limit(store: ClipStore) -> None:
    pipeline = IngestPipeline(store, ClipVaultConfig(history_limit=2))
    keep = pipeline.ingest(text_payload("keep forever")).record_id
    store.set_pinned(keep, True)
    for i in range(4):
        pipeline.ingest(text_payload(f"rolling {i}"))

    assert store.count() == 3
    assert store.fetch_item(keep) is not None


class _BrokenInsertStore:
    def __init__(self, inner: ClipStore):
        self.inner = inner

    def exists(self, digest: str) -> bool:
        return self.inner.exists(digest)

    def insert(self, *args, **kwargs) -> int:
        raise WriteFailed("disk full")

    def evict(self, limit: int) -> int:
        raise AssertionError("evict should not run after a failed insert")


class _BrokenEvictStore(_BrokenInsertStore):
    def insert(self, *args, **kwargs) -> int:
        return self.inner.insert(*args, **kwargs)

    def evict(self, limit: int) -> int:
        raise QueryFailed("locked")


def test_storage_failure_is_reported_not_raised(store: ClipStore, caplog) -> None:
    result = IngestPipeline(_BrokenInsertStore(store)).ingest(text_payload("lost"))
    assert result.skipped is SkipReason.FAILED
    assert "clipboard ingest failed" in caplog.text


def test_eviction_failure_keeps_inserted_record(store: ClipStore, caplog) -> None:
    result = IngestPipeline(_BrokenEvictStore(store)).ingest(text_payload("kept"))
    assert result.stored
    assert store.fetch_item(result.record_id).text_content == "kept"
    assert "eviction after ingest failed" in caplog.text


def test_config_edits_apply_to_next_event(store: ClipStore) -> None:
    config = ClipVaultConfig()
    pipeline = IngestPipeline(store, config)
    assert pipeline.ingest(text_payload("first", source_app_id="app.a")).stored
    config.ignored_source_ids.append("app.a")
    assert pipeline.ingest(text_payload("second", source_app_id="app.a")).skipped is (
        SkipReason.IGNORED_SOURCE
    )
