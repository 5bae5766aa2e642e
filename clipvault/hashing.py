from __future__ import annotations

import hashlib


def text_bytes(text: str) -> bytes:
    return text.encode("utf-8")


def content_hash(kind: str, data: bytes) -> str:
    """Fingerprint a payload for dedup: sha256 over the kind tag, then the raw bytes."""
    hasher = hashlib.sha256()
    hasher.update(str(kind).encode("utf-8"))
    hasher.update(data)
    return hasher.hexdigest()
