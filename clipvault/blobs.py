from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable
from pathlib import Path
from uuid import uuid4

from .errors import StorageUnavailable, WriteFailed

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


class BlobStore:
    """Image payloads stored as opaquely named files in one directory."""

    ORPHAN_MIN_AGE_S = 3600

    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser()

    def ensure(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"cannot create blob directory {self.root}: {exc}") from exc

    def path(self, ref: str) -> Path:
        name = Path(ref).name
        if not ref or name != ref or name in {".", ".."}:
            raise ValueError(f"invalid blob reference: {ref!r}")
        return (self.root / name).resolve()

    def write(self, data: bytes, suffix: str = ".png") -> str:
        ref = f"{uuid4().hex}{suffix}"
        target = self.root / ref
        tmp = self.root / f"{ref}{TEMP_SUFFIX}"
        try:
            with open(tmp, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp, target)
        except OSError as exc:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                logger.warning("blob temp cleanup failed", extra={"blob": str(tmp)})
            raise WriteFailed(f"blob write failed: {exc}") from exc
        return ref

    def delete(self, ref: str) -> bool:
        try:
            self.path(ref).unlink(missing_ok=True)
        except (OSError, ValueError) as exc:
            logger.warning("blob delete failed", extra={"blob_ref": ref}, exc_info=exc)
            return False
        return True

    def delete_many(self, refs: Iterable[str]) -> int:
        failed = 0
        for ref in refs:
            if not self.delete(ref):
                failed += 1
        return failed

    def refs(self) -> set[str]:
        try:
            return {
                entry.name
                for entry in self.root.iterdir()
                if entry.is_file() and not entry.name.endswith(TEMP_SUFFIX)
            }
        except OSError:
            return set()

    def size_bytes(self) -> int:
        total = 0
        try:
            for entry in self.root.iterdir():
                if entry.is_file():
                    total += entry.stat().st_size
        except OSError:
            return 0
        return total

    def sweep_orphans(
        self, live_refs: Iterable[str], min_age_s: float | None = None, *, dry_run: bool = False
    ) -> list[str]:
        """Remove blob files that no record references.

        Files younger than ``min_age_s`` are left alone: an insert writes its
        blob before the row exists.
        """
        min_age = self.ORPHAN_MIN_AGE_S if min_age_s is None else min_age_s
        cutoff = time.time() - min_age
        live = set(live_refs)
        removed: list[str] = []
        for ref in sorted(self.refs() - live):
            try:
                if self.path(ref).stat().st_mtime > cutoff:
                    continue
            except OSError:
                continue
            if dry_run or self.delete(ref):
                removed.append(ref)
        if removed and not dry_run:
            logger.info("swept %s orphan blobs", len(removed))
        return removed
