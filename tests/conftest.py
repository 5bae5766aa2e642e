from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from clipvault.store import ClipStore


def _fts5_compiled() -> bool:
    conn = sqlite3.connect(":memory:")
    try:
        conn.execute("CREATE VIRTUAL TABLE t USING fts5(c)")
    except sqlite3.Error:
        return False
    finally:
        conn.close()
    return True


HAS_FTS5 = _fts5_compiled()

requires_fts5 = pytest.mark.skipif(not HAS_FTS5, reason="sqlite built without FTS5")


class StepClock:
    """Deterministic clock: each call advances by one second."""

    def __init__(self, start: float = 1_700_000_000):
        self.now = start

    def __call__(self) -> float:
        self.now += 1
        return self.now


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CLIPVAULT_CONFIG", str(tmp_path / "config" / "config.json"))
    for name in ("CLIPVAULT_DB", "CLIPVAULT_BLOB_DIR", "CLIPVAULT_HISTORY_LIMIT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def store(tmp_path: Path, clock: StepClock) -> Iterator[ClipStore]:
    with ClipStore(tmp_path / "clips.sqlite", clock=clock) as opened:
        yield opened
