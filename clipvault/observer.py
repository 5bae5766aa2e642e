from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Protocol

from .config import ClipVaultConfig
from .ingest import CapturedPayload, IngestPipeline, IngestResult

logger = logging.getLogger(__name__)


class ClipboardSource(Protocol):
    """Platform clipboard reader; implementations live outside this package."""

    def change_count(self) -> int: ...

    def read(self) -> CapturedPayload | None: ...


class ClipboardObserver:
    """Poll a clipboard source and hand changes to the ingest pipeline.

    Polling never waits on storage: each change is queued on a single worker
    thread and the loop resumes immediately. A change seen within
    ``debounce_s`` of the last completed write is skipped so the store's own
    activity cannot feed back in as a new capture.
    """

    def __init__(
        self,
        source: ClipboardSource,
        pipeline: IngestPipeline,
        *,
        poll_interval_s: float = 0.3,
        debounce_s: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.pipeline = pipeline
        self.poll_interval_s = poll_interval_s
        self.debounce_s = debounce_s
        self._clock = clock
        self._lock = threading.Lock()
        self._last_change_count: int | None = None
        self._last_write_at = float("-inf")
        self._pending: set[Future[IngestResult]] = set()
        self._executor: ThreadPoolExecutor | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    @classmethod
    def from_config(
        cls, source: ClipboardSource, pipeline: IngestPipeline, config: ClipVaultConfig
    ) -> ClipboardObserver:
        return cls(
            source,
            pipeline,
            poll_interval_s=config.poll_interval_ms / 1000.0,
            debounce_s=config.debounce_ms / 1000.0,
        )

    @property
    def running(self) -> bool:
        return self._thread is not None

    def _worker(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="clipvault-ingest"
            )
        return self._executor

    def tick(self) -> bool:
        """Poll once; returns True when a payload was queued for ingestion."""
        try:
            current = self.source.change_count()
        except Exception as exc:
            logger.warning("clipboard change count failed", exc_info=exc)
            return False
        with self._lock:
            if self._last_change_count is None:
                self._last_change_count = current
                return False
            if current == self._last_change_count:
                return False
            self._last_change_count = current
            if self._clock() - self._last_write_at < self.debounce_s:
                logger.debug("clipboard change inside debounce window")
                return False
        try:
            payload = self.source.read()
        except Exception as exc:
            logger.warning("clipboard read failed", exc_info=exc)
            return False
        if payload is None:
            return False
        future = self._worker().submit(self._ingest, payload)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return True

    def _ingest(self, payload: CapturedPayload) -> IngestResult:
        try:
            return self.pipeline.ingest(payload)
        finally:
            with self._lock:
                self._last_write_at = self._clock()

    def _discard(self, future: Future[IngestResult]) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: float | None = None) -> None:
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def start(self) -> None:
        if self._thread is not None:
            return
        self.tick()
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="clipvault-observer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout)
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def _run(self) -> None:
        while not self._stop.wait(self.poll_interval_s):
            self.tick()
