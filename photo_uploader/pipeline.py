"""Upload pipeline – a fixed pool of worker threads draining a queue of file paths.

Each job goes fingerprint → dedup check → upload bytes → register item →
record. A failure in any step only fails that one file.
"""

from __future__ import annotations

import enum
import logging
import os
import queue
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from photo_uploader.clients.gphotos import GooglePhotosClient
from photo_uploader.config import DEFAULT_QUEUE_SIZE, DEFAULT_WORKERS
from photo_uploader.dedup_store import DedupStore
from photo_uploader.exceptions import DuplicateError, ReadError, UploaderError
from photo_uploader.fingerprint import fingerprint

logger = logging.getLogger(__name__)

_STOP = object()


def format_size(num_bytes: int) -> str:
    """Return a human-readable file size string."""
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(num_bytes) < 1024:
            return f"{num_bytes:.1f} {unit}" if unit != "B" else f"{num_bytes} {unit}"
        num_bytes /= 1024  # type: ignore[assignment]
    return f"{num_bytes:.1f} PB"


class JobState(str, enum.Enum):
    QUEUED = "queued"
    FINGERPRINTING = "fingerprinting"
    DEDUP_CHECK = "dedup_check"
    UPLOADING = "uploading"
    REGISTERING = "registering"
    RECORDED = "recorded"
    SKIPPED = "skipped"
    FAILED = "failed"


class JobOutcome(str, enum.Enum):
    """Terminal result of one job."""

    RECORDED = "recorded"
    SKIPPED = "skipped"
    FAILED = "failed"
    # dry run only: new content that would have been uploaded
    PENDING = "pending"


class WaitGroup:
    """Counter of in-flight jobs: ``add`` on enqueue, ``done`` on finish."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def add(self, delta: int = 1) -> None:
        with self._cond:
            if self._count + delta < 0:
                raise ValueError("WaitGroup counter cannot go negative")
            self._count += delta
            if self._count == 0:
                self._cond.notify_all()

    def done(self) -> None:
        self.add(-1)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the counter reaches zero. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)


@dataclass
class RunResult:
    """Aggregated result of an upload run."""

    recorded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    total_bytes: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, path: str, outcome: JobOutcome, size: int = 0) -> None:
        with self._lock:
            getattr(self, outcome.value).append(path)
            self.total_bytes += size

    @property
    def processed(self) -> int:
        return len(self.recorded) + len(self.skipped) + len(self.failed) + len(self.pending)

    @property
    def all_ok(self) -> bool:
        return len(self.failed) == 0


class UploadPipeline:
    """Bounded queue plus a fixed pool of upload workers.

    Usage is ``start()``, ``submit()`` for every path, ``close()``, then
    ``wait()``; ``run()`` does all four. The dedup check and the final insert
    are not atomic: two workers holding identical new content can both
    upload, and the store's primary key lets only one of them record it.
    """

    def __init__(
        self,
        store: DedupStore,
        client: GooglePhotosClient | None,
        workers: int = DEFAULT_WORKERS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        cancel: threading.Event | None = None,
        on_job_done: Callable[[str, JobOutcome], None] | None = None,
        dry_run: bool = False,
    ):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if client is None and not dry_run:
            raise ValueError("an upload client is required unless dry_run is set")
        self._store = store
        self._client = client
        self._num_workers = workers
        self._jobs: queue.Queue = queue.Queue(maxsize=queue_size)
        self._pending = WaitGroup()
        self._threads: list[threading.Thread] = []
        self._cancel = cancel or threading.Event()
        self.on_job_done = on_job_done
        self._dry_run = dry_run
        self._closed = False
        self.result = RunResult()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    @property
    def in_flight(self) -> int:
        return self._pending.count

    # ── lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("pipeline already started")
        for i in range(self._num_workers):
            t = threading.Thread(
                target=self._worker_loop, name=f"upload-worker-{i}", daemon=True
            )
            t.start()
            self._threads.append(t)
        logger.debug("Started %d upload worker(s)", self._num_workers)

    def submit(self, path: str) -> None:
        """Queue one path; blocks while the queue is full."""
        if self._closed:
            raise RuntimeError("pipeline is closed")
        self._pending.add(1)
        self._transition(path, JobState.QUEUED)
        self._jobs.put(path)

    def close(self) -> None:
        """Signal that no more paths will be submitted."""
        if self._closed:
            return
        self._closed = True
        for _ in self._threads:
            self._jobs.put(_STOP)

    def wait(self) -> RunResult:
        """Close the pipeline and block until every submitted job has finished."""
        self.close()
        self._pending.wait()
        for t in self._threads:
            t.join()
        return self.result

    def run(self, paths: Iterable[str]) -> RunResult:
        self.start()
        try:
            for path in paths:
                if self._cancel.is_set():
                    logger.warning("Cancelled, no more files will be queued.")
                    break
                self.submit(path)
        finally:
            self.close()
        return self.wait()

    # ── workers ──────────────────────────────────────────────────────

    def _worker_loop(self) -> None:
        try:
            while True:
                path = self._jobs.get()
                if path is _STOP:
                    break
                try:
                    self.process(path)
                finally:
                    self._pending.done()
        finally:
            self._store.release()

    def process(self, path: str) -> JobOutcome:
        """Run one file to a terminal outcome. Never raises."""
        size = 0
        if self._cancel.is_set():
            logger.warning("CANCELLED %s", path)
            self._transition(path, JobState.FAILED)
            outcome = JobOutcome.FAILED
        else:
            try:
                outcome, size = self._upload_one(path)
            except DuplicateError:
                logger.info("SKIP (already uploaded): %s", path)
                self._transition(path, JobState.SKIPPED)
                outcome = JobOutcome.SKIPPED
            except UploaderError as exc:
                logger.error("FAIL %s: %s", path, exc)
                logger.debug("Traceback for %s", path, exc_info=True)
                self._transition(path, JobState.FAILED)
                outcome = JobOutcome.FAILED
            except Exception:
                logger.exception("FAIL %s: unexpected error", path)
                self._transition(path, JobState.FAILED)
                outcome = JobOutcome.FAILED

        self.result.add(path, outcome, size)
        if self.on_job_done is not None:
            try:
                self.on_job_done(path, outcome)
            except Exception:
                logger.exception("Progress callback failed for %s", path)
        return outcome

    def _upload_one(self, path: str) -> tuple[JobOutcome, int]:
        filename = os.path.basename(path)

        self._transition(path, JobState.FINGERPRINTING)
        try:
            fh = open(path, "rb")
        except OSError as exc:
            raise ReadError(f"Error opening file: {exc}") from exc

        with fh:
            fp = fingerprint(fh)

            self._transition(path, JobState.DEDUP_CHECK)
            if self._store.exists(fp):
                raise DuplicateError("image fingerprint already exists in database")

            if self._dry_run:
                logger.info("NEW %s", path)
                return JobOutcome.PENDING, 0

            size = os.fstat(fh.fileno()).st_size

            self._transition(path, JobState.UPLOADING)
            upload_token = self._client.upload_bytes(fh, filename)

            # from here on a failure leaves an orphaned upload on the server
            self._transition(path, JobState.REGISTERING)
            self._client.create_media_item(upload_token)

        self._store.record(fp, filename)
        self._transition(path, JobState.RECORDED)
        logger.info("OK  %s (%s)", path, format_size(size))
        return JobOutcome.RECORDED, size

    @staticmethod
    def _transition(path: str, state: JobState) -> None:
        logger.debug("%-14s %s", state.value, path)
