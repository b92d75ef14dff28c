"""Dedup store – SQLite record of every fingerprint that made it into the library."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from photo_uploader.exceptions import DuplicateKeyError, PersistError, StoreError

logger = logging.getLogger(__name__)

SCHEMA = (
    "CREATE TABLE IF NOT EXISTS uploads "
    "(fingerprint TEXT PRIMARY KEY, filename TEXT, uploaded INTEGER);"
)

# seconds a writer waits on a locked database before giving up
BUSY_TIMEOUT = 30.0


@dataclass(frozen=True)
class UploadRecord:
    """One row of the ``uploads`` table."""

    fingerprint: str
    filename: str
    uploaded_at: int


class DedupStore:
    """Answers "already uploaded?" and records new uploads.

    Each thread gets its own connection to the same database file. There is
    no application-level write lock: the ``fingerprint`` primary key is what
    keeps two workers from recording the same content twice.
    """

    def __init__(self, path: str | Path):
        self._path = str(Path(path).expanduser())
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        try:
            self._conn().execute(SCHEMA)
        except sqlite3.Error as exc:
            raise StoreError(f"Error creating table in {self._path}: {exc}") from exc
        logger.debug("Dedup store ready: %s", self._path)

    @property
    def path(self) -> str:
        return self._path

    # ── connections ─────────────────────────────────────────────────

    def _conn(self) -> sqlite3.Connection:
        """Return the calling thread's connection, opening it on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            try:
                conn = sqlite3.connect(
                    self._path,
                    timeout=BUSY_TIMEOUT,
                    isolation_level=None,
                    check_same_thread=False,
                )
            except sqlite3.Error as exc:
                raise StoreError(f"Error opening database {self._path}: {exc}") from exc
            self._local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    @property
    def open_connections(self) -> int:
        with self._connections_lock:
            return len(self._connections)

    def release(self) -> None:
        """Close the calling thread's connection; a worker calls this on exit."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            return
        self._local.conn = None
        with self._connections_lock:
            if conn in self._connections:
                self._connections.remove(conn)
        conn.close()

    def close(self) -> None:
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    def __enter__(self) -> DedupStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── queries ─────────────────────────────────────────────────────

    def exists(self, fingerprint: str) -> bool:
        try:
            row = self._conn().execute(
                "SELECT 1 FROM uploads WHERE fingerprint = ?", (fingerprint,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistError(f"Error looking up fingerprint: {exc}") from exc
        return row is not None

    def record(self, fingerprint: str, filename: str, timestamp: int | None = None) -> None:
        """Insert a new upload row.

        Raises ``DuplicateKeyError`` when the fingerprint is already present,
        which happens when another worker raced this one past ``exists``.
        """
        if timestamp is None:
            timestamp = int(time.time())
        try:
            self._conn().execute(
                "INSERT INTO uploads (fingerprint, filename, uploaded) VALUES (?, ?, ?)",
                (fingerprint, filename, timestamp),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateKeyError(
                f"Fingerprint {fingerprint[:12]} already recorded: {exc}"
            ) from exc
        except sqlite3.Error as exc:
            raise PersistError(f"Error recording upload: {exc}") from exc

    def get(self, fingerprint: str) -> UploadRecord | None:
        row = self._conn().execute(
            "SELECT fingerprint, filename, uploaded FROM uploads WHERE fingerprint = ?",
            (fingerprint,),
        ).fetchone()
        if row is None:
            return None
        return UploadRecord(fingerprint=row[0], filename=row[1], uploaded_at=row[2])

    def count(self) -> int:
        return self._conn().execute("SELECT COUNT(*) FROM uploads").fetchone()[0]
