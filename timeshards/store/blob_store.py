"""Key/value blob stores — the persistence boundary of the ledger.

A snapshot is one JSON blob under a fixed key. Each write carries a
revision; a write whose revision is not greater than the stored one is
ignored, so a delayed, older snapshot can never overwrite a newer one.

Backends:
- ``SQLiteBlobStore``: single-row upsert in one transaction (WAL mode).
- ``MemoryBlobStore``: process-local dict, for tests and dry runs.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from timeshards.errors import PersistenceError

logger = logging.getLogger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    def get(self, key: str) -> str | None:
        """Return the blob stored under *key*, or ``None``."""
        ...

    def revision(self, key: str) -> int:
        """Revision of the blob under *key* (0 when absent)."""
        ...

    def put(self, key: str, value: str, revision: int) -> bool:
        """Store *value* if *revision* is newer. Returns whether it was written."""
        ...


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------

_CREATE_BLOBS = """
CREATE TABLE IF NOT EXISTS blobs (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    revision    INTEGER NOT NULL DEFAULT 0,
    updated_at  TEXT NOT NULL
);
"""

_UPSERT_BLOB = """
INSERT INTO blobs (key, value, revision, updated_at)
VALUES (?, ?, ?, ?)
ON CONFLICT(key) DO UPDATE SET
    value = excluded.value,
    revision = excluded.revision,
    updated_at = excluded.updated_at
WHERE excluded.revision > blobs.revision
"""


class SQLiteBlobStore:
    """Blob store backed by a SQLite database file.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_schema()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Cannot open blob store at {self._db_path}: {exc}") from exc

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_BLOBS)
            conn.commit()

    def get(self, key: str) -> str | None:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT value FROM blobs WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot read {key!r}: {exc}") from exc
        return row[0] if row else None

    def revision(self, key: str) -> int:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT revision FROM blobs WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot read revision of {key!r}: {exc}") from exc
        return int(row[0]) if row else 0

    def put(self, key: str, value: str, revision: int) -> bool:
        updated_at = datetime.now(timezone.utc).isoformat()
        try:
            with self._connect() as conn:
                cur = conn.execute(_UPSERT_BLOB, (key, value, revision, updated_at))
                conn.commit()
                written = cur.rowcount > 0
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot write {key!r}: {exc}") from exc
        if not written:
            logger.debug("Skipped stale write of %s at revision %d.", key, revision)
        return written


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class MemoryBlobStore:
    """Blob store held in a dict. Same revision rules as ``SQLiteBlobStore``."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._blobs: dict[str, tuple[str, int]] = {
            key: (value, 0) for key, value in (initial or {}).items()
        }

    def get(self, key: str) -> str | None:
        entry = self._blobs.get(key)
        return entry[0] if entry else None

    def revision(self, key: str) -> int:
        entry = self._blobs.get(key)
        return entry[1] if entry else 0

    def put(self, key: str, value: str, revision: int) -> bool:
        entry = self._blobs.get(key)
        if entry is not None and revision <= entry[1]:
            return False
        self._blobs[key] = (value, revision)
        return True
