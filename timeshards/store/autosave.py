"""Debounced, monotonic snapshot writer.

Bursts of edits coalesce into one write. There is no timer thread: a
pending snapshot is written by the first ``request`` after the debounce
window has passed, or by ``flush``. Callers flush at operation boundaries
and on close.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from timeshards.models.project import Ledger
from timeshards.store.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


class Autosaver:
    """Holds the newest unsaved snapshot and writes it through a store.

    Parameters
    ----------
    store:
        Destination of snapshots.
    debounce_seconds:
        Minimum quiet time between the first pending request and its write.
    clock:
        Monotonic clock in seconds; injectable for tests.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        debounce_seconds: float = 0.4,
        clock: Callable[[], float] = time.monotonic,
        last_written: int = 0,
    ) -> None:
        self._store = store
        self._debounce = debounce_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: tuple[Ledger, int] | None = None
        self._pending_since = 0.0
        self._last_written = last_written

    @property
    def last_written(self) -> int:
        return self._last_written

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def request(self, ledger: Ledger, revision: int) -> bool:
        """Queue a snapshot. Returns whether a write happened now."""
        with self._lock:
            if revision <= self._last_written:
                logger.debug("Dropped stale snapshot at revision %d.", revision)
                return False
            if self._pending is None:
                self._pending_since = self._clock()
            elif revision <= self._pending[1]:
                return False
            self._pending = (ledger, revision)
            if self._clock() - self._pending_since < self._debounce:
                return False
            return self._write_pending()

    def flush(self) -> bool:
        """Write the pending snapshot, if any."""
        with self._lock:
            return self._write_pending()

    def _write_pending(self) -> bool:
        if self._pending is None:
            return False
        ledger, revision = self._pending
        # On failure the snapshot stays pending for the next attempt.
        written = self._store.persist(ledger.projects, revision=revision)
        self._pending = None
        self._last_written = max(self._last_written, revision)
        return written
