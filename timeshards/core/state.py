"""Holder for the current ``Ledger`` value.

The ledger itself is immutable; this holder swaps in new values produced by
pure operations and counts revisions so persisted snapshots can be ordered.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from timeshards.models.project import Ledger

ChangeListener = Callable[[Ledger, int], None]


class LedgerState:
    """Current ledger plus a monotonically increasing revision number.

    Parameters
    ----------
    ledger:
        Initial value, usually from ``LedgerStore.restore()``.
    revision:
        Revision of *ledger*; the next change gets ``revision + 1``.
    on_change:
        Called with ``(ledger, revision)`` after every effective change.
    """

    def __init__(
        self,
        ledger: Ledger,
        *,
        revision: int = 0,
        on_change: ChangeListener | None = None,
    ) -> None:
        self._ledger = ledger
        self._revision = revision
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener] = [on_change] if on_change else []

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def revision(self) -> int:
        return self._revision

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def apply(self, operation: Callable[[Ledger], Ledger]) -> Ledger:
        """Run a pure operation against the current ledger and keep its result.

        If the operation raises, the current ledger is left untouched.
        """
        with self._lock:
            updated = operation(self._ledger)
            if updated == self._ledger:
                return self._ledger
            self._ledger = updated
            self._revision += 1
            revision = self._revision
        for listener in self._listeners:
            listener(updated, revision)
        return updated

    def replace(self, ledger: Ledger) -> Ledger:
        """Swap in a whole new ledger, e.g. after an import."""
        return self.apply(lambda _current: ledger)
