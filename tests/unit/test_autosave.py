"""Tests for the debounced autosaver."""

from __future__ import annotations

import pytest

from timeshards.errors import PersistenceError
from timeshards.models.project import Ledger, Project
from timeshards.store.autosave import Autosaver
from timeshards.store.blob_store import MemoryBlobStore
from timeshards.store.ledger_store import STORAGE_KEY, LedgerStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class BrokenBlobStore(MemoryBlobStore):
    def __init__(self) -> None:
        super().__init__()
        self.broken = True

    def put(self, key: str, value: str, revision: int) -> bool:
        if self.broken:
            raise PersistenceError("disk full")
        return super().put(key, value, revision)


def _ledger(name: str) -> Ledger:
    return Ledger(projects=(Project(name=name),))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> LedgerStore:
    return LedgerStore(MemoryBlobStore())


def _stored_name(store: LedgerStore) -> str:
    return store.restore().projects[0].name


class TestDebounce:
    def test_zero_debounce_writes_immediately(self, store, clock):
        saver = Autosaver(store, debounce_seconds=0, clock=clock)
        assert saver.request(_ledger("a"), 1)
        assert store.stored_revision() == 1
        assert not saver.has_pending

    def test_burst_coalesces(self, store, clock):
        saver = Autosaver(store, debounce_seconds=0.4, clock=clock)
        assert not saver.request(_ledger("a"), 1)
        clock.now += 0.1
        assert not saver.request(_ledger("b"), 2)
        assert saver.has_pending
        assert store.stored_revision() == 0
        clock.now += 0.4
        assert saver.request(_ledger("c"), 3)
        assert store.stored_revision() == 3
        assert _stored_name(store) == "c"

    def test_flush_writes_pending(self, store, clock):
        saver = Autosaver(store, debounce_seconds=10, clock=clock)
        saver.request(_ledger("a"), 1)
        assert saver.flush()
        assert saver.last_written == 1
        assert not saver.has_pending
        assert not saver.flush()


class TestMonotonic:
    def test_stale_request_dropped(self, store, clock):
        saver = Autosaver(store, debounce_seconds=0, clock=clock, last_written=5)
        assert not saver.request(_ledger("old"), 5)
        assert not saver.has_pending

    def test_older_pending_not_replaced(self, store, clock):
        saver = Autosaver(store, debounce_seconds=10, clock=clock)
        saver.request(_ledger("newer"), 4)
        saver.request(_ledger("older"), 3)
        saver.flush()
        assert _stored_name(store) == "newer"
        assert store.stored_revision() == 4


class TestFailures:
    def test_failed_write_stays_pending(self, clock):
        blobs = BrokenBlobStore()
        store = LedgerStore(blobs)
        saver = Autosaver(store, debounce_seconds=0, clock=clock)
        with pytest.raises(PersistenceError):
            saver.request(_ledger("a"), 1)
        assert saver.has_pending
        assert saver.last_written == 0

        blobs.broken = False
        assert saver.flush()
        assert blobs.revision(STORAGE_KEY) == 1
        assert not saver.has_pending
