"""Tests for the SQLite and in-memory blob stores."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from timeshards.errors import PersistenceError
from timeshards.store.blob_store import BlobStore, MemoryBlobStore, SQLiteBlobStore


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_dir: Path) -> BlobStore:
    if request.param == "sqlite":
        return SQLiteBlobStore(tmp_dir / "nested" / "ledger.db")
    return MemoryBlobStore()


class TestBlobStore:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, BlobStore)

    def test_missing_key(self, store):
        assert store.get("nope") is None
        assert store.revision("nope") == 0

    def test_put_and_get(self, store):
        assert store.put("k", "v1", 1)
        assert store.get("k") == "v1"
        assert store.revision("k") == 1

    def test_newer_revision_overwrites(self, store):
        store.put("k", "v1", 1)
        assert store.put("k", "v3", 3)
        assert store.get("k") == "v3"

    def test_stale_revision_ignored(self, store):
        store.put("k", "v5", 5)
        assert not store.put("k", "v4", 4)
        assert not store.put("k", "v5b", 5)
        assert store.get("k") == "v5"
        assert store.revision("k") == 5

    def test_keys_independent(self, store):
        store.put("a", "1", 9)
        assert store.put("b", "2", 1)
        assert store.get("b") == "2"


class TestSQLiteBlobStore:
    def test_survives_reopen(self, tmp_dir: Path):
        path = tmp_dir / "ledger.db"
        SQLiteBlobStore(path).put("k", "v", 2)
        reopened = SQLiteBlobStore(path)
        assert reopened.get("k") == "v"
        assert reopened.revision("k") == 2

    def test_wal_mode(self, tmp_dir: Path):
        store = SQLiteBlobStore(tmp_dir / "ledger.db")
        conn = sqlite3.connect(str(store.db_path))
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        conn.close()
        assert mode == "wal"

    def test_unopenable_path_raises(self, tmp_dir: Path):
        blocker = tmp_dir / "file"
        blocker.write_text("x")
        with pytest.raises(PersistenceError):
            SQLiteBlobStore(blocker / "ledger.db")


class TestMemoryBlobStore:
    def test_initial_blobs_have_revision_zero(self):
        store = MemoryBlobStore({"k": "legacy"})
        assert store.get("k") == "legacy"
        assert store.revision("k") == 0
        assert store.put("k", "new", 1)
