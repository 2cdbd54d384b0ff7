"""Persistence: blob stores, per-version migrations, snapshots and autosave."""

from timeshards.store.autosave import Autosaver
from timeshards.store.blob_store import BlobStore, MemoryBlobStore, SQLiteBlobStore
from timeshards.store.ledger_store import (
    LEGACY_STORAGE_KEY,
    STORAGE_KEY,
    LedgerStore,
    export_document,
    export_file_name,
    read_import,
    write_export,
)
from timeshards.store.migrations import ImportResult, import_projects

__all__ = [
    "Autosaver",
    "BlobStore",
    "ImportResult",
    "LEGACY_STORAGE_KEY",
    "LedgerStore",
    "MemoryBlobStore",
    "SQLiteBlobStore",
    "STORAGE_KEY",
    "export_document",
    "export_file_name",
    "import_projects",
    "read_import",
    "write_export",
]
