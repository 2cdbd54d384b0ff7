"""Ledger store — snapshots the project list into a blob store.

Two keys exist. ``time-shards-v2`` is the current key and the only one ever
written. ``time-shards-v1`` is left by early builds; it is read on restore
and never modified.

Document shape (stored snapshots and exports alike)::

    {"formatVersion": 2, "exportedAt": "...", "projects": [...]}

Bare project arrays and the legacy ``version`` key are accepted on import.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Any, Iterable

from timeshards.core.records import STARTER_PROJECT_NAME, starter_ledger
from timeshards.errors import DocumentFormatError, PersistenceError
from timeshards.models.project import Project
from timeshards.models.records import utc_now_iso
from timeshards.models.versioning import FORMAT_VERSION
from timeshards.store.blob_store import BlobStore
from timeshards.store.migrations import ImportResult, import_projects

logger = logging.getLogger(__name__)

STORAGE_KEY = "time-shards-v2"
LEGACY_STORAGE_KEY = "time-shards-v1"


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def _declared_version(envelope: dict[str, Any]) -> int:
    raw = envelope.get("formatVersion", envelope.get("version", 1))
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Unreadable format version %r; assuming 1.", raw)
        return 1


def parse_document(text: str) -> tuple[list[Any], int]:
    """Split a document into its raw project list and declared format version.

    Raises ``DocumentFormatError`` when *text* is not JSON or holds no
    project list.
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentFormatError(f"Not a JSON document: {exc}") from exc

    if isinstance(parsed, list):
        return parsed, 1
    if isinstance(parsed, dict) and isinstance(parsed.get("projects"), list):
        return parsed["projects"], _declared_version(parsed)
    raise DocumentFormatError("Document has no project list")


def serialize_projects(projects: Iterable[Project]) -> list[dict[str, Any]]:
    return [p.model_dump(mode="json", by_alias=True, exclude_none=True) for p in projects]


def export_document(projects: Iterable[Project]) -> str:
    """Pretty-printed document holding every project, lossless on re-import."""
    envelope = {
        "formatVersion": FORMAT_VERSION,
        "exportedAt": utc_now_iso(),
        "projects": serialize_projects(projects),
    }
    return json.dumps(envelope, indent=2, ensure_ascii=False)


def export_file_name(projects: list[Project], today: date | None = None) -> str:
    """``TimeShards_{P}projects_{R}records_{YYYY-MM-DD}.json``"""
    today = today or date.today()
    record_count = sum(len(p.records) for p in projects)
    return f"TimeShards_{len(projects)}projects_{record_count}records_{today.isoformat()}.json"


def write_export(projects: list[Project], directory: Path, today: date | None = None) -> Path:
    """Write an export document into *directory* and return its path.

    The file is written to a temporary name and moved into place, so a
    crash never leaves a truncated export behind.
    """
    directory = Path(directory)
    target = directory / export_file_name(projects, today)
    text = export_document(projects)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".export-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise PersistenceError(f"Cannot write export to {directory}: {exc}") from exc
    logger.info("Exported %d projects to %s.", len(projects), target)
    return target


def read_import(path: Path) -> ImportResult:
    """Read and migrate an export document (or bare project array) from disk."""
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise PersistenceError(f"Cannot read {path}: {exc}") from exc
    raw_projects, version = parse_document(text)
    return import_projects(raw_projects, version)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class LedgerStore:
    """Restores and persists the project list through a ``BlobStore``.

    Parameters
    ----------
    blobs:
        The key/value backend.
    """

    def __init__(self, blobs: BlobStore) -> None:
        self._blobs = blobs

    @property
    def blobs(self) -> BlobStore:
        return self._blobs

    def restore(self) -> ImportResult:
        """Load the newest stored copy, migrated to the current schema.

        Both keys are read and the copy with the highest format version
        wins. With nothing stored, a single empty starter project is
        returned. If copies exist but none can be parsed,
        ``PersistenceError`` is raised so nothing overwrites them.
        """
        candidates: list[tuple[int, str, list[Any]]] = []
        unreadable: list[str] = []
        for key in (STORAGE_KEY, LEGACY_STORAGE_KEY):
            text = self._blobs.get(key)
            if text is None:
                continue
            try:
                raw_projects, version = parse_document(text)
            except DocumentFormatError as exc:
                logger.error("Stored copy %s is unreadable: %s", key, exc)
                unreadable.append(key)
                continue
            candidates.append((version, key, raw_projects))

        if not candidates:
            if unreadable:
                raise PersistenceError(
                    f"Stored ledger under {', '.join(unreadable)} could not be parsed; "
                    "refusing to start from an empty ledger over it."
                )
            logger.info("No stored ledger; starting with %r.", STARTER_PROJECT_NAME)
            return ImportResult(list(starter_ledger().projects), [])

        version, key, raw_projects = max(candidates, key=lambda c: c[0])
        logger.info("Restoring ledger from %s (format %d).", key, version)
        return import_projects(raw_projects, version)

    def stored_revision(self) -> int:
        return self._blobs.revision(STORAGE_KEY)

    def persist(self, projects: Iterable[Project], *, revision: int) -> bool:
        """Write a snapshot under the current key.

        Returns ``False`` when a snapshot with an equal or newer revision is
        already stored. Raises ``PersistenceError`` on storage failure.
        """
        written = self._blobs.put(STORAGE_KEY, export_document(projects), revision)
        if written:
            logger.debug("Persisted ledger revision %d.", revision)
        return written
