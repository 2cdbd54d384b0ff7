"""Schema migrations — one function per historical ``formatVersion``.

Imports never abort on a malformed field. Each field is coerced on its own:
an unknown enum value falls back to its default, a missing string becomes
``""`` and a missing number ``0``. Every correction is recorded as a
``RecordValidationError`` on the result instead of being raised.

Format history
--------------
1. Notes only. Records may carry stray ``kind``/seal/letter data written by
   later builds; all of it is dropped and every record becomes a Note.
2. Tagged records (Note, Milestone, Letter), artifacts, seals, tombstones.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from enum import Enum
from typing import Any, NamedTuple, TypeVar

from pydantic import ValidationError

from timeshards.errors import RecordValidationError
from timeshards.models.project import Project, SealTombstone
from timeshards.models.records import (
    ArtifactMeta,
    LetterFields,
    LetterMeta,
    LetterRecord,
    LetterStatus,
    LetterType,
    LockedSnapshot,
    MilestoneMeta,
    MilestoneRecord,
    MilestoneStatus,
    NoteRecord,
    Record,
    RecordKind,
    SealMeta,
    Side,
    new_id,
    utc_now_iso,
)
from timeshards.models.versioning import (
    ENTRY_VERSION,
    FORMAT_VERSION,
    GENESIS_HASH,
    TOOL_VERSION,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

_LETTER_FIELD_KEYS = {
    "deliverables": "deliverables",
    "usage": "usage",
    "deadline": "deadline",
    "revisions": "revisions",
    "acceptance": "acceptance",
    "scopeBoundaries": "scope_boundaries",
    "references": "references",
}


class ImportResult(NamedTuple):
    projects: list[Project]
    issues: list[RecordValidationError]


class _Coercer:
    """Field coercion that records what it had to fix."""

    def __init__(self) -> None:
        self.issues: list[RecordValidationError] = []

    def issue(self, path: str, message: str) -> None:
        err = RecordValidationError(path, message)
        logger.warning("Import: %s", err)
        self.issues.append(err)

    def string(self, raw: dict[str, Any], key: str, path: str, default: str = "") -> str:
        value = raw.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        self.issue(f"{path}.{key}", f"expected text, got {type(value).__name__}")
        return default

    def optional_string(self, raw: dict[str, Any], key: str, path: str) -> str | None:
        value = raw.get(key)
        if value is None or isinstance(value, str):
            return value or None
        self.issue(f"{path}.{key}", f"expected text, got {type(value).__name__}")
        return None

    def integer(self, raw: dict[str, Any], key: str, path: str, default: int = 0) -> int:
        value = raw.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            self.issue(f"{path}.{key}", "expected a number, got a boolean")
            return default
        if isinstance(value, int):
            return value
        if isinstance(value, float) and math.isfinite(value):
            return int(value)
        if isinstance(value, str):
            try:
                number = float(value)
            except ValueError:
                pass
            else:
                if math.isfinite(number):
                    return int(number)
        self.issue(f"{path}.{key}", f"expected a number, got {value!r}")
        return default

    def enum(
        self, raw: dict[str, Any], key: str, path: str, enum_cls: type[E], default: E
    ) -> E:
        value = raw.get(key)
        if value is None:
            return default
        try:
            return enum_cls(value)
        except ValueError:
            self.issue(f"{path}.{key}", f"unknown value {value!r}, using {default.value!r}")
            return default

    def optional_enum(
        self, raw: dict[str, Any], key: str, path: str, enum_cls: type[E]
    ) -> E | None:
        value = raw.get(key)
        if value is None:
            return None
        try:
            return enum_cls(value)
        except ValueError:
            self.issue(f"{path}.{key}", f"unknown value {value!r}, dropped")
            return None

    def mapping(self, raw: dict[str, Any], key: str, path: str) -> dict[str, Any] | None:
        value = raw.get(key)
        if value is None:
            return None
        if isinstance(value, dict):
            return value
        self.issue(f"{path}.{key}", f"expected an object, got {type(value).__name__}")
        return None

    def sequence(self, raw: dict[str, Any], key: str, path: str) -> list[Any]:
        value = raw.get(key)
        if value is None:
            return []
        if isinstance(value, list):
            return value
        self.issue(f"{path}.{key}", f"expected a list, got {type(value).__name__}")
        return []


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


def _artifact(c: _Coercer, raw: Any, path: str, fallback_time: str) -> ArtifactMeta | None:
    if not isinstance(raw, dict):
        c.issue(path, "artifact is not an object, dropped")
        return None
    # Early builds wrote size/mime/sha256.
    digest = c.string(raw, "digestHex", path) or c.string(raw, "sha256", path)
    return ArtifactMeta(
        name=c.string(raw, "name", path, "file"),
        byte_size=c.integer(raw, "byteSize", path, c.integer(raw, "size", path)),
        mime_type=c.string(raw, "mimeType", path)
        or c.string(raw, "mime", path, "application/octet-stream"),
        digest_hex=digest,
        hashed_at=c.string(raw, "hashedAt", path, fallback_time),
        note=c.optional_string(raw, "note", path),
    )


def _artifacts(c: _Coercer, raw: dict[str, Any], path: str, created_at: str) -> tuple:
    items = (
        _artifact(c, item, f"{path}.artifacts[{i}]", created_at)
        for i, item in enumerate(c.sequence(raw, "artifacts", path))
    )
    return tuple(a for a in items if a is not None)


def _base_fields(c: _Coercer, raw: dict[str, Any], path: str) -> dict[str, Any]:
    record_id = raw.get("id")
    if not isinstance(record_id, str) or not record_id:
        if record_id is not None:
            c.issue(f"{path}.id", "invalid id, a new one was assigned")
        record_id = new_id()
    created_at = c.string(raw, "createdAt", path) or utc_now_iso()
    return {
        "id": record_id,
        "side": c.enum(raw, "side", path, Side, Side.ARTIST),
        "label": c.string(raw, "label", path),
        "details": c.string(raw, "details", path),
        "created_at": created_at,
        "artifacts": _artifacts(c, raw, path, created_at),
    }


def _project(
    c: _Coercer,
    raw: Any,
    path: str,
    record_fn: Callable[[_Coercer, Any, str], Record | None],
    *,
    with_tombstones: bool,
) -> Project | None:
    if not isinstance(raw, dict):
        c.issue(path, "project is not an object, skipped")
        return None
    project_id = raw.get("id")
    if not isinstance(project_id, str) or not project_id:
        project_id = new_id()
    # Early builds called records "shards".
    raw_records = raw.get("records", raw.get("shards"))
    if raw_records is None:
        raw_records = []
    elif not isinstance(raw_records, list):
        c.issue(f"{path}.records", "expected a list, records dropped")
        raw_records = []

    records: list[Record] = []
    seen: set[str] = set()
    for i, item in enumerate(raw_records):
        rpath = f"{path}.records[{i}]"
        try:
            record = record_fn(c, item, rpath)
        except ValidationError as exc:
            c.issue(rpath, f"record could not be rebuilt, skipped: {exc.error_count()} errors")
            continue
        if record is None:
            continue
        if record.id in seen:
            c.issue(f"{rpath}.id", "duplicate id, a new one was assigned")
            record = record.model_copy(update={"id": new_id()})
        seen.add(record.id)
        records.append(record)

    tombstones: list[SealTombstone] = []
    if with_tombstones:
        for i, item in enumerate(c.sequence(raw, "tombstones", path)):
            tpath = f"{path}.tombstones[{i}]"
            if not isinstance(item, dict):
                c.issue(tpath, "tombstone is not an object, skipped")
                continue
            tombstones.append(
                SealTombstone(
                    record_id=c.string(item, "recordId", tpath),
                    sealed_at=c.string(item, "sealedAt", tpath),
                    prev_hash=c.string(item, "prevHash", tpath, GENESIS_HASH),
                    entry_hash=c.string(item, "entryHash", tpath),
                    revoked_at=c.string(item, "revokedAt", tpath),
                    deleted_at=c.string(item, "deletedAt", tpath),
                )
            )

    return Project(
        id=project_id,
        name=c.string(raw, "name", path) or "Untitled",
        summary=c.string(raw, "summary", path),
        created_at=c.string(raw, "createdAt", path) or utc_now_iso(),
        records=tuple(records),
        tombstones=tuple(tombstones),
    )


def _projects(
    raw_projects: list[Any],
    record_fn: Callable[[_Coercer, Any, str], Record | None],
    *,
    with_tombstones: bool,
) -> ImportResult:
    c = _Coercer()
    projects = []
    for i, raw in enumerate(raw_projects):
        project = _project(c, raw, f"projects[{i}]", record_fn, with_tombstones=with_tombstones)
        if project is not None:
            projects.append(project)
    return ImportResult(projects, c.issues)


# ---------------------------------------------------------------------------
# Version 1
# ---------------------------------------------------------------------------


def _record_v1(c: _Coercer, raw: Any, path: str) -> Record | None:
    if not isinstance(raw, dict):
        c.issue(path, "record is not an object, skipped")
        return None
    kind = raw.get("kind")
    if kind not in (None, RecordKind.NOTE.value):
        c.issue(f"{path}.kind", f"{kind!r} did not exist in format 1, imported as Note")
    return NoteRecord(**_base_fields(c, raw, path))


def migrate_v1(raw_projects: list[Any]) -> ImportResult:
    """Format 1: every record becomes a Note; seals and kind data are dropped."""
    return _projects(raw_projects, _record_v1, with_tombstones=False)


# ---------------------------------------------------------------------------
# Version 2
# ---------------------------------------------------------------------------


def _seal(c: _Coercer, raw: dict[str, Any], path: str) -> SealMeta | None:
    data = c.mapping(raw, "seal", path)
    if data is None:
        return None
    spath = f"{path}.seal"
    return SealMeta(
        sealed_at=c.string(data, "sealedAt", spath),
        prev_hash=c.string(data, "prevHash", spath, GENESIS_HASH),
        entry_hash=c.string(data, "entryHash", spath),
        entry_version=c.integer(data, "entryVersion", spath, ENTRY_VERSION),
        tool_version=c.integer(data, "toolVersion", spath, TOOL_VERSION),
        signature=c.string(data, "signature", spath),
        revoked_at=c.optional_string(data, "revokedAt", spath),
    )


def _letter_fields(c: _Coercer, raw: dict[str, Any] | None, path: str, fallback: LetterFields | None = None) -> LetterFields:
    raw = raw or {}
    values = {}
    for wire, attr in _LETTER_FIELD_KEYS.items():
        default = getattr(fallback, attr) if fallback is not None else ""
        values[attr] = c.string(raw, wire, path, default)
    return LetterFields(**values)


def _letter(c: _Coercer, raw: dict[str, Any], path: str, base: dict[str, Any]) -> LetterMeta:
    data = c.mapping(raw, "letter", path) or {}
    lpath = f"{path}.letter"
    fields = _letter_fields(c, c.mapping(data, "fields", lpath), f"{lpath}.fields")

    version = c.integer(data, "version", lpath, 1)
    if version < 1:
        c.issue(f"{lpath}.version", f"version {version} is below 1, set to 1")
        version = 1

    snapshot = None
    snap = c.mapping(data, "lockedSnapshot", lpath)
    if snap is not None:
        spath = f"{lpath}.lockedSnapshot"
        snapshot = LockedSnapshot(
            label=c.string(snap, "label", spath, base["label"]),
            details=c.string(snap, "details", spath, base["details"]),
            fields=_letter_fields(c, c.mapping(snap, "fields", spath), f"{spath}.fields", fields),
            locked_at=c.string(snap, "lockedAt", spath, base["created_at"]),
        )

    return LetterMeta(
        type=c.enum(data, "type", lpath, LetterType, LetterType.PROPOSAL),
        milestone_id=c.optional_string(data, "milestoneId", lpath),
        base_letter_id=c.optional_string(data, "baseLetterId", lpath),
        version=version,
        status=c.enum(data, "status", lpath, LetterStatus, LetterStatus.DRAFT),
        sent_at=c.optional_string(data, "sentAt", lpath),
        confirmed_at=c.optional_string(data, "confirmedAt", lpath),
        confirmed_by=c.optional_enum(data, "confirmedBy", lpath, Side),
        fields=fields,
        locked_snapshot=snapshot,
    )


def _record_v2(c: _Coercer, raw: Any, path: str) -> Record | None:
    if not isinstance(raw, dict):
        c.issue(path, "record is not an object, skipped")
        return None
    base = _base_fields(c, raw, path)
    base["seal"] = _seal(c, raw, path)
    base["owner_delete_token"] = c.optional_string(raw, "ownerDeleteToken", path)
    milestone_id = c.optional_string(raw, "milestoneId", path)

    kind = c.enum(raw, "kind", path, RecordKind, RecordKind.NOTE)
    if kind == RecordKind.MILESTONE:
        data = c.mapping(raw, "milestone", path) or {}
        mpath = f"{path}.milestone"
        return MilestoneRecord(
            **base,
            milestone=MilestoneMeta(
                due_at=c.optional_string(data, "dueAt", mpath),
                status=c.enum(data, "status", mpath, MilestoneStatus, MilestoneStatus.PLANNED),
            ),
        )
    if kind == RecordKind.LETTER:
        letter = _letter(c, raw, path, base)
        return LetterRecord(
            **base,
            milestone_id=letter.milestone_id or milestone_id,
            letter=letter,
        )
    return NoteRecord(**base, milestone_id=milestone_id)


def migrate_v2(raw_projects: list[Any]) -> ImportResult:
    """Format 2: field-by-field validation of the full tagged schema."""
    return _projects(raw_projects, _record_v2, with_tombstones=True)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

MIGRATIONS: dict[int, Callable[[list[Any]], ImportResult]] = {
    1: migrate_v1,
    2: migrate_v2,
}


def import_projects(raw_projects: list[Any], declared_version: int) -> ImportResult:
    """Upgrade projects written in any known format to the current schema."""
    if declared_version <= 1:
        migrate = MIGRATIONS[1]
    elif declared_version in MIGRATIONS:
        migrate = MIGRATIONS[declared_version]
    else:
        logger.warning(
            "Format %d is newer than %d; importing with the current schema.",
            declared_version,
            FORMAT_VERSION,
        )
        migrate = MIGRATIONS[FORMAT_VERSION]
    result = migrate(list(raw_projects))
    logger.info(
        "Imported %d projects from format %d (%d fields corrected).",
        len(result.projects),
        declared_version,
        len(result.issues),
    )
    return result
