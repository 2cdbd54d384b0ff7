"""Record operations over an immutable ``Ledger`` value.

Every function here is pure: it takes a ``Ledger`` and returns a new one.
Persistence is applied by the caller (see ``LedgerSession``).

Mutation guard
--------------
- A record carrying a seal never changes content again.
- A sealed record is deleted only after its seal has been revoked; the
  chain link survives as a ``SealTombstone``.
- A confirmed letter never changes content again; its locked snapshot is
  a separate frozen copy.
"""

from __future__ import annotations

from typing import Any

from timeshards.errors import ImmutabilityViolation, UnknownProjectError, UnknownRecordError
from timeshards.models.project import Ledger, Project, SealTombstone
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
    Side,
    utc_now_iso,
)

DEFAULT_NOTE_LABEL = "(no label)"
DEFAULT_MILESTONE_LABEL = "(untitled milestone)"
DEFAULT_LETTER_LABEL = "(no subject)"
UNKNOWN_MILESTONE = "Unknown milestone"
STARTER_PROJECT_NAME = "My first commission"


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def find_project(ledger: Ledger, project_id: str) -> Project:
    for project in ledger.projects:
        if project.id == project_id:
            return project
    raise UnknownProjectError(f"Unknown project: {project_id}")


def find_record(project: Project, record_id: str) -> Record:
    for record in project.records:
        if record.id == record_id:
            return record
    raise UnknownRecordError(f"Unknown record {record_id} in project {project.id}")


def replace_project(ledger: Ledger, project: Project) -> Ledger:
    find_project(ledger, project.id)
    return ledger.model_copy(
        update={
            "projects": tuple(project if p.id == project.id else p for p in ledger.projects)
        }
    )


def replace_record(project: Project, record: Record) -> Project:
    find_record(project, record.id)
    return project.model_copy(
        update={
            "records": tuple(record if r.id == record.id else r for r in project.records)
        }
    )


def _update_record(ledger: Ledger, project_id: str, record: Record) -> Ledger:
    project = find_project(ledger, project_id)
    return replace_project(ledger, replace_record(project, record))


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def ensure_editable(record: Record) -> None:
    """Reject any content change to a sealed record or a confirmed letter."""
    if record.seal is not None:
        raise ImmutabilityViolation(
            f"Record {record.id} is sealed; editing it would invalidate its proof. "
            "Create a derived copy instead (for letters, a Change letter with "
            "base_letter_id pointing at the sealed one)."
        )
    if isinstance(record, LetterRecord) and record.letter.status == LetterStatus.CONFIRMED:
        raise ImmutabilityViolation(
            f"Letter {record.id} is confirmed and locked. "
            "Create a Change letter referencing it instead."
        )


def ensure_deletable(record: Record) -> None:
    """Reject deletion of a record whose seal is still valid."""
    if record.seal is not None and not record.seal.is_revoked:
        raise ImmutabilityViolation(
            f"Record {record.id} is sealed; deleting it would invalidate its proof. "
            "Revoke the seal first, then delete."
        )


def _has_live_seal(project: Project) -> bool:
    return any(r.seal is not None and not r.seal.is_revoked for r in project.records)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def new_project(name: str, summary: str = "") -> Project:
    name = name.strip()
    if not name:
        raise ValueError("Project name must not be empty")
    return Project(name=name, summary=summary)


def starter_ledger() -> Ledger:
    """A ledger holding a single empty project, used on first start."""
    return Ledger(projects=(Project(name=STARTER_PROJECT_NAME),))


def add_project(ledger: Ledger, project: Project) -> Ledger:
    if any(p.id == project.id for p in ledger.projects):
        raise ValueError(f"Project {project.id} already exists")
    return ledger.model_copy(update={"projects": ledger.projects + (project,)})


def rename_project(ledger: Ledger, project_id: str, name: str) -> Ledger:
    """Rename a project.

    The project name is part of every entry hash, so projects with sealed
    records cannot be renamed.
    """
    project = find_project(ledger, project_id)
    if any(r.seal is not None for r in project.records) or project.tombstones:
        raise ImmutabilityViolation(
            f"Project {project_id} has sealed records; its name is bound into their proofs."
        )
    name = name.strip()
    if not name:
        raise ValueError("Project name must not be empty")
    return replace_project(ledger, project.model_copy(update={"name": name}))


def update_summary(ledger: Ledger, project_id: str, summary: str) -> Ledger:
    project = find_project(ledger, project_id)
    return replace_project(ledger, project.model_copy(update={"summary": summary}))


def delete_project(ledger: Ledger, project_id: str) -> Ledger:
    """Delete a project and all of its records.

    Refused while any record in it still carries an unrevoked seal.
    """
    project = find_project(ledger, project_id)
    if _has_live_seal(project):
        raise ImmutabilityViolation(
            f"Project {project_id} contains sealed records. Revoke their seals first."
        )
    return ledger.model_copy(
        update={"projects": tuple(p for p in ledger.projects if p.id != project_id)}
    )


# ---------------------------------------------------------------------------
# Record construction
# ---------------------------------------------------------------------------


def new_note(
    side: Side = Side.ARTIST,
    label: str = "",
    details: str = "",
    *,
    milestone_id: str | None = None,
) -> NoteRecord:
    label, details = label.strip(), details.strip()
    if not label and not details:
        raise ValueError("A note needs a label or details")
    return NoteRecord(
        side=side,
        label=label or DEFAULT_NOTE_LABEL,
        details=details,
        milestone_id=(milestone_id or "").strip() or None,
    )


def new_milestone(
    side: Side = Side.ARTIST,
    label: str = "",
    details: str = "",
    *,
    due_at: str | None = None,
    status: MilestoneStatus = MilestoneStatus.PLANNED,
) -> MilestoneRecord:
    label = label.strip()
    if not label:
        raise ValueError("A milestone needs a label")
    return MilestoneRecord(
        side=side,
        label=label,
        details=details.strip(),
        milestone=MilestoneMeta(due_at=(due_at or "").strip() or None, status=status),
    )


def new_letter(
    side: Side = Side.ARTIST,
    label: str = "",
    details: str = "",
    *,
    letter_type: LetterType = LetterType.PROPOSAL,
    fields: LetterFields | None = None,
    milestone_id: str | None = None,
    base_letter_id: str | None = None,
) -> LetterRecord:
    label, details = label.strip(), details.strip()
    milestone_id = (milestone_id or "").strip() or None
    return LetterRecord(
        side=side,
        label=label or DEFAULT_LETTER_LABEL,
        details=details,
        milestone_id=milestone_id,
        letter=LetterMeta(
            type=letter_type,
            milestone_id=milestone_id,
            base_letter_id=(base_letter_id or "").strip() or None,
            version=1,
            status=LetterStatus.DRAFT,
            fields=fields or LetterFields(),
        ),
    )


def add_record(ledger: Ledger, project_id: str, record: Record) -> Ledger:
    project = find_project(ledger, project_id)
    if record.id in project.record_ids():
        raise ValueError(f"Record {record.id} already exists in project {project_id}")
    return replace_project(
        ledger, project.model_copy(update={"records": project.records + (record,)})
    )


# ---------------------------------------------------------------------------
# Editing
# ---------------------------------------------------------------------------

_COMMON_EDITS = {"side", "label", "details", "milestone_id"}
_MILESTONE_EDITS = {"due_at", "milestone_status"}
_LETTER_EDITS = {"letter_type", "base_letter_id", "fields"}
_DEFAULT_LABELS = {
    "Note": DEFAULT_NOTE_LABEL,
    "Milestone": DEFAULT_MILESTONE_LABEL,
    "Letter": DEFAULT_LETTER_LABEL,
}


def edit_record(ledger: Ledger, project_id: str, record_id: str, **changes: Any) -> Ledger:
    """Apply content changes to an unsealed record.

    Accepted keyword arguments: ``side``, ``label``, ``details``,
    ``milestone_id`` for every kind; ``due_at`` and ``milestone_status``
    for milestones; ``letter_type``, ``base_letter_id`` and ``fields`` for
    letters. Each effective letter edit bumps ``version`` by exactly one.
    A call that changes nothing returns the ledger unchanged.
    """
    project = find_project(ledger, project_id)
    record = find_record(project, record_id)
    ensure_editable(record)

    allowed = set(_COMMON_EDITS)
    if isinstance(record, MilestoneRecord):
        allowed |= _MILESTONE_EDITS
        allowed.discard("milestone_id")
    elif isinstance(record, LetterRecord):
        allowed |= _LETTER_EDITS
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(
            f"Cannot edit {sorted(unknown)} on a {record.kind} record"
        )

    update: dict[str, Any] = {}
    if "side" in changes:
        update["side"] = Side(changes["side"])
    for key in ("label", "details"):
        if key in changes:
            update[key] = (changes[key] or "").strip()
    if "milestone_id" in changes:
        update["milestone_id"] = (changes["milestone_id"] or "").strip() or None

    if isinstance(record, MilestoneRecord):
        meta_update: dict[str, Any] = {}
        if "due_at" in changes:
            meta_update["due_at"] = (changes["due_at"] or "").strip() or None
        if "milestone_status" in changes:
            meta_update["status"] = MilestoneStatus(changes["milestone_status"])
        if meta_update:
            update["milestone"] = record.milestone.model_copy(update=meta_update)

    if isinstance(record, LetterRecord):
        letter_update: dict[str, Any] = {}
        if "letter_type" in changes:
            letter_update["type"] = LetterType(changes["letter_type"])
        if "base_letter_id" in changes:
            letter_update["base_letter_id"] = (changes["base_letter_id"] or "").strip() or None
        if "fields" in changes:
            fields = changes["fields"]
            if not isinstance(fields, LetterFields):
                fields = record.letter.fields.model_copy(update=dict(fields))
            letter_update["fields"] = fields
        if "milestone_id" in update:
            letter_update["milestone_id"] = update["milestone_id"]
        if letter_update:
            update["letter"] = record.letter.model_copy(update=letter_update)

    if "label" in update and not update["label"]:
        update["label"] = _DEFAULT_LABELS[record.kind]

    edited = record.model_copy(update=update)
    if edited == record:
        return ledger

    if isinstance(edited, LetterRecord):
        edited = edited.model_copy(
            update={
                "letter": edited.letter.model_copy(
                    update={"version": record.letter.version + 1}
                )
            }
        )
    return replace_project(ledger, replace_record(project, edited))


def delete_record(ledger: Ledger, project_id: str, record_id: str) -> Ledger:
    """Remove a record from its project.

    A revoked record leaves a ``SealTombstone`` so the chain stays
    verifiable.
    """
    project = find_project(ledger, project_id)
    record = find_record(project, record_id)
    ensure_deletable(record)

    tombstones = project.tombstones
    if record.seal is not None:
        tombstones = tombstones + (
            SealTombstone(
                record_id=record.id,
                sealed_at=record.seal.sealed_at,
                prev_hash=record.seal.prev_hash,
                entry_hash=record.seal.entry_hash,
                revoked_at=record.seal.revoked_at or utc_now_iso(),
            ),
        )
    return replace_project(
        ledger,
        project.model_copy(
            update={
                "records": tuple(r for r in project.records if r.id != record_id),
                "tombstones": tombstones,
            }
        ),
    )


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


def add_artifact(
    ledger: Ledger, project_id: str, record_id: str, artifact: ArtifactMeta
) -> Ledger:
    project = find_project(ledger, project_id)
    record = find_record(project, record_id)
    if record.seal is not None:
        ensure_editable(record)
    return _update_record(
        ledger,
        project_id,
        record.model_copy(update={"artifacts": record.artifacts + (artifact,)}),
    )


def remove_artifact(ledger: Ledger, project_id: str, record_id: str, index: int) -> Ledger:
    project = find_project(ledger, project_id)
    record = find_record(project, record_id)
    if record.seal is not None:
        ensure_editable(record)
    if not 0 <= index < len(record.artifacts):
        raise IndexError(f"Record {record_id} has no artifact #{index}")
    artifacts = record.artifacts[:index] + record.artifacts[index + 1 :]
    return _update_record(ledger, project_id, record.model_copy(update={"artifacts": artifacts}))


# ---------------------------------------------------------------------------
# Letters
# ---------------------------------------------------------------------------


def _require_letter(project: Project, record_id: str) -> LetterRecord:
    record = find_record(project, record_id)
    if not isinstance(record, LetterRecord):
        raise ValueError(f"Record {record_id} is a {record.kind}, not a Letter")
    return record


def mark_letter_sent(
    ledger: Ledger, project_id: str, record_id: str, *, sent_at: str | None = None
) -> Ledger:
    """Mark a letter ``sent`` and stamp ``sent_at``.

    Sending again re-stamps ``sent_at``. Confirmed letters are left as they are.
    """
    project = find_project(ledger, project_id)
    record = _require_letter(project, record_id)
    if record.letter.status == LetterStatus.CONFIRMED:
        return ledger
    ensure_editable(record)
    letter = record.letter.model_copy(
        update={"status": LetterStatus.SENT, "sent_at": sent_at or utc_now_iso()}
    )
    return _update_record(ledger, project_id, record.model_copy(update={"letter": letter}))


def confirm_letter(
    ledger: Ledger,
    project_id: str,
    record_id: str,
    confirmed_by: Side,
    *,
    confirmed_at: str | None = None,
) -> Ledger:
    """Confirm a letter and freeze a copy of its content.

    The snapshot is taken once here and never recomputed. Confirming an
    already confirmed letter is a no-op.
    """
    project = find_project(ledger, project_id)
    record = _require_letter(project, record_id)
    if record.letter.status == LetterStatus.CONFIRMED:
        return ledger
    ensure_editable(record)

    locked_at = confirmed_at or utc_now_iso()
    snapshot = LockedSnapshot(
        label=record.label,
        details=record.details,
        fields=record.letter.fields.model_copy(deep=True),
        locked_at=locked_at,
    )
    letter = record.letter.model_copy(
        update={
            "status": LetterStatus.CONFIRMED,
            "confirmed_at": locked_at,
            "confirmed_by": Side(confirmed_by),
            "locked_snapshot": snapshot,
        }
    )
    return _update_record(ledger, project_id, record.model_copy(update={"letter": letter}))


def derive_change_letter(
    ledger: Ledger,
    project_id: str,
    base_letter_id: str,
    *,
    side: Side | None = None,
) -> tuple[Ledger, LetterRecord]:
    """Create a draft Change letter that revises *base_letter_id*.

    This is the way to amend a sealed or confirmed letter: the base stays
    untouched and the new letter points back at it.
    """
    project = find_project(ledger, project_id)
    base = _require_letter(project, base_letter_id)
    change = new_letter(
        side or base.side,
        f"Change: {base.label}",
        "",
        letter_type=LetterType.CHANGE,
        fields=base.letter.fields.model_copy(deep=True),
        milestone_id=bound_milestone_id(base),
        base_letter_id=base.id,
    )
    return add_record(ledger, project_id, change), change


# ---------------------------------------------------------------------------
# Weak references
# ---------------------------------------------------------------------------


def bound_milestone_id(record: Record) -> str | None:
    """The milestone a note or letter is bound to. Milestones bind to nothing."""
    if isinstance(record, MilestoneRecord):
        return None
    if isinstance(record, LetterRecord):
        return record.letter.milestone_id or record.milestone_id
    return record.milestone_id


def resolve_milestone(project: Project, milestone_id: str | None) -> MilestoneRecord | None:
    """Look up a milestone by id. Dangling references resolve to ``None``."""
    if not milestone_id:
        return None
    for record in project.records:
        if record.id == milestone_id and isinstance(record, MilestoneRecord):
            return record
    return None


def resolve_base_letter(project: Project, letter: LetterRecord) -> LetterRecord | None:
    base_id = letter.letter.base_letter_id
    if not base_id:
        return None
    for record in project.records:
        if record.id == base_id and isinstance(record, LetterRecord):
            return record
    return None


def milestone_title(project: Project, milestone_id: str | None) -> str:
    milestone = resolve_milestone(project, milestone_id)
    if milestone is None:
        return UNKNOWN_MILESTONE
    return milestone.label or DEFAULT_MILESTONE_LABEL


def linked_record_count(project: Project, milestone_id: str) -> int:
    """Number of notes and letters bound to a milestone."""
    return sum(1 for r in project.records if bound_milestone_id(r) == milestone_id)
