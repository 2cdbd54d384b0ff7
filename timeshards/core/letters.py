"""Plain-text letters and shareable seal receipts."""

from __future__ import annotations

from typing import Any

from timeshards.core.records import bound_milestone_id, resolve_milestone
from timeshards.models.project import Project
from timeshards.models.records import LetterRecord, LetterStatus, Record, Side

RECEIPT_VERSION = 1

_TYPE_TITLES = {
    "Proposal": "Proposal",
    "Change": "Change request",
    "Acceptance": "Acceptance",
}

_FIELD_TITLES = [
    ("deliverables", "Deliverables"),
    ("usage", "Usage"),
    ("deadline", "Deadline"),
    ("revisions", "Revisions"),
    ("acceptance", "Acceptance criteria"),
    ("scope_boundaries", "Scope boundaries"),
    ("references", "References"),
]

_SIDE_NAMES = {Side.ARTIST: "the artist", Side.CLIENT: "the client", Side.BOTH: "both parties"}


def render_letter_text(project: Project, record: LetterRecord) -> str:
    """Render a letter as plain text ready to paste into an email.

    Empty fields are skipped. Confirmed letters render their locked
    snapshot rather than the current fields.
    """
    letter = record.letter
    label, details, fields = record.label, record.details, letter.fields
    if letter.status == LetterStatus.CONFIRMED and letter.locked_snapshot is not None:
        snap = letter.locked_snapshot
        label, details, fields = snap.label, snap.details, snap.fields

    milestone = resolve_milestone(project, bound_milestone_id(record))
    title = _TYPE_TITLES[letter.type.value]
    if milestone is not None:
        title += f" · Milestone: {milestone.label}"

    lines = [title, f"Subject: {label}", ""]
    for attr, heading in _FIELD_TITLES:
        value = getattr(fields, attr).strip()
        if value:
            lines.append(f"- {heading}: {value}")
    if lines[-1] != "":
        lines.append("")
    if details.strip():
        lines.append(details.strip())
        lines.append("")
    if letter.status == LetterStatus.CONFIRMED and letter.confirmed_at:
        by = f" by {_SIDE_NAMES[letter.confirmed_by]}" if letter.confirmed_by else ""
        lines.append(f"(Confirmed at {letter.confirmed_at}{by})")
    return "\n".join(lines)


def public_receipt(record: Record) -> dict[str, Any]:
    """Seal receipt safe to share: hashes, timestamps, signature. No token."""
    if record.seal is None:
        raise ValueError(f"Record {record.id} is not sealed")
    receipt: dict[str, Any] = {"version": RECEIPT_VERSION}
    receipt.update(record.seal.model_dump(mode="json", by_alias=True, exclude_none=True))
    return receipt


def owner_receipt(record: Record) -> dict[str, Any]:
    """Public receipt plus the owner delete token. Keep it private."""
    receipt = public_receipt(record)
    receipt["ownerDeleteToken"] = record.owner_delete_token
    return receipt
