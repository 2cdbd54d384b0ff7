"""``timeshards note|milestone|letter|edit|delete|attach`` — record editing."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from timeshards.cli.commands._common import (
    console,
    fail,
    open_session,
    optional_record_id,
    short,
)
from timeshards.models.records import (
    LetterFields,
    LetterRecord,
    LetterType,
    MilestoneStatus,
    Side,
)

PROJECT_ARG = typer.Argument(..., metavar="PROJECT", help="Project id, id prefix, or name.")
RECORD_ARG = typer.Argument(..., metavar="RECORD", help="Record id or id prefix.")


def _letter_field_options(
    deliverables: str | None,
    usage: str | None,
    deadline: str | None,
    revisions: str | None,
    acceptance: str | None,
    scope: str | None,
    references: str | None,
) -> dict[str, str]:
    given = {
        "deliverables": deliverables,
        "usage": usage,
        "deadline": deadline,
        "revisions": revisions,
        "acceptance": acceptance,
        "scope_boundaries": scope,
        "references": references,
    }
    return {k: v.strip() for k, v in given.items() if v is not None}


def note_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    label: str = typer.Option("", "--label", "-l", help="Short title."),
    details: str = typer.Option("", "--details", "-d", help="Free text."),
    side: Side = typer.Option(Side.ARTIST, "--side", help="Who the note is from."),
    milestone_ref: str = typer.Option(None, "--milestone", "-m", help="Bind to a milestone."),
) -> None:
    """Add a note."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.add_note(
            project.id,
            label,
            details,
            side=side,
            milestone_id=optional_record_id(session, project, milestone_ref),
        )
        console.print(f"[green]Note added:[/green] {record.label} [cyan]{record.id}[/cyan]")


def milestone_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    label: str = typer.Argument(..., help="Milestone title."),
    details: str = typer.Option("", "--details", "-d"),
    side: Side = typer.Option(Side.ARTIST, "--side"),
    due: str = typer.Option(None, "--due", help="Due date, e.g. 2025-03-01."),
    status: MilestoneStatus = typer.Option(MilestoneStatus.PLANNED, "--status"),
) -> None:
    """Add a milestone."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.add_milestone(
            project.id, label, details, side=side, due_at=due, status=status
        )
        console.print(f"[green]Milestone added:[/green] {record.label} [cyan]{record.id}[/cyan]")


def letter_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    label: str = typer.Option("", "--label", "-l", help="Subject line."),
    details: str = typer.Option("", "--details", "-d", help="Body text."),
    side: Side = typer.Option(Side.ARTIST, "--side"),
    letter_type: LetterType = typer.Option(LetterType.PROPOSAL, "--type", "-t"),
    milestone_ref: str = typer.Option(None, "--milestone", "-m"),
    base_ref: str = typer.Option(None, "--base", help="Letter this one revises."),
    deliverables: str = typer.Option(None, "--deliverables"),
    usage: str = typer.Option(None, "--usage"),
    deadline: str = typer.Option(None, "--deadline"),
    revisions: str = typer.Option(None, "--revisions"),
    acceptance: str = typer.Option(None, "--acceptance"),
    scope: str = typer.Option(None, "--scope", help="Scope boundaries."),
    references: str = typer.Option(None, "--references"),
) -> None:
    """Draft a negotiation letter."""
    fields = LetterFields(
        **_letter_field_options(
            deliverables, usage, deadline, revisions, acceptance, scope, references
        )
    )
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.add_letter(
            project.id,
            label,
            details,
            side=side,
            letter_type=letter_type,
            fields=fields,
            milestone_id=optional_record_id(session, project, milestone_ref),
            base_letter_id=optional_record_id(session, project, base_ref),
        )
        console.print(f"[green]Letter drafted:[/green] {record.label} [cyan]{record.id}[/cyan]")


def edit_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    record_ref: str = RECORD_ARG,
    label: str = typer.Option(None, "--label", "-l"),
    details: str = typer.Option(None, "--details", "-d"),
    side: Side = typer.Option(None, "--side"),
    milestone_ref: str = typer.Option(
        None, "--milestone", "-m", help="Bind to a milestone; pass '' to unbind."
    ),
    due: str = typer.Option(None, "--due"),
    status: MilestoneStatus = typer.Option(None, "--status"),
    letter_type: LetterType = typer.Option(None, "--type", "-t"),
    base_ref: str = typer.Option(None, "--base"),
    deliverables: str = typer.Option(None, "--deliverables"),
    usage: str = typer.Option(None, "--usage"),
    deadline: str = typer.Option(None, "--deadline"),
    revisions: str = typer.Option(None, "--revisions"),
    acceptance: str = typer.Option(None, "--acceptance"),
    scope: str = typer.Option(None, "--scope"),
    references: str = typer.Option(None, "--references"),
) -> None:
    """Edit an unsealed record. Letter edits bump the letter version."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.resolve_record(project.id, record_ref)

        changes: dict[str, Any] = {}
        if label is not None:
            changes["label"] = label
        if details is not None:
            changes["details"] = details
        if side is not None:
            changes["side"] = side
        if milestone_ref is not None:
            changes["milestone_id"] = optional_record_id(session, project, milestone_ref)
        if due is not None:
            changes["due_at"] = due
        if status is not None:
            changes["milestone_status"] = status
        if letter_type is not None:
            changes["letter_type"] = letter_type
        if base_ref is not None:
            changes["base_letter_id"] = optional_record_id(session, project, base_ref)
        field_changes = _letter_field_options(
            deliverables, usage, deadline, revisions, acceptance, scope, references
        )
        if field_changes:
            changes["fields"] = field_changes
        if not changes:
            fail("Nothing to change.")

        edited = session.edit_record(project.id, record.id, **changes)
        version = f" (v{edited.letter.version})" if isinstance(edited, LetterRecord) else ""
        console.print(f"[green]Updated[/green] {edited.kind} {short(edited.id)}{version}")


def delete_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    record_ref: str = RECORD_ARG,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete a record. Sealed records must be revoked first."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.resolve_record(project.id, record_ref)
        if not yes and not typer.confirm(f"Delete {record.kind} {record.label!r}?"):
            raise typer.Abort()
        session.delete_record(project.id, record.id)
        console.print(f"[green]Deleted[/green] {record.kind} {short(record.id)}")


def attach_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    record_ref: str = RECORD_ARG,
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    note: str = typer.Option(None, "--note", help="Annotation stored with each file."),
) -> None:
    """Hash files and attach their digests to a record. File bytes are not stored."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.resolve_record(project.id, record_ref)
        for path in files:
            artifact = session.attach(project.id, record.id, path, note=note)
            console.print(
                f"[green]Attached[/green] {artifact.name} "
                f"({artifact.byte_size} bytes) sha256 [cyan]{artifact.digest_hex}[/cyan]"
            )
