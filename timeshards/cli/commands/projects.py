"""``timeshards projects|project-add|project-rename|project-delete|show``."""

from __future__ import annotations

import typer
from rich.panel import Panel
from rich.table import Table

from timeshards.cli.commands._common import console, fail, open_session, short
from timeshards.core.records import bound_milestone_id, linked_record_count, milestone_title
from timeshards.models.records import LetterRecord, MilestoneRecord, Record
from timeshards.models.seal import SealState

_STATE_STYLES = {
    SealState.UNSEALED: "[dim]unsealed[/dim]",
    SealState.SEALING: "[yellow]sealing[/yellow]",
    SealState.SEALED: "[green]sealed[/green]",
    SealState.REVOKED: "[red]revoked[/red]",
}


def projects_cmd(ctx: typer.Context) -> None:
    """List every project in the ledger."""
    with open_session(ctx) as session:
        projects = session.projects
        if not projects:
            console.print("[dim]No projects. Create one with 'timeshards project-add'.[/dim]")
            return

        table = Table(title="Projects")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="bold")
        table.add_column("Records", justify="right")
        table.add_column("Sealed", justify="right")
        table.add_column("Created")
        for p in projects:
            sealed = sum(1 for r in p.records if r.is_sealed)
            table.add_row(short(p.id), p.name, str(len(p.records)), str(sealed), p.created_at)
        console.print(table)


def project_add_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name, e.g. the client or commission."),
    summary: str = typer.Option("", "--summary", "-s", help="One-line description."),
) -> None:
    """Create a new project."""
    with open_session(ctx) as session:
        project = session.add_project(name, summary)
        console.print(f"[bold green]Project created:[/bold green] {project.name} [cyan]{project.id}[/cyan]")


def project_rename_cmd(
    ctx: typer.Context,
    project_ref: str = typer.Argument(..., metavar="PROJECT", help="Project id, id prefix, or name."),
    name: str = typer.Option(None, "--name", "-n", help="New project name."),
    summary: str = typer.Option(None, "--summary", "-s", help="New summary."),
) -> None:
    """Rename a project or change its summary."""
    if name is None and summary is None:
        fail("Nothing to change. Pass --name and/or --summary.")
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        if name is not None:
            project = session.rename_project(project.id, name)
        if summary is not None:
            project = session.update_summary(project.id, summary)
        console.print(f"[green]Project updated:[/green] {project.name}")


def project_delete_cmd(
    ctx: typer.Context,
    project_ref: str = typer.Argument(..., metavar="PROJECT", help="Project id, id prefix, or name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete a project and all of its records."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        if not yes and not typer.confirm(
            f"Delete {project.name!r} and its {len(project.records)} records?"
        ):
            raise typer.Abort()
        session.delete_project(project.id)
        console.print(f"[green]Deleted project[/green] {project.name}")


def _describe(project, record: Record) -> str:
    if isinstance(record, MilestoneRecord):
        meta = record.milestone
        due = f" due {meta.due_at}" if meta.due_at else ""
        return f"{meta.status.value}{due}, {linked_record_count(project, record.id)} linked"
    parts = []
    if isinstance(record, LetterRecord):
        parts.append(f"{record.letter.type.value} v{record.letter.version} {record.letter.status.value}")
    milestone_id = bound_milestone_id(record)
    if milestone_id:
        parts.append(f"-> {milestone_title(project, milestone_id)}")
    return ", ".join(parts)


def show_cmd(
    ctx: typer.Context,
    project_ref: str = typer.Argument(..., metavar="PROJECT", help="Project id, id prefix, or name."),
    milestone_ref: str = typer.Option(
        None, "--milestone", "-m", help="Only records bound to this milestone."
    ),
) -> None:
    """Show a project's records with their seal state."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        records = list(project.records)
        if milestone_ref:
            milestone = session.resolve_record(project.id, milestone_ref)
            records = [
                r for r in records if r.id == milestone.id or bound_milestone_id(r) == milestone.id
            ]

        console.print(
            Panel(
                "\n".join(
                    [
                        f"[bold]{project.name}[/bold]",
                        project.summary or "[dim]No summary[/dim]",
                        f"ID: [cyan]{project.id}[/cyan]",
                        f"Tombstones: {len(project.tombstones)}",
                    ]
                ),
                title="Project",
                border_style="blue",
            )
        )

        table = Table(show_lines=False)
        table.add_column("ID", style="cyan")
        table.add_column("Kind")
        table.add_column("Side")
        table.add_column("Label", style="bold")
        table.add_column("Info")
        table.add_column("Files", justify="right")
        table.add_column("Seal")
        for r in records:
            state = session.seal_state(project.id, r.id)
            table.add_row(
                short(r.id),
                r.kind,
                r.side.value,
                r.label,
                _describe(project, r),
                str(len(r.artifacts)),
                _STATE_STYLES[state],
            )
        console.print(table)
