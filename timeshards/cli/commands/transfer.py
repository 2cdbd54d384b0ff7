"""``timeshards export|import`` — move the whole ledger in and out as JSON."""

from __future__ import annotations

from pathlib import Path

import typer

from timeshards.cli.commands._common import console, open_session


def export_cmd(
    ctx: typer.Context,
    directory: Path = typer.Option(
        None, "--dir", "-o", file_okay=False, help="Target directory (default: export_dir)."
    ),
) -> None:
    """Export every project to a JSON document."""
    with open_session(ctx) as session:
        target_dir = directory or ctx.obj.export_dir
        path = session.export(target_dir)
        console.print(f"[green]Exported[/green] {len(session.projects)} projects to {path}")


def import_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Replace every project with the contents of an export document."""
    with open_session(ctx) as session:
        if not yes and not typer.confirm(
            f"Replace all {len(session.projects)} current projects with {path.name}?"
        ):
            raise typer.Abort()
        result = session.import_file(path)
        for issue in result.issues:
            console.print(f"[yellow]Corrected:[/yellow] {issue}")
        records = sum(len(p.records) for p in result.projects)
        console.print(
            f"[green]Imported[/green] {len(result.projects)} projects, {records} records "
            f"({len(result.issues)} corrections)."
        )
