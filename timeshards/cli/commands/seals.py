"""``timeshards seal|revoke|verify|receipt`` — proofs of existence."""

from __future__ import annotations

import json

import typer
from rich.panel import Panel

from timeshards.cli.commands._common import console, fail, open_session, short
from timeshards.core.letters import owner_receipt, public_receipt
from timeshards.errors import ChainIntegrityError

PROJECT_ARG = typer.Argument(..., metavar="PROJECT", help="Project id, id prefix, or name.")
RECORD_ARG = typer.Argument(..., metavar="RECORD", help="Record id or id prefix.")


def seal_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    record_ref: str = RECORD_ARG,
) -> None:
    """Seal a record: timestamp its entry hash with the proof authority.

    Only hashes leave the machine. A sealed record can no longer be edited.
    """
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.resolve_record(project.id, record_ref)
        sealed = session.seal(project.id, record.id)
        console.print(
            Panel(
                "\n".join(
                    [
                        f"[bold green]Sealed[/bold green] {sealed.kind} {sealed.label}",
                        f"Sealed at:  {sealed.seal.sealed_at}",
                        f"Entry hash: [cyan]{sealed.seal.entry_hash}[/cyan]",
                        f"Prev hash:  [dim]{sealed.seal.prev_hash}[/dim]",
                        "",
                        "Keep the owner receipt ('timeshards receipt --owner') to revoke later.",
                    ]
                ),
                title="Seal",
                border_style="green",
            )
        )


def revoke_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    record_ref: str = RECORD_ARG,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Revoke a record's seal. The receipt is kept and marked revoked."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.resolve_record(project.id, record_ref)
        if not yes and not typer.confirm(f"Revoke the seal on {record.label!r}?"):
            raise typer.Abort()
        revoked = session.revoke(project.id, record.id)
        console.print(f"[yellow]Seal revoked[/yellow] at {revoked.seal.revoked_at}")


def verify_cmd(
    ctx: typer.Context,
    project_ref: str = typer.Argument(
        None, metavar="[PROJECT]", help="Project to verify. All projects when omitted."
    ),
) -> None:
    """Recompute every entry hash and check the chain links."""
    with open_session(ctx) as session:
        projects = (
            [session.resolve_project(project_ref)] if project_ref else list(session.projects)
        )
        failures = 0
        for project in projects:
            try:
                report = session.verify(project.id)
            except ChainIntegrityError as exc:
                failures += 1
                console.print(f"[bold red]FAILED[/bold red] {project.name}: {exc}")
                continue
            console.print(
                f"[green]OK[/green] {project.name}: {report.sealed_records} sealed, "
                f"{report.tombstones} tombstones, head [cyan]{short(report.head)}[/cyan]"
            )
        if failures:
            fail(f"{failures} project chain(s) failed verification.")


def receipt_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    record_ref: str = RECORD_ARG,
    owner: bool = typer.Option(
        False, "--owner", help="Include the owner delete token. Keep that receipt private."
    ),
) -> None:
    """Print a record's seal receipt as JSON."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.resolve_record(project.id, record_ref)
        if record.seal is None:
            fail(f"Record {short(record.id)} is not sealed.")
        receipt = owner_receipt(record) if owner else public_receipt(record)
        typer.echo(json.dumps(receipt, indent=2))
