"""``timeshards letter-send|letter-confirm|change-letter|letter-text``."""

from __future__ import annotations

import typer
from rich.panel import Panel
from rich.text import Text

from timeshards.cli.commands._common import console, fail, open_session, short
from timeshards.core.letters import render_letter_text
from timeshards.models.records import LetterRecord, Side

PROJECT_ARG = typer.Argument(..., metavar="PROJECT", help="Project id, id prefix, or name.")
LETTER_ARG = typer.Argument(..., metavar="LETTER", help="Letter id or id prefix.")


def letter_send_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    letter_ref: str = LETTER_ARG,
) -> None:
    """Mark a draft letter as sent."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        letter = session.resolve_record(project.id, letter_ref)
        record = session.send_letter(project.id, letter.id)
        console.print(f"[green]Letter {short(record.id)} is {record.letter.status.value}.[/green]")


def letter_confirm_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    letter_ref: str = LETTER_ARG,
    by: Side = typer.Option(Side.CLIENT, "--by", help="Who confirmed the letter."),
) -> None:
    """Confirm a letter and lock a snapshot of its content."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        letter = session.resolve_record(project.id, letter_ref)
        record = session.confirm_letter(project.id, letter.id, by)
        console.print(
            f"[green]Letter {short(record.id)} confirmed at {record.letter.confirmed_at}.[/green] "
            "Further changes need a change letter."
        )


def change_letter_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    letter_ref: str = LETTER_ARG,
) -> None:
    """Draft a Change letter that revises an existing letter."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        base = session.resolve_record(project.id, letter_ref)
        change = session.derive_change_letter(project.id, base.id)
        console.print(f"[green]Change letter drafted:[/green] {change.label} [cyan]{change.id}[/cyan]")


def letter_text_cmd(
    ctx: typer.Context,
    project_ref: str = PROJECT_ARG,
    letter_ref: str = LETTER_ARG,
    plain: bool = typer.Option(False, "--plain", help="Print text only, for piping."),
) -> None:
    """Render a letter as plain text ready to paste into an email."""
    with open_session(ctx) as session:
        project = session.resolve_project(project_ref)
        record = session.resolve_record(project.id, letter_ref)
        if not isinstance(record, LetterRecord):
            fail(f"Record {short(record.id)} is a {record.kind}, not a Letter.")
        text = render_letter_text(project, record)
        if plain:
            console.print(text, markup=False, highlight=False)
        else:
            console.print(Panel(Text(text), title=f"Letter v{record.letter.version}", border_style="blue"))
