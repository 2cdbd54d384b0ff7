"""Main Typer application — imports and registers all CLI commands.

Entry point: ``timeshards`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from timeshards.cli.commands.letters import (
    change_letter_cmd,
    letter_confirm_cmd,
    letter_send_cmd,
    letter_text_cmd,
)
from timeshards.cli.commands.projects import (
    project_add_cmd,
    project_delete_cmd,
    project_rename_cmd,
    projects_cmd,
    show_cmd,
)
from timeshards.cli.commands.records import (
    attach_cmd,
    delete_cmd,
    edit_cmd,
    letter_cmd,
    milestone_cmd,
    note_cmd,
)
from timeshards.cli.commands.seals import receipt_cmd, revoke_cmd, seal_cmd, verify_cmd
from timeshards.cli.commands.transfer import export_cmd, import_cmd
from timeshards.config import TimeShardsConfig

app = typer.Typer(
    name="timeshards",
    help="Time-Shards: a provenance ledger for commissioned creative work.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    store: Path = typer.Option(
        None, "--store", envvar="TIMESHARDS_STORE_PATH", help="Path to the ledger database."
    ),
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (default from TIMESHARDS_LOG_LEVEL)."
    ),
) -> None:
    """Load configuration and set up logging for every command."""
    settings = TimeShardsConfig()
    if store is not None:
        settings = settings.model_copy(update={"store_path": store})
    level = (log_level or settings.log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=settings.debug)],
        force=True,
    )
    ctx.obj = settings


# Projects
app.command(name="projects", help="List projects.")(projects_cmd)
app.command(name="project-add", help="Create a project.")(project_add_cmd)
app.command(name="project-rename", help="Rename a project or change its summary.")(
    project_rename_cmd
)
app.command(name="project-delete", help="Delete a project.")(project_delete_cmd)
app.command(name="show", help="Show a project's records.")(show_cmd)

# Records
app.command(name="note", help="Add a note.")(note_cmd)
app.command(name="milestone", help="Add a milestone.")(milestone_cmd)
app.command(name="letter", help="Draft a negotiation letter.")(letter_cmd)
app.command(name="edit", help="Edit an unsealed record.")(edit_cmd)
app.command(name="delete", help="Delete a record.")(delete_cmd)
app.command(name="attach", help="Attach file digests to a record.")(attach_cmd)

# Letters
app.command(name="letter-send", help="Mark a letter as sent.")(letter_send_cmd)
app.command(name="letter-confirm", help="Confirm a letter and lock its content.")(
    letter_confirm_cmd
)
app.command(name="change-letter", help="Draft a change letter from an existing one.")(
    change_letter_cmd
)
app.command(name="letter-text", help="Render a letter as plain text.")(letter_text_cmd)

# Seals
app.command(name="seal", help="Seal a record with the proof authority.")(seal_cmd)
app.command(name="revoke", help="Revoke a record's seal.")(revoke_cmd)
app.command(name="verify", help="Verify project hash chains.")(verify_cmd)
app.command(name="receipt", help="Print a seal receipt.")(receipt_cmd)

# Transfer
app.command(name="export", help="Export all projects to JSON.")(export_cmd)
app.command(name="import", help="Import projects from a JSON export.")(import_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
