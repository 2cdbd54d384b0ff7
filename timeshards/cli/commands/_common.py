"""Helpers shared by the CLI commands: session scope, errors and reference parsing."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

import typer
from rich.console import Console

from timeshards.config import TimeShardsConfig
from timeshards.core.session import LedgerSession
from timeshards.errors import PersistenceError, TimeShardsError
from timeshards.models.project import Project

console = Console()


def fail(message: str, code: int = 1) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(code=code)


@contextmanager
def open_session(ctx: typer.Context) -> Iterator[LedgerSession]:
    """Open a session for one command and flush it on the way out.

    Ledger errors become a red message and exit code 1.
    """
    settings = ctx.obj if isinstance(ctx.obj, TimeShardsConfig) else TimeShardsConfig()
    try:
        session = LedgerSession.from_config(settings)
    except TimeShardsError as exc:
        fail(str(exc))
    for issue in session.restore_issues:
        console.print(f"[yellow]Restored with correction:[/yellow] {issue}")
    try:
        yield session
    except (TimeShardsError, ValueError, IndexError) as exc:
        fail(str(exc))
    finally:
        try:
            session.close()
        except PersistenceError as exc:
            fail(f"Changes could not be saved: {exc}")


def optional_record_id(session: LedgerSession, project: Project, ref: str | None) -> str | None:
    """Resolve an optional reference option. An empty string clears the link."""
    if ref is None:
        return None
    if not ref:
        return ""
    return session.resolve_record(project.id, ref).id


def short(identifier: str) -> str:
    return identifier[:8]
