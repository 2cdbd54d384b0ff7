"""Time-Shards CLI — Typer-based command-line interface.

Provides the ``timeshards`` command with subcommands for managing projects,
recording notes, milestones and letters, sealing records, verifying
chains, and moving the ledger in and out as JSON.

All output uses Rich for formatted terminal display.
"""
