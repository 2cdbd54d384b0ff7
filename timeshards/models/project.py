"""Project and ledger models."""

from __future__ import annotations

from pydantic import Field

from timeshards.models.records import LedgerModel, Record, new_id, utc_now_iso


class SealTombstone(LedgerModel):
    """Chain link left behind when a revoked record is deleted.

    The record's content is gone, so only the link itself can be checked.
    """

    record_id: str
    sealed_at: str
    prev_hash: str
    entry_hash: str
    revoked_at: str
    deleted_at: str = Field(default_factory=utc_now_iso)


class Project(LedgerModel):
    """A client engagement. Owns its records exclusively."""

    id: str = Field(default_factory=new_id)
    name: str = "Untitled"
    summary: str = ""
    created_at: str = Field(default_factory=utc_now_iso)
    records: tuple[Record, ...] = ()
    tombstones: tuple[SealTombstone, ...] = ()

    def record_ids(self) -> list[str]:
        return [r.id for r in self.records]


class Ledger(LedgerModel):
    """The full, immutable collection of projects held by a session."""

    projects: tuple[Project, ...] = ()
