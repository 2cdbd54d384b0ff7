"""Chain linker — binds each sealed record to the one sealed before it.

Every seal commits to ``prev_hash``, the entry hash of the project's most
recently sealed record (or the all-zero genesis hash). Links are ordered by
``sealed_at``; ISO-8601 timestamps from the authority sort correctly as
strings.

Ordering by authority timestamps assumes they are strictly increasing
per project. Skewed or colliding timestamps would make the head ambiguous.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict

from timeshards.core.hasher import hash_canonical
from timeshards.errors import ChainIntegrityError
from timeshards.models.project import Project, SealTombstone
from timeshards.models.records import (
    LetterRecord,
    MilestoneRecord,
    Record,
    SealMeta,
)
from timeshards.models.versioning import GENESIS_HASH, TOOL_ID, TOOL_VERSION

ChainLink = Union[Record, SealTombstone]


class ChainReport(BaseModel):
    """Outcome of a successful ``verify_chain`` walk."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    link_count: int
    sealed_records: int
    tombstones: int
    head: str


def _seal_of(record: Record) -> SealMeta:
    if record.seal is None:
        raise ChainIntegrityError(f"Record {record.id} is not sealed and has no chain link")
    return record.seal


def link_sealed_at(link: ChainLink) -> str:
    """The authority timestamp of a chain link."""
    if isinstance(link, SealTombstone):
        return link.sealed_at
    return _seal_of(link).sealed_at


def _link_hashes(link: ChainLink) -> tuple[str, str]:
    if isinstance(link, SealTombstone):
        return link.prev_hash, link.entry_hash
    seal = _seal_of(link)
    return seal.prev_hash, seal.entry_hash


def chain_links(project: Project) -> list[ChainLink]:
    """All links of a project's chain, oldest first.

    Includes tombstones of revoked-then-deleted records so that later links
    still find their predecessor.
    """
    links: list[ChainLink] = [
        r for r in project.records if r.seal is not None and r.seal.entry_hash
    ]
    links.extend(project.tombstones)
    return sorted(links, key=link_sealed_at)


def head_of(project: Project) -> str:
    """Return the current chain head for *project*.

    The entry hash of the most recently sealed link, or ``GENESIS_HASH``
    when nothing has been sealed yet.
    """
    links = chain_links(project)
    if not links:
        return GENESIS_HASH
    return _link_hashes(links[-1])[1]


def record_snapshot(record: Record) -> dict[str, Any]:
    """The provenance-relevant fields of a record, JSON-compatible.

    Seal metadata, the owner token, and artifact descriptions are excluded.
    Artifacts enter the payload by digest only. Milestone and letter metadata
    keep every key, unset ones as ``null``.
    """
    milestone = None
    letter = None
    if isinstance(record, MilestoneRecord):
        milestone = record.milestone.model_dump(mode="json", by_alias=True)
    elif isinstance(record, LetterRecord):
        letter = record.letter.model_dump(mode="json", by_alias=True)

    return {
        "id": record.id,
        "kind": record.kind,
        "side": record.side.value,
        "label": record.label,
        "details": record.details,
        "createdAt": record.created_at,
        "milestoneId": record.milestone_id,
        "milestone": milestone,
        "letter": letter,
    }


def build_entry_payload(project: Project, record: Record, prev_hash: str) -> dict[str, Any]:
    """Assemble the exact value whose canonical encoding is hashed.

    The shape is fixed for a given ``TOOL_VERSION``.
    """
    return {
        "tool": TOOL_ID,
        "toolVersion": TOOL_VERSION,
        "projectId": project.id,
        "projectName": project.name,
        "shard": record_snapshot(record),
        "artifacts": record.artifact_digests(),
        "prevHash": prev_hash,
    }


def compute_entry_hash(project: Project, record: Record, prev_hash: str) -> str:
    """SHA-256 of the canonical entry payload."""
    return hash_canonical(build_entry_payload(project, record, prev_hash))


def verify_chain(project: Project) -> ChainReport:
    """Verify every link of a project's chain.

    Walks links oldest first, checks that each ``prev_hash`` is the entry
    hash of the link before it (genesis for the first), and recomputes the
    entry hash of every sealed record still present.

    Returns a ``ChainReport``; raises ``ChainIntegrityError`` otherwise.
    """
    links = chain_links(project)
    expected_prev = GENESIS_HASH
    sealed = 0

    for link in links:
        prev_hash, entry_hash = _link_hashes(link)
        link_id = link.record_id if isinstance(link, SealTombstone) else link.id

        if prev_hash != expected_prev:
            raise ChainIntegrityError(
                f"Chain broken at record {link_id}: "
                f"expected prev_hash={expected_prev!r}, got {prev_hash!r}"
            )

        if not isinstance(link, SealTombstone):
            sealed += 1
            recomputed = compute_entry_hash(project, link, prev_hash)
            if recomputed != entry_hash:
                raise ChainIntegrityError(
                    f"Tampered record {link_id}: "
                    f"expected entry_hash={recomputed!r}, got {entry_hash!r}"
                )

        expected_prev = entry_hash

    return ChainReport(
        project_id=project.id,
        link_count=len(links),
        sealed_records=sealed,
        tombstones=len(links) - sealed,
        head=expected_prev,
    )
