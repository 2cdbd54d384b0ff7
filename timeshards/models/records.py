"""Record models — a discriminated union keyed by ``kind``.

Records are frozen. Every change produces a new instance through
``model_copy(update=...)``, so a sealed record or a locked letter snapshot
can only be replaced, never modified in place.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def new_id() -> str:
    return str(uuid.uuid4())


class LedgerModel(BaseModel):
    """Frozen base model with camelCase wire names."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Side(str, Enum):
    ARTIST = "Artist"
    CLIENT = "Client"
    BOTH = "Both"


class RecordKind(str, Enum):
    NOTE = "Note"
    MILESTONE = "Milestone"
    LETTER = "Letter"


class MilestoneStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class LetterType(str, Enum):
    PROPOSAL = "Proposal"
    CHANGE = "Change"
    ACCEPTANCE = "Acceptance"


class LetterStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    CONFIRMED = "confirmed"


class ArtifactMeta(LedgerModel):
    """A file referenced by digest only; its bytes are never persisted."""

    name: str
    byte_size: int = 0
    mime_type: str = "application/octet-stream"
    digest_hex: str  # sha256 of the file bytes, 64 lowercase hex
    hashed_at: str
    note: str | None = None


class SealMeta(LedgerModel):
    """Receipt issued once per record by the proof authority.

    ``revoked_at`` is the only field that may be set after sealing.
    """

    sealed_at: str
    prev_hash: str
    entry_hash: str
    entry_version: int = 1
    tool_version: int = 2
    signature: str = ""
    revoked_at: str | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None


class MilestoneMeta(LedgerModel):
    due_at: str | None = None
    status: MilestoneStatus = MilestoneStatus.PLANNED


class LetterFields(LedgerModel):
    """Structured terms of a negotiation letter. All free text."""

    deliverables: str = ""
    usage: str = ""
    deadline: str = ""
    revisions: str = ""
    acceptance: str = ""
    scope_boundaries: str = ""
    references: str = ""


class LockedSnapshot(LedgerModel):
    """Copy of a letter's content taken when it was confirmed."""

    label: str
    details: str
    fields: LetterFields
    locked_at: str


class LetterMeta(LedgerModel):
    type: LetterType = LetterType.PROPOSAL
    milestone_id: str | None = None
    base_letter_id: str | None = None
    version: int = Field(default=1, ge=1)
    status: LetterStatus = LetterStatus.DRAFT
    sent_at: str | None = None
    confirmed_at: str | None = None
    confirmed_by: Side | None = None
    fields: LetterFields = LetterFields()
    locked_snapshot: LockedSnapshot | None = None


class RecordBase(LedgerModel):
    """Fields shared by every record kind."""

    id: str = Field(default_factory=new_id)
    side: Side = Side.ARTIST
    label: str = ""
    details: str = ""
    created_at: str = Field(default_factory=utc_now_iso)
    milestone_id: str | None = None
    artifacts: tuple[ArtifactMeta, ...] = ()
    seal: SealMeta | None = None
    owner_delete_token: str | None = None

    @property
    def is_sealed(self) -> bool:
        return self.seal is not None

    def artifact_digests(self) -> list[str]:
        """Sorted artifact digests, as bound into the entry hash."""
        return sorted(a.digest_hex for a in self.artifacts)


class NoteRecord(RecordBase):
    kind: Literal["Note"] = "Note"


class MilestoneRecord(RecordBase):
    kind: Literal["Milestone"] = "Milestone"
    milestone: MilestoneMeta = MilestoneMeta()


class LetterRecord(RecordBase):
    kind: Literal["Letter"] = "Letter"
    letter: LetterMeta = LetterMeta()


Record = Annotated[
    Union[NoteRecord, MilestoneRecord, LetterRecord],
    Field(discriminator="kind"),
]
