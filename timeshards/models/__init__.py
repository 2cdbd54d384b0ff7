"""Time-Shards data models — all Pydantic v2, all frozen (immutable)."""

from timeshards.models.project import Ledger, Project, SealTombstone
from timeshards.models.records import (
    ArtifactMeta,
    LetterFields,
    LetterMeta,
    LetterRecord,
    LetterStatus,
    LetterType,
    LockedSnapshot,
    MilestoneMeta,
    MilestoneRecord,
    MilestoneStatus,
    NoteRecord,
    Record,
    RecordKind,
    SealMeta,
    Side,
)
from timeshards.models.seal import (
    VALID_SEAL_TRANSITIONS,
    RevokeResult,
    SealRequest,
    SealResponse,
    SealState,
)
from timeshards.models.versioning import (
    ENTRY_VERSION,
    FORMAT_VERSION,
    GENESIS_HASH,
    TOOL_ID,
    TOOL_VERSION,
)

__all__ = [
    # versioning
    "TOOL_ID",
    "TOOL_VERSION",
    "ENTRY_VERSION",
    "FORMAT_VERSION",
    "GENESIS_HASH",
    # records
    "Side",
    "RecordKind",
    "MilestoneStatus",
    "LetterType",
    "LetterStatus",
    "ArtifactMeta",
    "SealMeta",
    "MilestoneMeta",
    "LetterFields",
    "LockedSnapshot",
    "LetterMeta",
    "NoteRecord",
    "MilestoneRecord",
    "LetterRecord",
    "Record",
    # project
    "Project",
    "Ledger",
    "SealTombstone",
    # seal lifecycle
    "SealState",
    "VALID_SEAL_TRANSITIONS",
    "SealRequest",
    "SealResponse",
    "RevokeResult",
]
