"""Seal lifecycle models and the proof authority wire contract."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from timeshards.models.records import LedgerModel, SealMeta
from timeshards.models.versioning import ENTRY_VERSION, TOOL_VERSION


class SealState(str, Enum):
    """Lifecycle of a record's seal."""

    UNSEALED = "unsealed"
    SEALING = "sealing"
    SEALED = "sealed"
    REVOKED = "revoked"


# Enforced by SealLifecycleManager. REVOKED is terminal and nothing returns
# to UNSEALED once a seal has been attached.
VALID_SEAL_TRANSITIONS: dict[SealState, set[SealState]] = {
    SealState.UNSEALED: {SealState.SEALING},
    SealState.SEALING: {SealState.SEALED, SealState.UNSEALED},  # failure rolls back
    SealState.SEALED: {SealState.REVOKED},
    SealState.REVOKED: set(),
}


class SealRequest(LedgerModel):
    """Hashes submitted to the proof authority. No record content is sent."""

    entry_hash: str
    prev_hash: str
    artifacts: tuple[str, ...] = ()
    tool_version: int = TOOL_VERSION
    entry_version: int = ENTRY_VERSION


class SealResponse(LedgerModel):
    receipt: SealMeta
    owner_delete_token: str | None = None


class RevokeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
