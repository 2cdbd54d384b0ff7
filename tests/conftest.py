"""Shared test fixtures for Time-Shards."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from timeshards.bridge.local_authority import LocalProofAuthority
from timeshards.core import records as ops
from timeshards.core.seal_lifecycle import SealLifecycleManager
from timeshards.core.session import LedgerSession
from timeshards.core.state import LedgerState
from timeshards.models.project import Ledger, Project
from timeshards.store.blob_store import MemoryBlobStore
from timeshards.store.ledger_store import LedgerStore


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test files."""
    return tmp_path


@pytest.fixture
def ticking_clock() -> Callable[[], datetime]:
    """A clock that advances one second per call, starting 2025-01-01."""
    state = {"now": datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)}

    def clock() -> datetime:
        state["now"] += timedelta(seconds=1)
        return state["now"]

    return clock


@pytest.fixture
def authority(ticking_clock: Callable[[], datetime]) -> LocalProofAuthority:
    """Provide a local proof authority with a fresh key and a ticking clock."""
    return LocalProofAuthority(clock=ticking_clock)


@pytest.fixture
def project() -> Project:
    return Project(name="Mural Commission")


@pytest.fixture
def state(project: Project) -> LedgerState:
    """Provide a LedgerState holding a single empty project."""
    return LedgerState(Ledger(projects=(project,)))


@pytest.fixture
def seals(state: LedgerState, authority: LocalProofAuthority) -> SealLifecycleManager:
    """Provide a SealLifecycleManager that verifies receipt signatures."""
    return SealLifecycleManager(state, authority, authority_public_key=authority.public_key)


@pytest.fixture
def add_note(state: LedgerState, project: Project) -> Callable[..., str]:
    """Add a note to the fixture project and return its id."""

    def _add(label: str = "note", details: str = "") -> str:
        record = ops.new_note(label=label, details=details)
        state.apply(lambda ledger: ops.add_record(ledger, project.id, record))
        return record.id

    return _add


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def session(blobs: MemoryBlobStore, authority: LocalProofAuthority) -> LedgerSession:
    """Provide a session over an in-memory store that writes on every change."""
    return LedgerSession(
        LedgerStore(blobs),
        authority,
        authority_public_key=authority.public_key,
        debounce_seconds=0,
    )
