"""LedgerSession — the single entry point used by the CLI and by embedders.

A session owns the current ``Ledger`` (through ``LedgerState``), the
``LedgerStore`` it was restored from, an ``Autosaver``, and a
``SealLifecycleManager``. Every mutating method applies one pure operation
from ``timeshards.core.records`` and then asks the autosaver for a
debounced write.

The in-memory ledger is authoritative. A failed write is logged, kept in
``persistence_error``, and retried on the next flush; it never rolls back
an edit.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from timeshards.bridge.crypto_bridge import generate_keypair
from timeshards.bridge.local_authority import LocalProofAuthority
from timeshards.bridge.proof_authority import HttpProofAuthority, ProofAuthority
from timeshards.config import TimeShardsConfig
from timeshards.core import records as ops
from timeshards.core.artifacts import hash_artifact
from timeshards.core.chain import ChainReport, verify_chain
from timeshards.core.production_guard import enforce_production_constraints
from timeshards.core.seal_lifecycle import SealLifecycleManager
from timeshards.core.state import LedgerState
from timeshards.errors import PersistenceError, UnknownProjectError, UnknownRecordError
from timeshards.models.project import Ledger, Project
from timeshards.models.records import (
    ArtifactMeta,
    LetterFields,
    LetterRecord,
    LetterType,
    MilestoneRecord,
    MilestoneStatus,
    NoteRecord,
    Record,
    Side,
)
from timeshards.models.seal import SealState
from timeshards.store.autosave import Autosaver
from timeshards.store.blob_store import SQLiteBlobStore
from timeshards.store.ledger_store import LedgerStore, read_import, write_export
from timeshards.store.migrations import ImportResult

logger = logging.getLogger(__name__)


def load_or_create_signing_key(key_path: Path) -> str:
    """Read the local authority seed from *key_path*, creating it if absent."""
    key_path = Path(key_path)
    try:
        if key_path.exists():
            return key_path.read_text(encoding="ascii").strip()
        key_path.parent.mkdir(parents=True, exist_ok=True)
        private_key, public_key = generate_keypair()
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w", encoding="ascii") as fh:
            fh.write(private_key)
    except OSError as exc:
        raise PersistenceError(f"Cannot load signing key at {key_path}: {exc}") from exc
    logger.info("Created local authority key %s (public key %s).", key_path, public_key)
    return private_key


class LedgerSession:
    """A working session over one persisted ledger.

    Parameters
    ----------
    store:
        Where the ledger is restored from and persisted to.
    authority:
        Proof authority used for sealing and revoking.
    authority_public_key:
        When set, receipt signatures must verify against it.
    debounce_seconds:
        Autosave debounce window.
    """

    def __init__(
        self,
        store: LedgerStore,
        authority: ProofAuthority,
        *,
        authority_public_key: str = "",
        debounce_seconds: float = 0.4,
    ) -> None:
        self._store = store
        self._authority = authority
        restored = store.restore()
        self.restore_issues = restored.issues
        revision = store.stored_revision()
        if revision == 0:
            # First start or legacy-only data: give the ledger a stored revision.
            revision = 1
            store.persist(restored.projects, revision=revision)
        self._state = LedgerState(Ledger(projects=tuple(restored.projects)), revision=revision)
        self._autosaver = Autosaver(store, debounce_seconds=debounce_seconds, last_written=revision)
        self._state.subscribe(self._on_change)
        self._seals = SealLifecycleManager(
            self._state, authority, authority_public_key=authority_public_key
        )
        self.persistence_error: PersistenceError | None = None

    @classmethod
    def from_config(cls, config: TimeShardsConfig) -> LedgerSession:
        """Build a session from configuration, after the production guard."""
        enforce_production_constraints(config)
        store = LedgerStore(SQLiteBlobStore(config.store_path))

        authority: ProofAuthority
        public_key = config.authority_public_key
        if config.proof_authority_url:
            authority = HttpProofAuthority(
                config.proof_authority_url,
                timeout_seconds=config.proof_authority_timeout_seconds,
            )
        else:
            signing_key = config.signing_key or load_or_create_signing_key(config.key_path)
            local = LocalProofAuthority(signing_key)
            authority = local
            public_key = public_key or local.public_key
            logger.info("Using local proof authority (public key %s).", local.public_key)

        return cls(
            store,
            authority,
            authority_public_key=public_key,
            debounce_seconds=config.autosave_debounce_seconds,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _on_change(self, ledger: Ledger, revision: int) -> None:
        try:
            self._autosaver.request(ledger, revision)
        except PersistenceError as exc:
            logger.error("Autosave of revision %d failed: %s", revision, exc)
            self.persistence_error = exc
        else:
            self.persistence_error = None

    def flush(self) -> bool:
        """Write any pending snapshot now. Raises ``PersistenceError``."""
        try:
            written = self._autosaver.flush()
        except PersistenceError as exc:
            self.persistence_error = exc
            raise
        self.persistence_error = None
        return written

    def close(self) -> None:
        self.flush()
        close = getattr(self._authority, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> LedgerSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @property
    def ledger(self) -> Ledger:
        return self._state.ledger

    @property
    def projects(self) -> tuple[Project, ...]:
        return self._state.ledger.projects

    @property
    def revision(self) -> int:
        return self._state.revision

    def project(self, project_id: str) -> Project:
        return ops.find_project(self._state.ledger, project_id)

    def record(self, project_id: str, record_id: str) -> Record:
        return ops.find_record(self.project(project_id), record_id)

    def resolve_project(self, ref: str) -> Project:
        """Find a project by id, unique id prefix, or exact name."""
        projects = self.projects
        for p in projects:
            if p.id == ref:
                return p
        matches = [p for p in projects if p.id.startswith(ref)] if ref else []
        if not matches:
            matches = [p for p in projects if p.name.casefold() == ref.casefold()]
        if len(matches) == 1:
            return matches[0]
        if matches:
            raise UnknownProjectError(f"Project reference {ref!r} is ambiguous")
        raise UnknownProjectError(f"No project matches {ref!r}")

    def resolve_record(self, project_id: str, ref: str) -> Record:
        """Find a record by id or unique id prefix."""
        project = self.project(project_id)
        matches = [r for r in project.records if r.id == ref]
        if not matches and ref:
            matches = [r for r in project.records if r.id.startswith(ref)]
        if len(matches) == 1:
            return matches[0]
        if matches:
            raise UnknownRecordError(f"Record reference {ref!r} is ambiguous")
        raise UnknownRecordError(f"No record in project {project_id} matches {ref!r}")

    def seal_state(self, project_id: str, record_id: str) -> SealState:
        return self._seals.state_of(project_id, record_id)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def add_project(self, name: str, summary: str = "") -> Project:
        project = ops.new_project(name, summary)
        self._state.apply(lambda ledger: ops.add_project(ledger, project))
        logger.info("Added project %s (%s).", project.id, project.name)
        return project

    def rename_project(self, project_id: str, name: str) -> Project:
        self._state.apply(lambda ledger: ops.rename_project(ledger, project_id, name))
        return self.project(project_id)

    def update_summary(self, project_id: str, summary: str) -> Project:
        self._state.apply(lambda ledger: ops.update_summary(ledger, project_id, summary))
        return self.project(project_id)

    def delete_project(self, project_id: str) -> None:
        self._state.apply(lambda ledger: ops.delete_project(ledger, project_id))
        logger.info("Deleted project %s.", project_id)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _add(self, project_id: str, record: Record) -> Record:
        self._state.apply(lambda ledger: ops.add_record(ledger, project_id, record))
        logger.info("Added %s %s to project %s.", record.kind, record.id, project_id)
        return record

    def add_note(
        self,
        project_id: str,
        label: str = "",
        details: str = "",
        *,
        side: Side = Side.ARTIST,
        milestone_id: str | None = None,
    ) -> NoteRecord:
        record = ops.new_note(side, label, details, milestone_id=milestone_id)
        self._add(project_id, record)
        return record

    def add_milestone(
        self,
        project_id: str,
        label: str,
        details: str = "",
        *,
        side: Side = Side.ARTIST,
        due_at: str | None = None,
        status: MilestoneStatus = MilestoneStatus.PLANNED,
    ) -> MilestoneRecord:
        record = ops.new_milestone(side, label, details, due_at=due_at, status=status)
        self._add(project_id, record)
        return record

    def add_letter(
        self,
        project_id: str,
        label: str = "",
        details: str = "",
        *,
        side: Side = Side.ARTIST,
        letter_type: LetterType = LetterType.PROPOSAL,
        fields: LetterFields | None = None,
        milestone_id: str | None = None,
        base_letter_id: str | None = None,
    ) -> LetterRecord:
        record = ops.new_letter(
            side,
            label,
            details,
            letter_type=letter_type,
            fields=fields,
            milestone_id=milestone_id,
            base_letter_id=base_letter_id,
        )
        self._add(project_id, record)
        return record

    def edit_record(self, project_id: str, record_id: str, **changes: Any) -> Record:
        self._state.apply(lambda ledger: ops.edit_record(ledger, project_id, record_id, **changes))
        return self.record(project_id, record_id)

    def delete_record(self, project_id: str, record_id: str) -> None:
        self._state.apply(lambda ledger: ops.delete_record(ledger, project_id, record_id))
        logger.info("Deleted record %s from project %s.", record_id, project_id)

    def attach(
        self, project_id: str, record_id: str, path: Path, *, note: str | None = None
    ) -> ArtifactMeta:
        """Hash a file and attach its digest to a record."""
        record = self.record(project_id, record_id)
        if record.is_sealed:
            ops.ensure_editable(record)
        artifact = hash_artifact(Path(path), note=note)
        self._state.apply(
            lambda ledger: ops.add_artifact(ledger, project_id, record_id, artifact)
        )
        return artifact

    def remove_artifact(self, project_id: str, record_id: str, index: int) -> Record:
        self._state.apply(
            lambda ledger: ops.remove_artifact(ledger, project_id, record_id, index)
        )
        return self.record(project_id, record_id)

    # ------------------------------------------------------------------
    # Letters
    # ------------------------------------------------------------------

    def send_letter(self, project_id: str, record_id: str) -> Record:
        self._state.apply(lambda ledger: ops.mark_letter_sent(ledger, project_id, record_id))
        return self.record(project_id, record_id)

    def confirm_letter(self, project_id: str, record_id: str, confirmed_by: Side) -> Record:
        self._state.apply(
            lambda ledger: ops.confirm_letter(ledger, project_id, record_id, confirmed_by)
        )
        return self.record(project_id, record_id)

    def derive_change_letter(self, project_id: str, base_letter_id: str) -> LetterRecord:
        created: list[LetterRecord] = []

        def operation(ledger: Ledger) -> Ledger:
            updated, change = ops.derive_change_letter(ledger, project_id, base_letter_id)
            created.append(change)
            return updated

        self._state.apply(operation)
        return created[-1]

    # ------------------------------------------------------------------
    # Seals and verification
    # ------------------------------------------------------------------

    def seal(self, project_id: str, record_id: str) -> Record:
        return self._seals.seal(project_id, record_id)

    def revoke(self, project_id: str, record_id: str) -> Record:
        return self._seals.revoke(project_id, record_id)

    def verify(self, project_id: str) -> ChainReport:
        return verify_chain(self.project(project_id))

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export(self, directory: Path) -> Path:
        return write_export(list(self.projects), directory)

    def import_file(self, path: Path) -> ImportResult:
        """Replace every project with the contents of an export document."""
        result = read_import(path)
        self._state.replace(Ledger(projects=tuple(result.projects)))
        logger.info(
            "Imported %d projects from %s (%d issues).",
            len(result.projects),
            path,
            len(result.issues),
        )
        return result
