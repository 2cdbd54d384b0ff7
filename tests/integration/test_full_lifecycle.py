"""End-to-end integration tests — a commission from first note to export.

These tests exercise LedgerSession, the seal lifecycle, the local proof
authority, SQLite persistence and the export/import path working together.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from timeshards.bridge.crypto_bridge import public_key_for, verify_receipt
from timeshards.config import TimeShardsConfig
from timeshards.core.chain import compute_entry_hash
from timeshards.core.letters import owner_receipt, public_receipt, render_letter_text
from timeshards.core.session import LedgerSession, load_or_create_signing_key
from timeshards.errors import ImmutabilityViolation
from timeshards.models.records import LetterFields, LetterStatus, LetterType, Side
from timeshards.models.seal import SealState
from timeshards.models.versioning import GENESIS_HASH


@pytest.fixture
def config(tmp_path: Path) -> TimeShardsConfig:
    return TimeShardsConfig(
        store_path=tmp_path / "ledger.db",
        key_path=tmp_path / "authority.key",
        export_dir=tmp_path / "exports",
        autosave_debounce_seconds=0,
    )


class TestMuralCommission:
    """Two notes sealed in order, then verified after a restart."""

    def test_chain_links_in_seal_order(self, config: TimeShardsConfig):
        with LedgerSession.from_config(config) as session:
            project = session.add_project("Mural Commission")
            a = session.add_note(project.id, "Kickoff note")
            b = session.add_note(project.id, "Palette agreed")

            sealed_a = session.seal(project.id, a.id)
            assert sealed_a.seal.prev_hash == GENESIS_HASH
            assert sealed_a.seal.entry_hash == compute_entry_hash(
                session.project(project.id), sealed_a, GENESIS_HASH
            )

            sealed_b = session.seal(project.id, b.id)
            assert sealed_b.seal.prev_hash == sealed_a.seal.entry_hash

        with LedgerSession.from_config(config) as reopened:
            report = reopened.verify(project.id)
            assert report.sealed_records == 2
            assert report.head == sealed_b.seal.entry_hash
            assert reopened.seal_state(project.id, a.id) == SealState.SEALED

    def test_receipts_verify_against_authority_key(self, config: TimeShardsConfig):
        with LedgerSession.from_config(config) as session:
            project = session.add_project("Mural Commission")
            note = session.add_note(project.id, "Kickoff note")
            sealed = session.seal(project.id, note.id)

        public_key = public_key_for(load_or_create_signing_key(config.key_path))
        assert verify_receipt(sealed.seal, public_key)
        receipt = public_receipt(sealed)
        assert receipt["entryHash"] == sealed.seal.entry_hash
        assert "ownerDeleteToken" not in receipt
        assert owner_receipt(sealed)["ownerDeleteToken"] == sealed.owner_delete_token

    def test_artifact_bound_into_seal(self, config: TimeShardsConfig, tmp_path: Path):
        sketch = tmp_path / "sketch.png"
        sketch.write_bytes(b"first draft")
        with LedgerSession.from_config(config) as session:
            project = session.add_project("Mural Commission")
            note = session.add_note(project.id, "Sketch")
            session.attach(project.id, note.id, sketch)
            sealed = session.seal(project.id, note.id)
            with pytest.raises(ImmutabilityViolation):
                session.remove_artifact(project.id, note.id, 0)
        assert len(sealed.artifacts) == 1


class TestLetterNegotiation:
    """A letter edited while a draft, confirmed, then amended by a change letter."""

    def test_version_then_confirm(self, config: TimeShardsConfig):
        with LedgerSession.from_config(config) as session:
            project = session.add_project("Mural Commission")
            milestone = session.add_milestone(project.id, "Sketch", due_at="2025-03-01")
            letter = session.add_letter(
                project.id,
                "Proposal",
                "A mural for the lobby.",
                fields=LetterFields(deliverables="One wall", deadline="June"),
                milestone_id=milestone.id,
            )
            assert letter.letter.version == 1

            edited = session.edit_record(
                project.id, letter.id, fields={"deadline": "July", "revisions": "Two rounds"}
            )
            assert edited.letter.version == 2

            session.send_letter(project.id, letter.id)
            confirmed = session.confirm_letter(project.id, letter.id, Side.CLIENT)
            snapshot = confirmed.letter.locked_snapshot
            assert snapshot.fields == edited.letter.fields
            assert confirmed.letter.version == 2

            with pytest.raises(ImmutabilityViolation):
                session.edit_record(project.id, letter.id, fields={"deadline": "August"})

            change = session.derive_change_letter(project.id, letter.id)
            assert change.letter.type == LetterType.CHANGE
            assert change.milestone_id == milestone.id
            session.edit_record(project.id, change.id, fields={"deadline": "August"})

            current = session.project(project.id)
            text = render_letter_text(current, session.record(project.id, letter.id))
            assert "Deadline: July" in text
            assert "Milestone: Sketch" in text

        with LedgerSession.from_config(config) as reopened:
            restored = reopened.record(project.id, letter.id)
            assert restored.letter.status == LetterStatus.CONFIRMED
            assert restored.letter.locked_snapshot == snapshot

    def test_sealed_letter_and_change(self, config: TimeShardsConfig):
        with LedgerSession.from_config(config) as session:
            project = session.add_project("Mural Commission")
            letter = session.add_letter(project.id, "Proposal", "Lobby mural")
            session.confirm_letter(project.id, letter.id, Side.BOTH)
            session.seal(project.id, letter.id)
            change = session.derive_change_letter(project.id, letter.id)
            sealed_change = session.seal(project.id, change.id)
            sealed_letter = session.record(project.id, letter.id)
            assert sealed_change.seal.prev_hash == sealed_letter.seal.entry_hash
            assert session.verify(project.id).sealed_records == 2


class TestTransfer:
    def test_export_import_into_fresh_store(self, config: TimeShardsConfig, tmp_path: Path):
        with LedgerSession.from_config(config) as session:
            project = session.add_project("Mural Commission")
            note = session.add_note(project.id, "Kickoff note")
            session.seal(project.id, note.id)
            session.revoke(project.id, note.id)
            session.delete_record(project.id, note.id)
            session.seal(project.id, session.add_note(project.id, "Second").id)
            exported = session.export(config.export_dir)
            original = session.projects

        envelope = json.loads(exported.read_text(encoding="utf-8"))
        assert envelope["formatVersion"] == 2
        assert exported.name.startswith("TimeShards_2projects_1records_")

        fresh = config.model_copy(update={"store_path": tmp_path / "fresh.db"})
        with LedgerSession.from_config(fresh) as other:
            result = other.import_file(exported)
            assert result.issues == []
            assert other.projects == original
            report = other.verify(project.id)
            assert (report.sealed_records, report.tombstones) == (1, 1)
