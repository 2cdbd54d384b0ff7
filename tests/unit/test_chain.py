"""Tests for the chain linker — entry payloads, hashing, head, verification."""

from __future__ import annotations

import pytest

from timeshards.core.chain import (
    build_entry_payload,
    chain_links,
    compute_entry_hash,
    head_of,
    link_sealed_at,
    record_snapshot,
    verify_chain,
)
from timeshards.core.records import delete_record, replace_record
from timeshards.errors import ChainIntegrityError
from timeshards.models.project import Ledger, Project
from timeshards.models.records import (
    ArtifactMeta,
    LetterFields,
    LetterMeta,
    LetterRecord,
    MilestoneMeta,
    MilestoneRecord,
    NoteRecord,
    SealMeta,
    Side,
)
from timeshards.models.versioning import GENESIS_HASH

DIGEST_A = "a" * 64
DIGEST_B = "b" * 64


def _artifact(digest: str) -> ArtifactMeta:
    return ArtifactMeta(name=f"{digest[0]}.bin", digest_hex=digest, hashed_at="2025-01-01T00:00:00.000Z")


def _seal(project: Project, record_id: str, sealed_at: str) -> Project:
    record = next(r for r in project.records if r.id == record_id)
    prev = head_of(project)
    entry = compute_entry_hash(project, record, prev)
    sealed = record.model_copy(
        update={"seal": SealMeta(sealed_at=sealed_at, prev_hash=prev, entry_hash=entry)}
    )
    return replace_record(project, sealed)


@pytest.fixture
def two_notes() -> Project:
    return Project(
        name="Mural Commission",
        records=(
            NoteRecord(id="n1", label="Kickoff", created_at="2025-01-01T00:00:00.000Z"),
            NoteRecord(id="n2", label="Sketch", created_at="2025-01-02T00:00:00.000Z"),
        ),
    )


class TestEntryPayload:
    def test_payload_shape(self, two_notes: Project):
        record = two_notes.records[0]
        payload = build_entry_payload(two_notes, record, GENESIS_HASH)
        assert payload == {
            "tool": "time-shards",
            "toolVersion": 2,
            "projectId": two_notes.id,
            "projectName": "Mural Commission",
            "shard": {
                "id": "n1",
                "kind": "Note",
                "side": "Artist",
                "label": "Kickoff",
                "details": "",
                "createdAt": "2025-01-01T00:00:00.000Z",
                "milestoneId": None,
                "milestone": None,
                "letter": None,
            },
            "artifacts": [],
            "prevHash": GENESIS_HASH,
        }

    def test_milestone_snapshot_uses_wire_names(self):
        record = MilestoneRecord(
            label="Sketch",
            milestone=MilestoneMeta(due_at="2025-03-01"),
        )
        snapshot = record_snapshot(record)
        assert snapshot["milestone"] == {"dueAt": "2025-03-01", "status": "planned"}
        assert snapshot["letter"] is None

    def test_unset_meta_keys_are_null(self):
        snapshot = record_snapshot(MilestoneRecord(label="Sketch"))
        assert snapshot["milestone"] == {"dueAt": None, "status": "planned"}

        letter = record_snapshot(LetterRecord(label="Proposal"))["letter"]
        assert set(letter) == {
            "type",
            "milestoneId",
            "baseLetterId",
            "version",
            "status",
            "sentAt",
            "confirmedAt",
            "confirmedBy",
            "fields",
            "lockedSnapshot",
        }
        assert letter["lockedSnapshot"] is None
        assert letter["fields"]["scopeBoundaries"] == ""

    def test_hash_is_deterministic(self, two_notes: Project):
        record = two_notes.records[0]
        first = compute_entry_hash(two_notes, record, GENESIS_HASH)
        second = compute_entry_hash(two_notes, record.model_copy(), GENESIS_HASH)
        assert first == second
        assert len(first) == 64

    def test_content_change_changes_hash(self, two_notes: Project):
        record = two_notes.records[0]
        edited = record.model_copy(update={"label": "Kickoff!"})
        assert compute_entry_hash(two_notes, record, GENESIS_HASH) != compute_entry_hash(
            two_notes, edited, GENESIS_HASH
        )

    def test_artifact_order_does_not_matter(self, two_notes: Project):
        record = two_notes.records[0]
        ab = record.model_copy(update={"artifacts": (_artifact(DIGEST_A), _artifact(DIGEST_B))})
        ba = record.model_copy(update={"artifacts": (_artifact(DIGEST_B), _artifact(DIGEST_A))})
        assert compute_entry_hash(two_notes, ab, GENESIS_HASH) == compute_entry_hash(
            two_notes, ba, GENESIS_HASH
        )

    def test_artifact_note_not_hashed(self, two_notes: Project):
        record = two_notes.records[0]
        plain = record.model_copy(update={"artifacts": (_artifact(DIGEST_A),)})
        noted = record.model_copy(
            update={"artifacts": (_artifact(DIGEST_A).model_copy(update={"note": "v2"}),)}
        )
        assert compute_entry_hash(two_notes, plain, GENESIS_HASH) == compute_entry_hash(
            two_notes, noted, GENESIS_HASH
        )

    def test_prev_hash_changes_hash(self, two_notes: Project):
        record = two_notes.records[0]
        assert compute_entry_hash(two_notes, record, GENESIS_HASH) != compute_entry_hash(
            two_notes, record, "1" * 64
        )


class TestEntryHashVectors:
    """Hashes of payloads stored by earlier toolVersion 2 releases.

    Each expected digest is the SHA-256 of the sorted, compact, raw UTF-8
    JSON encoding of the payload, so records sealed there verify here.
    """

    def test_note(self):
        project = Project(id="p1", name="Mural Commission")
        note = NoteRecord(id="s1", label="Kickoff note", created_at="2025-01-01T00:00:00.000Z")
        assert compute_entry_hash(project, note, GENESIS_HASH) == (
            "f5c64bb206323f8137537a5c0d60e2b890781eadef1f3afb8ba2f8c47c193301"
        )

    def test_non_ascii_text(self):
        project = Project(id="p1", name="壁画委托")
        note = NoteRecord(
            id="s1", label="启动笔记", created_at="2025-01-01T00:00:00.000Z"
        )
        assert compute_entry_hash(project, note, GENESIS_HASH) == (
            "d5bbb936f195ec299b5c5d50e33549762219e6596777eb03c9108f0f54df0589"
        )

    def test_milestone_without_due_date(self):
        project = Project(id="p1", name="Mural Commission")
        milestone = MilestoneRecord(
            id="m1",
            side=Side.BOTH,
            label="Sketch",
            details="Thumbnails",
            created_at="2025-01-02T00:00:00.000Z",
            artifacts=(_artifact(DIGEST_B), _artifact(DIGEST_A)),
        )
        assert compute_entry_hash(project, milestone, DIGEST_A) == (
            "00957ca2d5aa90cb198615809dae25fcfb4b527fc9bcb2ec45f32e5f24275372"
        )

    def test_letter(self):
        project = Project(id="p1", name="Mural Commission")
        letter = LetterRecord(
            id="l1",
            side=Side.CLIENT,
            label="Proposal",
            details="Lobby mural",
            created_at="2025-01-03T00:00:00.000Z",
            milestone_id="m1",
            letter=LetterMeta(
                milestone_id="m1",
                fields=LetterFields(deliverables="One wall", deadline="June"),
            ),
        )
        assert compute_entry_hash(project, letter, GENESIS_HASH) == (
            "30ed7fa08d9a43f49d4602d0b5b278e88870d10b2591910ae6db95ff01c74696"
        )


class TestChainHead:
    def test_genesis_when_nothing_sealed(self, two_notes: Project):
        assert head_of(two_notes) == GENESIS_HASH
        assert chain_links(two_notes) == []

    def test_first_seal_links_to_genesis(self, two_notes: Project):
        project = _seal(two_notes, "n1", "2025-01-05T00:00:00.000Z")
        record = project.records[0]
        assert record.seal.prev_hash == GENESIS_HASH
        assert head_of(project) == record.seal.entry_hash

    def test_second_seal_links_to_first(self, two_notes: Project):
        project = _seal(two_notes, "n1", "2025-01-05T00:00:00.000Z")
        project = _seal(project, "n2", "2025-01-06T00:00:00.000Z")
        first, second = project.records
        assert second.seal.prev_hash == first.seal.entry_hash
        assert head_of(project) == second.seal.entry_hash

    def test_head_follows_seal_time_not_list_order(self, two_notes: Project):
        project = _seal(two_notes, "n2", "2025-01-05T00:00:00.000Z")
        project = _seal(project, "n1", "2025-01-06T00:00:00.000Z")
        n1 = next(r for r in project.records if r.id == "n1")
        assert head_of(project) == n1.seal.entry_hash

    def test_unsealed_record_is_not_a_link(self, two_notes: Project):
        with pytest.raises(ChainIntegrityError, match="not sealed"):
            link_sealed_at(two_notes.records[0])


class TestVerifyChain:
    def test_valid_chain_report(self, two_notes: Project):
        project = _seal(two_notes, "n1", "2025-01-05T00:00:00.000Z")
        project = _seal(project, "n2", "2025-01-06T00:00:00.000Z")
        report = verify_chain(project)
        assert report.link_count == 2
        assert report.sealed_records == 2
        assert report.tombstones == 0
        assert report.head == head_of(project)

    def test_empty_chain_is_valid(self, two_notes: Project):
        report = verify_chain(two_notes)
        assert report.link_count == 0
        assert report.head == GENESIS_HASH

    def test_edited_sealed_record_detected(self, two_notes: Project):
        project = _seal(two_notes, "n1", "2025-01-05T00:00:00.000Z")
        tampered = project.records[0].model_copy(update={"details": "rewritten"})
        project = replace_record(project, tampered)
        with pytest.raises(ChainIntegrityError, match="Tampered"):
            verify_chain(project)

    def test_tombstone_keeps_chain_linked(self, two_notes: Project):
        project = _seal(two_notes, "n1", "2025-01-05T00:00:00.000Z")
        project = _seal(project, "n2", "2025-01-06T00:00:00.000Z")
        first = project.records[0]
        revoked = first.model_copy(
            update={"seal": first.seal.model_copy(update={"revoked_at": "2025-01-07T00:00:00.000Z"})}
        )
        project = replace_record(project, revoked)
        ledger = delete_record(Ledger(projects=(project,)), project.id, "n1")
        project = ledger.projects[0]

        assert [r.id for r in project.records] == ["n2"]
        assert len(project.tombstones) == 1
        report = verify_chain(project)
        assert report.sealed_records == 1
        assert report.tombstones == 1
