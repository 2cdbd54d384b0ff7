"""Adversarial tests — revoking seals without the owner's token.

Only the holder of the owner delete token issued at sealing time may
revoke. Guessed, reused, or tampered tokens are refused and leave the seal
in place.
"""

from __future__ import annotations

import json

import pytest

from timeshards.bridge.local_authority import LocalProofAuthority
from timeshards.core.session import LedgerSession
from timeshards.errors import ProofAuthorityError
from timeshards.models.seal import SealState
from timeshards.store.ledger_store import STORAGE_KEY, LedgerStore


@pytest.fixture
def two_sealed(session):
    project = session.add_project("Mural Commission")
    first = session.seal(project.id, session.add_note(project.id, "one").id)
    second = session.seal(project.id, session.add_note(project.id, "two").id)
    return project.id, first, second


class TestAuthorityTokenChecks:
    def test_guessed_token_refused(self, authority, two_sealed):
        _, first, _ = two_sealed
        with pytest.raises(ProofAuthorityError, match="token"):
            authority.revoke_entry(first.seal.entry_hash, "0" * 32)

    def test_empty_token_refused(self, authority, two_sealed):
        _, first, _ = two_sealed
        with pytest.raises(ProofAuthorityError):
            authority.revoke_entry(first.seal.entry_hash, "")

    def test_token_of_other_record_refused(self, authority, two_sealed):
        _, first, second = two_sealed
        with pytest.raises(ProofAuthorityError):
            authority.revoke_entry(first.seal.entry_hash, second.owner_delete_token)

    def test_token_from_other_authority_refused(self, two_sealed):
        _, first, _ = two_sealed
        with pytest.raises(ProofAuthorityError):
            LocalProofAuthority().revoke_entry(first.seal.entry_hash, first.owner_delete_token)

    @pytest.mark.parametrize("entry_hash", ["", "xyz", "E" * 64, "e" * 63])
    def test_malformed_entry_hash_refused(self, authority, entry_hash):
        with pytest.raises(ProofAuthorityError, match="malformed"):
            authority.revoke_entry(entry_hash, "token")


class TestSessionRevoke:
    def test_tampered_token_keeps_seal(self, session, blobs, authority, two_sealed):
        project_id, first, _ = two_sealed
        document = json.loads(blobs.get(STORAGE_KEY))
        stored = next(p for p in document["projects"] if p["id"] == project_id)
        stored["records"][0]["ownerDeleteToken"] = "forged"
        blobs.put(STORAGE_KEY, json.dumps(document), blobs.revision(STORAGE_KEY) + 1)

        reopened = LedgerSession(
            LedgerStore(blobs), authority, authority_public_key=authority.public_key
        )
        with pytest.raises(ProofAuthorityError):
            reopened.revoke(project_id, first.id)
        assert reopened.seal_state(project_id, first.id) == SealState.SEALED
        assert reopened.record(project_id, first.id).seal.revoked_at is None

    def test_owner_can_revoke(self, session, two_sealed):
        project_id, first, _ = two_sealed
        session.revoke(project_id, first.id)
        assert session.seal_state(project_id, first.id) == SealState.REVOKED
