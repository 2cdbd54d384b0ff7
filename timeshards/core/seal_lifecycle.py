"""Seal lifecycle manager — unsealed -> sealing -> sealed -> revoked.

Enforces:
- Valid transitions only (VALID_SEAL_TRANSITIONS table)
- One seal or revoke in flight per project, since each seal reads the
  chain head before hashing
- Only a successful, matching authority response mutates a record
- Any doubt about a seal resolves to "unsealed, retry allowed"
"""

from __future__ import annotations

import logging
import threading

from timeshards.bridge.crypto_bridge import verify_receipt
from timeshards.bridge.proof_authority import ProofAuthority
from timeshards.core.chain import chain_links, compute_entry_hash, head_of, link_sealed_at
from timeshards.core.records import find_project, find_record, replace_project, replace_record
from timeshards.core.state import LedgerState
from timeshards.errors import (
    ChainIntegrityError,
    InvalidSealTransitionError,
    ProofAuthorityError,
)
from timeshards.models.project import Ledger
from timeshards.models.records import Record, utc_now_iso
from timeshards.models.seal import (
    VALID_SEAL_TRANSITIONS,
    SealRequest,
    SealResponse,
    SealState,
)
from timeshards.models.versioning import ENTRY_VERSION, TOOL_VERSION

logger = logging.getLogger(__name__)


class SealLifecycleManager:
    """Seals and revokes records through a proof authority.

    Parameters
    ----------
    state:
        Holder of the current ledger; seals are committed through it.
    authority:
        The proof authority to submit entry hashes to.
    authority_public_key:
        When set, every receipt signature is verified before it is accepted.
    """

    def __init__(
        self,
        state: LedgerState,
        authority: ProofAuthority,
        *,
        authority_public_key: str = "",
    ) -> None:
        self._state = state
        self._authority = authority
        self._authority_public_key = authority_public_key
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._in_flight: set[tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _project_lock(self, project_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(project_id, threading.Lock())

    def state_of(self, project_id: str, record_id: str) -> SealState:
        """Current lifecycle state of a record."""
        if (project_id, record_id) in self._in_flight:
            return SealState.SEALING
        record = find_record(find_project(self._state.ledger, project_id), record_id)
        if record.seal is None:
            return SealState.UNSEALED
        if record.seal.is_revoked:
            return SealState.REVOKED
        return SealState.SEALED

    @staticmethod
    def _check_transition(record_id: str, current: SealState, target: SealState) -> None:
        allowed = VALID_SEAL_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidSealTransitionError(
                f"Cannot move record {record_id} from {current.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

    # ------------------------------------------------------------------
    # Seal
    # ------------------------------------------------------------------

    def seal(self, project_id: str, record_id: str) -> Record:
        """Seal a record and return it with its receipt attached.

        Raises ``ProofAuthorityError`` if the authority fails or returns a
        receipt that does not match; the record stays unsealed and the call
        may be retried. ``prev_hash`` and ``entry_hash`` are recomputed on
        every attempt.
        """
        with self._project_lock(project_id):
            current = self.state_of(project_id, record_id)
            self._check_transition(record_id, current, SealState.SEALING)

            project = find_project(self._state.ledger, project_id)
            record = find_record(project, record_id)
            prev_hash = head_of(project)
            entry_hash = compute_entry_hash(project, record, prev_hash)
            request = SealRequest(
                entry_hash=entry_hash,
                prev_hash=prev_hash,
                artifacts=tuple(record.artifact_digests()),
                tool_version=TOOL_VERSION,
                entry_version=ENTRY_VERSION,
            )

            self._in_flight.add((project_id, record_id))
            try:
                response = self._submit_seal(request)
                self._check_receipt(project_id, request, response)
            finally:
                self._in_flight.discard((project_id, record_id))

            self._state.apply(
                lambda ledger: _attach_seal(ledger, project_id, record_id, request, response)
            )
            logger.info(
                "Sealed record %s in project %s: entry=%s prev=%s",
                record_id,
                project_id,
                entry_hash,
                prev_hash,
            )
            return find_record(find_project(self._state.ledger, project_id), record_id)

    def _submit_seal(self, request: SealRequest) -> SealResponse:
        try:
            return self._authority.seal_entry(request)
        except ProofAuthorityError:
            logger.warning("Seal of %s failed; record left unsealed.", request.entry_hash)
            raise
        except Exception as exc:
            logger.exception("Proof authority raised while sealing %s.", request.entry_hash)
            raise ProofAuthorityError(f"Seal failed: {exc}") from exc

    def _check_receipt(
        self, project_id: str, request: SealRequest, response: SealResponse
    ) -> None:
        receipt = response.receipt
        if receipt.entry_hash != request.entry_hash or receipt.prev_hash != request.prev_hash:
            raise ProofAuthorityError(
                "Receipt does not match the submitted hashes: "
                f"entry={receipt.entry_hash!r} prev={receipt.prev_hash!r}"
            )
        if not receipt.sealed_at:
            raise ProofAuthorityError("Receipt has no sealedAt timestamp")
        links = chain_links(find_project(self._state.ledger, project_id))
        if links:
            last_time = link_sealed_at(links[-1])
            if receipt.sealed_at <= last_time:
                raise ProofAuthorityError(
                    f"Receipt timestamp {receipt.sealed_at} does not follow the chain head "
                    f"sealed at {last_time}"
                )
        if self._authority_public_key and not verify_receipt(
            receipt, self._authority_public_key
        ):
            raise ProofAuthorityError("Receipt signature does not verify")

    # ------------------------------------------------------------------
    # Revoke
    # ------------------------------------------------------------------

    def revoke(self, project_id: str, record_id: str) -> Record:
        """Revoke a record's seal. The seal data is kept and marked revoked."""
        with self._project_lock(project_id):
            current = self.state_of(project_id, record_id)
            self._check_transition(record_id, current, SealState.REVOKED)

            record = find_record(find_project(self._state.ledger, project_id), record_id)
            if record.seal is None:
                raise InvalidSealTransitionError(f"Record {record_id} is not sealed.")
            if not record.owner_delete_token:
                raise InvalidSealTransitionError(
                    f"Record {record_id} has no owner delete token; it cannot be revoked."
                )

            entry_hash = record.seal.entry_hash
            try:
                result = self._authority.revoke_entry(entry_hash, record.owner_delete_token)
            except ProofAuthorityError:
                logger.warning("Revoke of %s failed; seal left intact.", entry_hash)
                raise
            except Exception as exc:
                logger.exception("Proof authority raised while revoking %s.", entry_hash)
                raise ProofAuthorityError(f"Revoke failed: {exc}") from exc
            if not result.ok:
                raise ProofAuthorityError(f"Proof authority refused to revoke {entry_hash}")

            revoked_at = utc_now_iso()
            self._state.apply(
                lambda ledger: _mark_revoked(ledger, project_id, record_id, revoked_at)
            )
            logger.info("Revoked seal %s on record %s.", entry_hash, record_id)
            return find_record(find_project(self._state.ledger, project_id), record_id)


# ---------------------------------------------------------------------------
# Commit helpers: the only code allowed to touch seal metadata
# ---------------------------------------------------------------------------


def _attach_seal(
    ledger: Ledger,
    project_id: str,
    record_id: str,
    request: SealRequest,
    response: SealResponse,
) -> Ledger:
    project = find_project(ledger, project_id)
    record = find_record(project, record_id)
    if record.seal is not None:
        raise InvalidSealTransitionError(f"Record {record_id} was sealed concurrently")
    if head_of(project) != request.prev_hash or (
        compute_entry_hash(project, record, request.prev_hash) != request.entry_hash
    ):
        raise ChainIntegrityError(
            f"Record {record_id} or its chain changed while the seal was in flight; "
            "the receipt no longer matches and was not attached."
        )
    sealed = record.model_copy(
        update={
            "seal": response.receipt,
            "owner_delete_token": response.owner_delete_token or record.owner_delete_token,
        }
    )
    return replace_project(ledger, replace_record(project, sealed))


def _mark_revoked(ledger: Ledger, project_id: str, record_id: str, revoked_at: str) -> Ledger:
    project = find_project(ledger, project_id)
    record = find_record(project, record_id)
    if record.seal is None:
        raise InvalidSealTransitionError(f"Record {record_id} is not sealed.")
    revoked = record.model_copy(
        update={"seal": record.seal.model_copy(update={"revoked_at": revoked_at})}
    )
    return replace_project(ledger, replace_record(project, revoked))
