"""In-process proof authority signing receipts with a local Ed25519 key.

Receipts carry strictly increasing ``sealedAt`` timestamps, so the chain
head computed from them is never ambiguous within one authority.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from timeshards.bridge.crypto_bridge import (
    generate_keypair,
    public_key_for,
    receipt_signing_bytes,
    sign_data,
)
from timeshards.core.hasher import is_hex_digest
from timeshards.errors import ProofAuthorityError
from timeshards.models.records import SealMeta
from timeshards.models.seal import RevokeResult, SealRequest, SealResponse

logger = logging.getLogger(__name__)


def _iso_ms(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class LocalProofAuthority:
    """Signs seal receipts locally. Satisfies ``ProofAuthority``.

    Parameters
    ----------
    private_key:
        Hex Ed25519 seed. A fresh key is generated when empty.
    clock:
        Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        private_key: str = "",
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if private_key:
            self._private_key = private_key
            self._public_key = public_key_for(private_key)
        else:
            self._private_key, self._public_key = generate_keypair()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_issued: datetime | None = None
        self._issued: dict[str, SealResponse] = {}
        self._revoked: set[str] = set()

    @property
    def public_key(self) -> str:
        return self._public_key

    def _next_timestamp(self) -> str:
        now = self._clock()
        if self._last_issued is not None and now <= self._last_issued:
            now = self._last_issued + timedelta(milliseconds=1)
        self._last_issued = now
        return _iso_ms(now)

    def _owner_token(self, entry_hash: str) -> str:
        # Derived from the key, so a token stays valid across restarts.
        return sign_data(b"revoke:" + entry_hash.encode("ascii"), self._private_key)[:32]

    def seal_entry(self, request: SealRequest) -> SealResponse:
        for name, value in (("entryHash", request.entry_hash), ("prevHash", request.prev_hash)):
            if not is_hex_digest(value):
                raise ProofAuthorityError(f"Rejected seal request: malformed {name}")
        if any(not is_hex_digest(d) for d in request.artifacts):
            raise ProofAuthorityError("Rejected seal request: malformed artifact digest")

        # A retry after a lost response gets the original receipt back.
        existing = self._issued.get(request.entry_hash)
        if existing is not None:
            logger.info("Entry %s already sealed; returning original receipt.", request.entry_hash)
            return existing

        sealed_at = self._next_timestamp()
        signature = sign_data(
            receipt_signing_bytes(
                sealed_at=sealed_at,
                prev_hash=request.prev_hash,
                entry_hash=request.entry_hash,
                entry_version=request.entry_version,
                tool_version=request.tool_version,
            ),
            self._private_key,
        )
        response = SealResponse(
            receipt=SealMeta(
                sealed_at=sealed_at,
                prev_hash=request.prev_hash,
                entry_hash=request.entry_hash,
                entry_version=request.entry_version,
                tool_version=request.tool_version,
                signature=signature,
            ),
            owner_delete_token=self._owner_token(request.entry_hash),
        )
        self._issued[request.entry_hash] = response
        logger.info("Issued local seal for %s at %s.", request.entry_hash, sealed_at)
        return response

    def revoke_entry(self, entry_hash: str, owner_delete_token: str) -> RevokeResult:
        if not is_hex_digest(entry_hash):
            raise ProofAuthorityError(f"Rejected revoke: malformed entry hash {entry_hash!r}")
        if not secrets.compare_digest(self._owner_token(entry_hash), owner_delete_token or ""):
            raise ProofAuthorityError("Invalid owner delete token")
        self._revoked.add(entry_hash)
        logger.info("Revoked local seal for %s.", entry_hash)
        return RevokeResult(ok=True)

    def is_revoked(self, entry_hash: str) -> bool:
        return entry_hash in self._revoked

    def __repr__(self) -> str:
        return f"LocalProofAuthority(public_key={self._public_key[:16]}...)"
