"""Proof authority contract and the HTTP client for a remote authority.

Bridge boundary
---------------
The ledger depends only on the ``ProofAuthority`` protocol. Two backends:

1. ``HttpProofAuthority``: a remote timestamping service reached over HTTP.
2. ``LocalProofAuthority`` (``timeshards.bridge.local_authority``): an
   in-process authority signing receipts with a local Ed25519 key, for
   development, offline use, and tests.

Only hashes cross this boundary. Record content never leaves the machine.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from timeshards.errors import ProofAuthorityError
from timeshards.models.seal import RevokeResult, SealRequest, SealResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ProofAuthority(Protocol):
    """Anything able to timestamp an entry hash and later revoke it."""

    def seal_entry(self, request: SealRequest) -> SealResponse:
        """Timestamp ``request.entry_hash``.

        Raises ``ProofAuthorityError`` when the service is unreachable or
        rejects the request.
        """
        ...

    def revoke_entry(self, entry_hash: str, owner_delete_token: str) -> RevokeResult:
        """Withdraw a seal. Requires the token issued with it."""
        ...


# ---------------------------------------------------------------------------
# HTTP backend
# ---------------------------------------------------------------------------


class HttpProofAuthority:
    """Client for a remote proof authority.

    Endpoints
    ---------
    ``POST {base_url}/seal``:
        body: ``{entryHash, prevHash, artifacts, toolVersion, entryVersion}``
        returns: ``{receipt: SealMeta, ownerDeleteToken?}``
    ``POST {base_url}/revoke``:
        body: ``{entryHash, ownerDeleteToken}``
        returns: ``{ok: bool}``

    Parameters
    ----------
    base_url:
        Root URL of the service.
    timeout_seconds:
        Per-request timeout. A timeout is an ordinary failure.
    client:
        Optional preconfigured ``httpx.Client`` (tests pass one built on
        ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("HttpProofAuthority requires a base_url")
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_seconds)

    @property
    def base_url(self) -> str:
        return self._base_url

    def seal_entry(self, request: SealRequest) -> SealResponse:
        body = self._post("/seal", request.model_dump(mode="json", by_alias=True))
        try:
            response = SealResponse.model_validate(body)
        except ValidationError as exc:
            raise ProofAuthorityError(f"Malformed seal response: {exc}") from exc
        logger.info("Sealed entry %s at %s.", request.entry_hash, response.receipt.sealed_at)
        return response

    def revoke_entry(self, entry_hash: str, owner_delete_token: str) -> RevokeResult:
        body = self._post(
            "/revoke",
            {"entryHash": entry_hash, "ownerDeleteToken": owner_delete_token},
        )
        try:
            return RevokeResult.model_validate(body)
        except ValidationError as exc:
            raise ProofAuthorityError(f"Malformed revoke response: {exc}") from exc

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpProofAuthority:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"HttpProofAuthority(base_url={self._base_url!r})"

    def _post(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = self._client.post(url, json=payload)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as exc:
            logger.warning("Proof authority timed out on %s.", url)
            raise ProofAuthorityError(f"Proof authority timed out: {url}") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Proof authority rejected %s with HTTP %d.", url, exc.response.status_code
            )
            raise ProofAuthorityError(
                f"Proof authority rejected the request (HTTP {exc.response.status_code})"
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Proof authority unreachable at %s: %s", url, exc)
            raise ProofAuthorityError(f"Proof authority unreachable: {exc}") from exc
        except ValueError as exc:
            raise ProofAuthorityError(f"Proof authority returned invalid JSON: {exc}") from exc
