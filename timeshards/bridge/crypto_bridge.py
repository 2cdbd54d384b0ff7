"""Ed25519 signing for seal receipts via PyNaCl (libsodium).

Receipts are signed over the canonical encoding of their hash fields so an
independent verifier holding the authority's public key can check them
offline. Signatures are base64url without padding.
"""

from __future__ import annotations

import base64
import logging

import nacl.signing
from nacl.exceptions import BadSignatureError

from timeshards.core.hasher import canonical_json_bytes
from timeshards.models.records import SealMeta

logger = logging.getLogger(__name__)


def generate_keypair() -> tuple[str, str]:
    """Return ``(private_key_hex, public_key_hex)`` for a new Ed25519 key."""
    sk = nacl.signing.SigningKey.generate()
    return sk.encode().hex(), sk.verify_key.encode().hex()


def public_key_for(private_key: str) -> str:
    """Derive the hex public key from a hex private key (seed)."""
    return nacl.signing.SigningKey(bytes.fromhex(private_key)).verify_key.encode().hex()


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def sign_data(data: bytes, private_key: str) -> str:
    """Sign *data* and return the base64url signature."""
    sk = nacl.signing.SigningKey(bytes.fromhex(private_key))
    return _b64url(sk.sign(data).signature)


def verify_data(data: bytes, signature: str, public_key: str) -> bool:
    """Check a base64url signature. Malformed input verifies as ``False``."""
    if not signature or not public_key:
        return False
    try:
        vk = nacl.signing.VerifyKey(bytes.fromhex(public_key))
        vk.verify(data, _b64url_decode(signature))
    except (BadSignatureError, ValueError, TypeError):
        return False
    return True


def receipt_signing_bytes(
    *,
    sealed_at: str,
    prev_hash: str,
    entry_hash: str,
    entry_version: int,
    tool_version: int,
) -> bytes:
    """The exact bytes an authority signs for a receipt."""
    return canonical_json_bytes(
        {
            "sealedAt": sealed_at,
            "prevHash": prev_hash,
            "entryHash": entry_hash,
            "entryVersion": entry_version,
            "toolVersion": tool_version,
        }
    )


def verify_receipt(seal: SealMeta, public_key: str) -> bool:
    """Verify a seal receipt's signature against the authority's public key."""
    data = receipt_signing_bytes(
        sealed_at=seal.sealed_at,
        prev_hash=seal.prev_hash,
        entry_hash=seal.entry_hash,
        entry_version=seal.entry_version,
        tool_version=seal.tool_version,
    )
    ok = verify_data(data, seal.signature, public_key)
    if not ok:
        logger.warning("Receipt signature for %s did not verify.", seal.entry_hash)
    return ok
