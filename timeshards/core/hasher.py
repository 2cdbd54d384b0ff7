"""Canonical encoding and content hashing.

The canonical encoding is the hashing input for every entry hash, so an
independent verifier must be able to reproduce it byte for byte:
- mapping keys sorted
- compact separators (",", ":")
- non-ASCII text written as-is (``ensure_ascii=False``), as ``JSON.stringify`` does
- UTF-8 encoding
- ``None`` is the literal ``null``; NaN and Infinity are rejected
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

DEFAULT_CHUNK_SIZE = 1024 * 1024


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_canonical(obj: Any) -> str:
    """SHA-256 of the canonical encoding of a JSON-compatible value."""
    return sha256_hex(canonical_json_bytes(obj))


def hash_file(path: Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> tuple[str, int]:
    """Stream a file through SHA-256.

    Returns ``(digest_hex, byte_size)``.
    """
    digest = hashlib.sha256()
    size = 0
    with Path(path).open("rb") as fh:
        while chunk := fh.read(chunk_size):
            digest.update(chunk)
            size += len(chunk)
    return digest.hexdigest(), size


def is_hex_digest(value: str) -> bool:
    """True if *value* looks like a SHA-256 digest (64 lowercase hex chars)."""
    return len(value) == 64 and all(c in "0123456789abcdef" for c in value)
