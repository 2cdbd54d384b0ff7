"""Artifact hashing — files are referenced by digest, never stored.

Only the digest, size, and MIME type of an attached file enter the ledger.
The bytes stay wherever the user keeps them.
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

from timeshards.core.hasher import hash_file
from timeshards.models.records import ArtifactMeta, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(name: str) -> str:
    mime, _ = mimetypes.guess_type(name)
    return mime or DEFAULT_MIME_TYPE


def hash_artifact(
    path: Path,
    *,
    note: str | None = None,
    name: str | None = None,
) -> ArtifactMeta:
    """Hash a file on disk and describe it as an ``ArtifactMeta``.

    Parameters
    ----------
    path:
        File to hash. Read in chunks; never copied.
    note:
        Optional free-text annotation. Blank notes are dropped.
    name:
        Display name. Defaults to the file's basename.
    """
    path = Path(path)
    digest, size = hash_file(path)
    display_name = name or path.name
    logger.debug("Hashed artifact %s (%d bytes): %s", display_name, size, digest)
    return ArtifactMeta(
        name=display_name,
        byte_size=size,
        mime_type=guess_mime_type(display_name),
        digest_hex=digest,
        hashed_at=utc_now_iso(),
        note=(note or "").strip() or None,
    )


def artifact_matches(artifact: ArtifactMeta, path: Path) -> bool:
    """Re-hash *path* and compare against the recorded digest."""
    digest, _ = hash_file(Path(path))
    return digest == artifact.digest_hex
