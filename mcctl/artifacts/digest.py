"""Streaming SHA-256 verification of downloaded artifacts."""

from __future__ import annotations

import hashlib
from pathlib import Path

from mcctl.exceptions import DigestMismatchError

CHUNK_SIZE = 8192


def file_digest(path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    """Hash a file in bounded chunks and return the lowercase hex digest."""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)
    return sha256.hexdigest()


def verify(path: Path, expected: str) -> str:
    """Check ``path`` against ``expected`` (hex, any case).

    Returns the computed digest on match, raises DigestMismatchError otherwise.
    """
    actual = file_digest(path)
    if actual != expected.strip().lower():
        raise DigestMismatchError(expected=expected, actual=actual)
    return actual
