"""
Content-addressed chunk identifiers.
"""
from __future__ import annotations

import hashlib


def make_chunk_id(file_path: str, chunk_type: str, code: str) -> str:
    """
    SHA-256 hex digest of ``(file_path, chunk_type, code)``.

    Each field is length-prefixed so that no two distinct triples share a
    byte sequence. The path is hashed exactly as given.
    """
    digest = hashlib.sha256()
    for value in (file_path, chunk_type, code):
        encoded = value.encode("utf-8")
        digest.update(str(len(encoded)).encode("ascii"))
        digest.update(b":")
        digest.update(encoded)
    return digest.hexdigest()
