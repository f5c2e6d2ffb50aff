# src/cloudsim/utils/hash.py
"""Hashing helpers wrapping BLAKE3 and SHA-256."""

from __future__ import annotations

import hashlib

from blake3 import blake3


def blake3_digest(data: bytes) -> bytes:
    """Return the byte digest of the supplied data."""
    return blake3(data).digest()


def blake3_hexdigest(data: bytes) -> str:
    """Return the hexadecimal digest of the supplied data."""
    return blake3(data).hexdigest()


def blake3_keyed_hexdigest(secret: str, data: bytes) -> str:
    """Return a keyed BLAKE3 digest.

    BLAKE3 keyed mode needs exactly 32 key bytes, so the key is the plain
    digest of ``secret``.
    """
    key = blake3_digest(secret.encode("utf-8"))
    return blake3(data, key=key).hexdigest()


def sha256_hexdigest(data: bytes) -> str:
    """Return the SHA-256 checksum recorded for uploaded files."""
    return hashlib.sha256(data).hexdigest()
