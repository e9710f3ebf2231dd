"""Digest helpers for filebatch.

Used for two things: checksumming files when a copy is verified, and
hashing the canonical serialisation of a command's item list for the
result cache.  Hash algorithms are selected by name.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import xxhash


def _new_hasher(algo: str):
    name = algo.lower()
    if name == 'md5':
        return hashlib.md5()
    if name == 'sha1':
        return hashlib.sha1()
    if name == 'sha256':
        return hashlib.sha256()
    if name == 'xxh128':
        return xxhash.xxh3_128()
    raise ValueError(f'Unsupported checksum algorithm: {algo}')


def compute_digest(data: bytes, algo: str = 'xxh128') -> str:
    """Return the hex digest of ``data``."""
    h = _new_hasher(algo)
    h.update(data)
    return h.hexdigest()


def compute_checksum(path: Path, algo: str) -> str:
    """Compute a checksum of a file using the given algorithm.

    Supported algorithms: ``md5``, ``sha1``, ``sha256``, ``xxh128``.
    """
    h = _new_hasher(algo)
    with path.open('rb') as f:
        for chunk in iter(lambda: f.read(8192), b''):
            h.update(chunk)
    return h.hexdigest()
