"""Post-copy checks for the ``verify`` option of ``copy`` jobs.

``verify: true`` compares sizes only; ``verify: <algo>`` also compares
checksums of every copied file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..metadata.scanner import compute_checksum


def verify_file(src: Path, dst: Path, checksum_algo: Optional[str] = None) -> bool:
    """Return ``True`` when the copy at ``dst`` matches the file ``src``.

    A missing or non-regular ``dst`` never matches.  Checksums are only
    computed once the sizes agree.
    """
    if not dst.is_file():
        return False
    if src.stat().st_size != dst.stat().st_size:
        return False
    if not checksum_algo:
        return True
    return compute_checksum(src, checksum_algo) == compute_checksum(dst, checksum_algo)


def verify_tree(src: Path, dst: Path, checksum_algo: Optional[str] = None) -> bool:
    """Verify a copied file or directory.

    Every file under a ``src`` directory needs a matching counterpart at
    the same relative location under ``dst``.
    """
    if not src.is_dir():
        return verify_file(src, dst, checksum_algo)
    if not dst.is_dir():
        return False
    return all(
        verify_file(path, dst / path.relative_to(src), checksum_algo)
        for path in src.rglob('*')
        if path.is_file()
    )
