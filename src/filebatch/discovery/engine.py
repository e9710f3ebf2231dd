"""Discovery engine for filebatch.

Resolves the ``source`` of a job to concrete paths.  Sources may be
plain paths or glob patterns (``**`` is recursive).  Relative sources
are resolved against a context directory.
"""

from __future__ import annotations

import glob
import os
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union


PathLike = Union[str, 'os.PathLike[str]']


def resolve_path(value: PathLike, context: Optional[PathLike] = None) -> Path:
    """Return ``value`` as a ``Path``, anchored at ``context`` when relative."""
    path = Path(os.path.expanduser(os.fspath(value)))
    if not path.is_absolute() and context is not None:
        path = Path(context) / path
    return path


def is_pattern(value: PathLike) -> bool:
    return glob.has_magic(os.fspath(value))


def expand_sources(source: PathLike, context: Optional[PathLike] = None) -> List[Path]:
    """Expand ``source`` into the list of existing paths it names.

    A glob pattern yields every match, sorted for a stable order.  A plain
    path yields itself when it exists and nothing otherwise, so callers
    decide whether a missing source is an error.
    """
    path = resolve_path(source, context)
    if is_pattern(source):
        return [Path(p) for p in sorted(glob.glob(str(path), recursive=True))]
    return [path] if path.exists() or path.is_symlink() else []


def walk_files(root: Path, extensions: Optional[Sequence[str]] = None) -> Iterator[Path]:
    """Yield files under ``root``, optionally restricted to ``extensions``.

    Args:
        root: Directory to walk recursively.
        extensions: File suffixes (with or without leading dot) to include,
            case-insensitive.  ``None`` includes everything.

    Yields:
        ``pathlib.Path`` objects, directories visited in sorted order.
    """
    normalized_exts = {ext.lower().lstrip('.') for ext in extensions} if extensions else None
    for current, dirs, files in os.walk(root):
        dirs.sort()
        for name in sorted(files):
            if normalized_exts is None or name.lower().rsplit('.', 1)[-1] in normalized_exts:
                yield Path(current) / name
