"""Archive engine for filebatch.

Creates and extracts ``zip``, ``tar`` and ``tgz`` archives for the
``zip`` and ``unzip`` commands.  The archive type comes from the job's
``type`` field or, failing that, from the archive's file suffix.
"""

from __future__ import annotations

import errno
import logging
import tarfile
import zipfile
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from ..discovery.engine import expand_sources, resolve_path, walk_files
from ..transfer.engine import require_field


logger = logging.getLogger(__name__)

ARCHIVE_TYPES = ('zip', 'tar', 'tgz')


def infer_archive_type(path: Path, explicit: Optional[str] = None) -> str:
    """Return the archive type for ``path``, preferring ``explicit``."""
    if explicit:
        if explicit not in ARCHIVE_TYPES:
            raise ValueError(f'Unsupported archive type: {explicit}')
        return explicit
    name = path.name.lower()
    if name.endswith(('.tgz', '.tar.gz')):
        return 'tgz'
    if name.endswith('.tar'):
        return 'tar'
    return 'zip'


def _archive_entries(sources: List[Path], extensions) -> Iterator[Tuple[Path, str]]:
    # a lone directory is archived by its contents, several sources by name
    flatten = len(sources) == 1 and sources[0].is_dir()
    for src in sources:
        if src.is_dir():
            base = src if flatten else src.parent
            for path in walk_files(src, extensions):
                yield path, path.relative_to(base).as_posix()
        else:
            yield src, src.name


def zip_job(job: Any, options: Mapping[str, Any]) -> None:
    context = options.get('context')
    source = require_field(job, 'source')
    dst = resolve_path(require_field(job, 'destination'), context)
    kind = infer_archive_type(dst, job.get('type'))
    extensions = job.get('extensions', options.get('extensions'))
    sources = expand_sources(source, context)
    if not sources:
        raise FileNotFoundError(errno.ENOENT, 'No such file or directory', str(source))
    if dst.exists() and not options.get('overwrite', True):
        raise FileExistsError(errno.EEXIST, 'Destination exists', str(dst))
    dst.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    if kind == 'zip':
        with zipfile.ZipFile(dst, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
            for path, arcname in _archive_entries(sources, extensions):
                archive.write(path, arcname)
                count += 1
    else:
        mode = 'w:gz' if kind == 'tgz' else 'w'
        with tarfile.open(dst, mode) as archive:
            for path, arcname in _archive_entries(sources, extensions):
                archive.add(path, arcname=arcname, recursive=False)
                count += 1
    logger.debug('wrote %s archive %s (%d entries)', kind, dst, count)


def _safe_zip_members(archive: zipfile.ZipFile, dst: Path) -> List[str]:
    root = dst.resolve()
    names = archive.namelist()
    for name in names:
        target = (root / name).resolve()
        if target != root and root not in target.parents:
            raise ValueError(f'archive member escapes destination: {name}')
    return names


def unzip_job(job: Any, options: Mapping[str, Any]) -> None:
    context = options.get('context')
    src = resolve_path(require_field(job, 'source'), context)
    dst = resolve_path(require_field(job, 'destination'), context)
    if not src.is_file():
        raise FileNotFoundError(errno.ENOENT, 'No such file or directory', str(src))
    kind = infer_archive_type(src, job.get('type'))
    dst.mkdir(parents=True, exist_ok=True)
    if kind == 'zip':
        with zipfile.ZipFile(src) as archive:
            archive.extractall(dst, members=_safe_zip_members(archive, dst))
    else:
        with tarfile.open(src, 'r:*') as archive:
            archive.extractall(dst, filter='data')
    logger.debug('extracted %s archive %s -> %s', kind, src, dst)
