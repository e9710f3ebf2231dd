"""Transfer engine for filebatch.

Implements the path-level commands: copy, move, rename and delete.  Each
handler takes one job descriptor and the merged options of its command.
Local copies use ``shutil`` by default; ``tool: rsync`` shells out to
``rsync`` instead.

Recognised options: ``context`` (base directory for relative paths),
``overwrite`` (default ``True``), ``tool``, ``rsync_args``, ``verify``
(a checksum algorithm name, or ``True`` for a size-only check),
``missing_ok`` (delete only, default ``True``) and ``force`` (delete
only, allows removing the context directory itself).
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

from ..discovery.engine import expand_sources, is_pattern, resolve_path
from ..verification.engine import verify_tree


logger = logging.getLogger(__name__)


def require_field(job: Any, field: str) -> Any:
    """Return ``job[field]`` or raise ``ValueError`` for a malformed job."""
    if not isinstance(job, Mapping):
        raise ValueError(f'job must be a mapping, got {type(job).__name__}')
    value = job.get(field)
    if value in (None, ''):
        raise ValueError(f"job is missing required field '{field}'")
    return value


def _missing(source: Any) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, 'No such file or directory', str(source))


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def transfer_path(src: Path, dst: Path, tool: str = 'shutil', args: Optional[Iterable[str]] = None) -> int:
    """Transfer ``src`` (a file or directory) to ``dst`` using the specified tool.

    Args:
        src: Source path.
        dst: Destination path.
        tool: ``shutil`` or ``rsync``.
        args: Additional arguments for ``rsync``; defaults to ``-a``.

    Returns:
        The exit code of the transfer (always 0 for ``shutil``).
    """
    dst.parent.mkdir(parents=True, exist_ok=True)
    if tool == 'rsync':
        cmd = ['rsync']
        cmd.extend(args if args else ['-a'])
        # trailing slash makes rsync copy the directory contents into dst
        cmd.extend([f'{src}/' if src.is_dir() else str(src), str(dst)])
        result = subprocess.run(cmd, capture_output=True)
        return result.returncode
    elif tool == 'shutil':
        if src.is_dir():
            shutil.copytree(src, dst, dirs_exist_ok=True)
        else:
            shutil.copy2(src, dst)
        return 0
    else:
        raise ValueError(f'Unsupported transfer tool: {tool}')


def _resolve_targets(job: Any, options: Mapping[str, Any]) -> List[tuple]:
    """Pair every expanded source of ``job`` with its destination path."""
    source = require_field(job, 'source')
    destination = require_field(job, 'destination')
    context = options.get('context')
    sources = expand_sources(source, context)
    if not sources:
        raise _missing(source)
    dst = resolve_path(destination, context)
    into_dir = (
        str(destination).endswith(('/', os.sep))
        or dst.is_dir()
        or is_pattern(source)
        or len(sources) > 1
    )
    return [(src, dst / src.name if into_dir else dst) for src in sources]


def copy_job(job: Any, options: Mapping[str, Any]) -> None:
    overwrite = options.get('overwrite', True)
    tool = options.get('tool', 'shutil')
    verify = options.get('verify')
    for src, target in _resolve_targets(job, options):
        if target.exists() and not overwrite:
            raise FileExistsError(errno.EEXIST, 'Destination exists', str(target))
        code = transfer_path(src, target, tool=tool, args=options.get('rsync_args'))
        if code != 0:
            raise OSError(f'{tool} exited with status {code} copying {src} to {target}')
        if verify:
            algo = verify if isinstance(verify, str) else None
            if not verify_tree(src, target, algo):
                raise OSError(f'verification failed for {target}')
        logger.debug('copied %s -> %s', src, target)


def move_job(job: Any, options: Mapping[str, Any]) -> None:
    overwrite = options.get('overwrite', True)
    for src, target in _resolve_targets(job, options):
        if target.exists():
            if not overwrite:
                raise FileExistsError(errno.EEXIST, 'Destination exists', str(target))
            _remove(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(src), str(target))
        logger.debug('moved %s -> %s', src, target)


def rename_job(job: Any, options: Mapping[str, Any]) -> None:
    context = options.get('context')
    src = resolve_path(require_field(job, 'source'), context)
    dst = resolve_path(require_field(job, 'destination'), context)
    if not src.exists() and not src.is_symlink():
        raise _missing(src)
    if dst.exists():
        if not options.get('overwrite', False):
            raise FileExistsError(errno.EEXIST, 'Destination exists', str(dst))
        _remove(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)
    src.rename(dst)
    logger.debug('renamed %s -> %s', src, dst)


def delete_job(job: Any, options: Mapping[str, Any]) -> None:
    source = job if isinstance(job, (str, os.PathLike)) else require_field(job, 'source')
    context = options.get('context')
    targets = expand_sources(source, context)
    if not targets and not options.get('missing_ok', True):
        raise _missing(source)
    protected = {Path(os.path.abspath(os.sep))}
    protected.add(Path(os.path.abspath(context if context is not None else os.getcwd())))
    for target in targets:
        if Path(os.path.abspath(target)) in protected and not options.get('force', False):
            raise ValueError(f'refusing to delete {target} without force')
        _remove(target)
        logger.debug('deleted %s', target)
