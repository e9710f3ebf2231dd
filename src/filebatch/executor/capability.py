"""Executor capability for filebatch.

The orchestrator and the worker supervisor never touch the filesystem
themselves; they hand each job to an ``Executor``.  ``FileExecutor`` is
the default one and maps every command to its handler in the transfer
and archive engines.
"""

from __future__ import annotations

import tarfile
import zipfile
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from ..archive.engine import unzip_job, zip_job
from ..commands.registry import Command
from ..errors import ExecutorError
from ..transfer.engine import copy_job, delete_job, move_job, rename_job


Handler = Callable[[Any, Mapping[str, Any]], None]

HANDLERS: Dict[Command, Handler] = {
    Command.COPY: copy_job,
    Command.MOVE: move_job,
    Command.DEL: delete_job,
    Command.ZIP: zip_job,
    Command.UNZIP: unzip_job,
    Command.RENAME: rename_job,
}


class Executor(Protocol):
    def execute(self, command: Command, job: Any, options: Mapping[str, Any]) -> None:
        """Run one job, raising on failure."""


class FileExecutor:
    """Run jobs against the local filesystem.

    Handler failures (``OSError``, malformed jobs, corrupt archives) are
    re-raised as ``ExecutorError`` carrying the command and the job.  The
    instance holds only module-level functions so it can be shipped to
    worker processes.
    """

    def __init__(self, handlers: Optional[Mapping[Command, Handler]] = None):
        self.handlers = dict(HANDLERS if handlers is None else handlers)

    def execute(self, command: Command, job: Any, options: Mapping[str, Any]) -> None:
        handler = self.handlers.get(command)
        if handler is None:
            raise ExecutorError(command.value, job, 'no handler registered')
        try:
            handler(job, options)
        except (OSError, ValueError, zipfile.BadZipFile, tarfile.TarError) as exc:
            raise ExecutorError(command.value, job, str(exc)) from exc
