"""Exception hierarchy for filebatch.

Exceptions keep their constructor arguments in ``args`` so that they can
be pickled back from worker processes.
"""

from __future__ import annotations

from typing import Any, List, Optional


class FileBatchError(Exception):
    """Base class for all filebatch errors."""


class ConfigError(FileBatchError):
    """Raised for malformed configuration or batches, before anything runs."""


class ExecutorError(FileBatchError):
    """A single job failed inside the executor."""

    def __init__(self, command: str, job: Any, reason: str):
        super().__init__(command, job, reason)
        self.command = command
        self.job = job
        self.reason = reason

    def __str__(self) -> str:
        return f'{self.command} failed for {self.job!r}: {self.reason}'


class CommandFailedError(FileBatchError):
    """A command aborted because one of its jobs failed.

    ``completed`` counts the jobs that finished successfully before the
    command was torn down.  ``failures`` holds ``(job, reason)`` pairs for
    every job reported as failed (more than one is possible in parallel
    mode).
    """

    def __init__(
        self,
        command: str,
        job: Any,
        completed: int,
        reason: str,
        failures: Optional[List[tuple]] = None,
    ):
        super().__init__(command, job, completed, reason, failures)
        self.command = command
        self.job = job
        self.completed = completed
        self.reason = reason
        self.failures = failures if failures is not None else [(job, reason)]

    def __str__(self) -> str:
        return f'command {self.command!r} failed on item {self.job!r} after {self.completed} completed: {self.reason}'
