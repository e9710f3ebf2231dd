"""Worker supervisor for filebatch.

Runs the jobs of one command on a pool of workers.  The job list is cut
into contiguous slices, one per worker, and each worker runs its slice
sequentially through the executor.  Job cost within a command is assumed
to be roughly uniform, so slices are static and never rebalanced.

When a worker hits a failure it stops its own slice and the supervisor
raises a shared stop flag.  Siblings finish the job they are running and
then stop, so no archive or copy is abandoned half way.  Workers share
nothing else; each returns a ``SliceOutcome`` that only the coordinating
thread reads.
"""

from __future__ import annotations

import logging
import multiprocessing
import threading
from concurrent.futures import Executor as PoolExecutor
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Optional, Sequence

from ..commands.registry import Command
from ..errors import CommandFailedError, ConfigError
from ..executor.capability import Executor


logger = logging.getLogger(__name__)

BACKENDS = ('process', 'thread')


@dataclass
class SliceOutcome:
    index: int
    completed: int
    failed_job: Any = None
    error: Optional[BaseException] = None


def partition(jobs: Sequence[Any], workers: int) -> List[List[Any]]:
    """Split ``jobs`` into ``min(workers, len(jobs))`` contiguous slices.

    Slice sizes differ by at most one; the first ``len(jobs) % n`` slices
    take the extra job.
    """
    count = min(workers, len(jobs))
    if count <= 0:
        return []
    size, extra = divmod(len(jobs), count)
    slices: List[List[Any]] = []
    start = 0
    for index in range(count):
        end = start + size + (1 if index < extra else 0)
        slices.append(list(jobs[start:end]))
        start = end
    return slices


def _run_slice(
    executor: Executor,
    command: Command,
    jobs: List[Any],
    options: Mapping[str, Any],
    stop,
    index: int,
) -> SliceOutcome:
    completed = 0
    for job in jobs:
        if stop.is_set():
            break
        try:
            executor.execute(command, job, options)
        except Exception as exc:
            stop.set()
            return SliceOutcome(index=index, completed=completed, failed_job=job, error=exc)
        completed += 1
    return SliceOutcome(index=index, completed=completed)


class WorkerSupervisor:
    """Manage the worker pool for one parallel command.

    ``backend`` selects ``process`` workers (the default, one OS process
    per slice) or ``thread`` workers.  A pool is created per call to
    ``run_command`` and shut down before it returns.
    """

    def __init__(self, max_workers: int = 4, backend: str = 'process'):
        if max_workers < 1:
            raise ConfigError(f'max_workers must be positive, got {max_workers}')
        if backend not in BACKENDS:
            raise ConfigError(f"unknown worker backend '{backend}', expected one of {', '.join(BACKENDS)}")
        self.max_workers = max_workers
        self.backend = backend

    @contextmanager
    def _stop_flag(self) -> Iterator[Any]:
        if self.backend == 'thread':
            yield threading.Event()
            return
        with multiprocessing.Manager() as manager:
            yield manager.Event()

    def _pool(self, workers: int) -> PoolExecutor:
        if self.backend == 'thread':
            return ThreadPoolExecutor(max_workers=workers, thread_name_prefix='filebatch-worker')
        return ProcessPoolExecutor(max_workers=workers)

    def run_command(
        self,
        executor: Executor,
        command: Command,
        jobs: Sequence[Any],
        options: Mapping[str, Any],
    ) -> int:
        """Run every job of ``command`` across the pool.

        Returns:
            The number of jobs that completed successfully.

        Raises:
            CommandFailedError: if any worker reported a failed job.  Its
                ``completed`` attribute still counts the successful jobs.
        """
        slices = partition(jobs, self.max_workers)
        if not slices:
            return 0
        logger.debug(
            '%s: %d jobs over %d %s workers', command.value, len(jobs), len(slices), self.backend
        )
        outcomes: List[SliceOutcome] = []
        with self._stop_flag() as stop, self._pool(len(slices)) as pool:
            futures = {
                pool.submit(_run_slice, executor, command, chunk, dict(options), stop, index): index
                for index, chunk in enumerate(slices)
            }
            for future in as_completed(futures):
                try:
                    outcome = future.result()
                except Exception as exc:
                    # the worker died or its result could not be sent back;
                    # how far the slice got is unknown
                    outcome = SliceOutcome(index=futures[future], completed=0, error=exc)
                if outcome.error is not None:
                    stop.set()
                    logger.error(
                        '%s: worker %d failed on %r: %s',
                        command.value, outcome.index, outcome.failed_job, outcome.error,
                    )
                outcomes.append(outcome)

        completed = sum(outcome.completed for outcome in outcomes)
        failures = [outcome for outcome in outcomes if outcome.error is not None]
        if failures:
            first = failures[0]
            raise CommandFailedError(
                command.value,
                first.failed_job,
                completed,
                str(first.error),
                [(outcome.failed_job, str(outcome.error)) for outcome in failures],
            ) from first.error
        return completed
