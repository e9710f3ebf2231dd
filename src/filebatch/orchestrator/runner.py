"""Command orchestrator for filebatch.

Runs a batch command by command, in the batch's key order, so that an
earlier command (say an ``unzip``) has finished before a later one (a
``del``) starts.  For each command the orchestrator:

1. merges the global options with the command's own options,
2. skips the command when its item list is empty, or when caching is on
   and the list's fingerprint matches the last successful run,
3. runs the items one at a time, in order, or hands them to a
   ``WorkerSupervisor`` when a positive ``parallel`` worker count is set,
4. records the fingerprint once every item has succeeded.

The first failing job aborts the run with ``CommandFailedError``; the
failing command's cache entry is left untouched and later commands are
not started.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Mapping, Optional

from ..cache.store import ResultCache, default_cache, fingerprint
from ..errors import CommandFailedError, ConfigError
from ..executor.capability import Executor, FileExecutor
from ..supervisor.manager import BACKENDS, WorkerSupervisor
from .batch import DispatchUnit, flag, merge_options, parse_batch, worker_count
from .progress import ProgressSink


logger = logging.getLogger(__name__)

STATUS_COMPLETED = 'completed'
STATUS_FAILED = 'failed'
STATUS_SKIPPED_EMPTY = 'skipped_empty'
STATUS_SKIPPED_CACHED = 'skipped_cached'


@dataclass
class CommandReport:
    command: str
    status: str
    mode: str
    items: int
    completed: int
    workers: int
    duration_ms: float
    fingerprint: str
    error: str = ''


@dataclass
class RunReport:
    commands: List[CommandReport] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return sum(report.completed for report in self.commands)

    @property
    def executed(self) -> List[str]:
        return [report.command for report in self.commands if report.status == STATUS_COMPLETED]

    @property
    def skipped(self) -> List[str]:
        return [report.command for report in self.commands if report.status.startswith('skipped')]


class CommandOrchestrator:
    """Dispatch command batches to an executor.

    Args:
        executor: Runs individual jobs; defaults to ``FileExecutor``.
        cache: Fingerprint store; defaults to the process-wide cache.
        progress: Optional sink, used only when the global ``progress``
            option is true.
        backend: Default worker backend for parallel commands
            (``process`` or ``thread``); a ``backend`` option overrides it.
        listeners: Callables receiving a ``CommandReport`` per command.
    """

    def __init__(
        self,
        executor: Optional[Executor] = None,
        cache: Optional[ResultCache] = None,
        progress: Optional[ProgressSink] = None,
        backend: str = 'process',
        listeners: Iterable[Callable[[CommandReport], None]] = (),
    ):
        self.executor = executor if executor is not None else FileExecutor()
        self.cache = cache if cache is not None else default_cache()
        self.progress = progress
        self.backend = backend
        self.listeners = list(listeners)

    def plan(self, batch: Optional[Mapping[str, Any]], global_options: Optional[Mapping[str, Any]] = None) -> List[DispatchUnit]:
        """Resolve ``batch`` into dispatch units without running anything.

        Raises:
            ConfigError: if the batch or any option is malformed.
        """
        units: List[DispatchUnit] = []
        for entry in parse_batch(batch):
            options = merge_options(global_options, entry.options)
            cache_enabled = flag(options, 'cache', True)
            if options.get('backend', self.backend) not in BACKENDS:
                raise ConfigError(f"unknown worker backend {options.get('backend')!r}")
            digest = fingerprint(entry.items)
            unit = DispatchUnit(
                command=entry.command,
                items=entry.items,
                options=options,
                parallel=worker_count(options.get('parallel')),
                fingerprint=digest,
                cache_enabled=cache_enabled,
            )
            if not entry.items:
                unit.skip_reason = STATUS_SKIPPED_EMPTY
            elif cache_enabled and self.cache.get(entry.command.value) == digest:
                unit.skip_reason = STATUS_SKIPPED_CACHED
            units.append(unit)
        return units

    def run(self, batch: Optional[Mapping[str, Any]], global_options: Optional[Mapping[str, Any]] = None) -> RunReport:
        """Run every eligible command of ``batch`` and block until done."""
        global_options = dict(global_options or {})
        units = self.plan(batch, global_options)
        track = self.progress is not None and flag(global_options, 'progress', False)
        if track:
            total = sum(len(unit.items) for unit in units if not unit.skipped)
            if total:
                self.progress.add_total(total)

        report = RunReport()
        for unit in units:
            name = unit.command.value
            if unit.skipped:
                logger.debug('%s: skipped (%s)', name, unit.skip_reason)
                self._emit(report, self._report(unit, unit.skip_reason, 0, 0.0))
                continue

            logger.info('%s: %d items, %s', name, len(unit.items), unit.mode)
            started = time.perf_counter()
            try:
                if unit.parallel:
                    completed = self._run_parallel(unit, track)
                else:
                    completed = self._run_sequential(unit, track)
            except CommandFailedError as exc:
                logger.error('%s', exc)
                elapsed = (time.perf_counter() - started) * 1000
                self._emit(report, self._report(unit, STATUS_FAILED, exc.completed, elapsed, exc.reason))
                raise

            if unit.cache_enabled:
                self.cache.set(name, unit.fingerprint)
            elapsed = (time.perf_counter() - started) * 1000
            logger.info('%s: %d/%d done in %.0f ms', name, completed, len(unit.items), elapsed)
            self._emit(report, self._report(unit, STATUS_COMPLETED, completed, elapsed))
        return report

    async def run_async(self, batch: Optional[Mapping[str, Any]], global_options: Optional[Mapping[str, Any]] = None) -> RunReport:
        """Awaitable ``run``; the blocking work happens in a worker thread."""
        return await asyncio.to_thread(self.run, batch, global_options)

    def _run_sequential(self, unit: DispatchUnit, track: bool) -> int:
        completed = 0
        for job in unit.items:
            try:
                self.executor.execute(unit.command, job, unit.options)
            except Exception as exc:
                raise CommandFailedError(unit.command.value, job, completed, str(exc)) from exc
            completed += 1
            logger.debug('%s: item %d/%d done', unit.command.value, completed, len(unit.items))
            if track:
                self.progress.advance(1)
        return completed

    def _run_parallel(self, unit: DispatchUnit, track: bool) -> int:
        supervisor = WorkerSupervisor(unit.parallel, unit.options.get('backend', self.backend))
        try:
            completed = supervisor.run_command(self.executor, unit.command, unit.items, unit.options)
        except CommandFailedError as exc:
            if track and exc.completed:
                self.progress.advance(exc.completed)
            raise
        if track and completed:
            self.progress.advance(completed)
        return completed

    @staticmethod
    def _report(unit: DispatchUnit, status: str, completed: int, elapsed: float, error: str = '') -> CommandReport:
        return CommandReport(
            command=unit.command.value,
            status=status,
            mode=unit.mode,
            items=len(unit.items),
            completed=completed,
            workers=unit.workers,
            duration_ms=round(elapsed, 3),
            fingerprint=unit.fingerprint,
            error=error,
        )

    def _emit(self, report: RunReport, record: CommandReport) -> None:
        report.commands.append(record)
        for listener in self.listeners:
            listener(record)
