"""Pytest configuration and shared fixtures for filebatch tests.

Provides a fresh result cache per test and a recording executor stub that
stands in for the filesystem.
"""

import os
import threading

import pytest

from filebatch.cache.store import MemoryResultCache, default_cache
from filebatch.errors import ExecutorError


class RecordingExecutor:
    """Executor stub that records every call.

    Jobs listed in ``fail_on`` raise ``ExecutorError``.  ``hooks`` maps a job
    to a callable run before the job is recorded, which lets tests
    coordinate worker threads.
    """

    def __init__(self):
        self.calls = []
        self.options = []
        self.fail_on = set()
        self.hooks = {}
        self._lock = threading.Lock()

    def execute(self, command, job, options):
        hook = self.hooks.get(job)
        if hook is not None:
            hook()
        if job in self.fail_on:
            raise ExecutorError(command.value, job, 'boom')
        with self._lock:
            self.calls.append((command.value, job))
            self.options.append(dict(options))

    def jobs(self, command=None):
        return [job for name, job in self.calls if command is None or name == command]


class ExitingExecutor:
    """Kills its worker process outright on the job named ``crash``."""

    def execute(self, command, job, options):
        if job == 'crash':
            os._exit(3)


class RecordingSink:
    def __init__(self):
        self.totals = []
        self.advances = []

    def add_total(self, count):
        self.totals.append(count)

    def advance(self, count):
        self.advances.append(count)


@pytest.fixture(autouse=True)
def isolate_default_cache():
    """Clear the process-wide cache around every test.

    The CLI uses the shared cache, so without this a batch run by one test
    would be skipped as unchanged by the next.
    """
    default_cache().clear()
    yield
    default_cache().clear()


@pytest.fixture
def cache():
    return MemoryResultCache()


@pytest.fixture
def recorder():
    return RecordingExecutor()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def exiting_executor():
    return ExitingExecutor()
