"""Progress reporting for filebatch runs."""

from __future__ import annotations

from typing import Protocol


class ProgressSink(Protocol):
    def add_total(self, count: int) -> None:
        """Announce ``count`` more jobs that will be reported."""

    def advance(self, count: int) -> None:
        """Report ``count`` more completed jobs."""


class ProgressCounter:
    """In-memory sink, the completed/total pair of a run context."""

    def __init__(self) -> None:
        self.total = 0
        self.completed = 0

    def add_total(self, count: int) -> None:
        self.total += count

    def advance(self, count: int) -> None:
        self.completed += count

    def __repr__(self) -> str:
        return f'ProgressCounter({self.completed}/{self.total})'
