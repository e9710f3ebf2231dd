"""Rich progress bar for filebatch runs."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)


PROGRESS_TASK_NAME = 'file manager'


class RichProgressSink:
    """``ProgressSink`` drawing a single rich progress bar.

    Use as a context manager; the bar is shown between enter and exit.
    Rich serialises updates internally, so hook threads may report too.
    """

    def __init__(self, console: Optional[Console] = None, description: str = PROGRESS_TASK_NAME):
        self.description = description
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn('[progress.description]{task.description}'),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        )
        self.task_id: Optional[TaskID] = None

    def __enter__(self) -> 'RichProgressSink':
        self.progress.start()
        self.task_id = self.progress.add_task(self.description, total=0)
        return self

    def __exit__(self, *exc_info) -> None:
        self.progress.stop()

    def add_total(self, count: int) -> None:
        task = next(t for t in self.progress.tasks if t.id == self.task_id)
        self.progress.update(self.task_id, total=(task.total or 0) + count)

    def advance(self, count: int) -> None:
        self.progress.advance(self.task_id, count)
