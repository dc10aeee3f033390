#!/usr/bin/env python3
"""
Progress Display Module.

One overall bar for the whole batch plus one status line per worker,
rendered together in a single rich Live display.

SPDX-License-Identifier: MPL-2.0
Copyright (c) 2025-2026 Aryan Ameri
"""

from __future__ import annotations

from types import TracebackType
from typing import Final, Self

from rich.console import Console, Group
from rich.live import Live
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

__all__: Final[list[str]] = [
    "ProgressBars",
    "WorkerProgress",
]


class WorkerProgress:
    """Status line owned by a single worker."""

    __slots__ = ("worker_id", "_progress", "_task_id", "_finished")

    def __init__(self, worker_id: int, progress: Progress, task_id: TaskID) -> None:
        self.worker_id = worker_id
        self._progress = progress
        self._task_id = task_id
        self._finished = False

    def set_status(self, text: str) -> None:
        if not self._finished:
            self._progress.update(self._task_id, description=text)

    def finish(self) -> None:
        """Remove this worker's line from the display."""
        if self._finished:
            return
        self._finished = True
        self._progress.remove_task(self._task_id)


class ProgressBars:
    """Overall batch progress plus per-worker status lines.

    ``increment_total`` may be called from any thread; rich guards task
    updates with its own lock. With ``enabled=False`` nothing is rendered
    but counts are still tracked.
    """

    def __init__(
        self,
        total: int,
        *,
        console: Console | None = None,
        enabled: bool = True,
    ) -> None:
        self.enabled = enabled
        self._total_progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=50),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            TextColumn("eta:"),
            TimeRemainingColumn(),
            console=console,
        )
        self._worker_progress = Progress(
            SpinnerColumn(),
            TextColumn("[dim]\\[worker {task.fields[worker_id]}][/dim] {task.description}"),
            console=console,
        )
        self._total_task = self._total_progress.add_task("[cyan]Unpacking depth maps", total=total)
        self._live = Live(
            Group(self._total_progress, self._worker_progress),
            console=console,
            refresh_per_second=10,
        )
        self._started = False

    @property
    def completed(self) -> int:
        task = next(t for t in self._total_progress.tasks if t.id == self._total_task)
        return int(task.completed)

    def start(self) -> None:
        if self.enabled and not self._started:
            self._live.start()
            self._started = True

    def new_worker_handle(self, worker_id: int) -> WorkerProgress:
        task_id = self._worker_progress.add_task("idle", total=None, worker_id=worker_id)
        return WorkerProgress(worker_id, self._worker_progress, task_id)

    def increment_total(self) -> None:
        self._total_progress.advance(self._total_task)

    def finish_total(self) -> None:
        """Stop rendering; the last frame stays on screen."""
        if self._started:
            self._live.stop()
            self._started = False

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.finish_total()
