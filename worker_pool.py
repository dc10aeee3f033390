#!/usr/bin/env python3
"""
Depth Unpacking Worker Pool.

A fixed number of worker threads drain the shared JobQueue. Each worker
owns one source and one destination scratch buffer for its whole
lifetime and runs decode -> unpack -> encode per job. A failed job is
logged and counted; the worker moves on to the next one.

SPDX-License-Identifier: MPL-2.0
Copyright (c) 2025-2026 Aryan Ameri
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Final

from depth_codec import CodecError, decode_rgba_png_file, encode_grayscale_png_file
from depth_config import Config
from depth_transform import unpack_depth
from job_queue import Job, JobQueue, QueueAccessError
from progress_bars import ProgressBars, WorkerProgress

__all__: Final[list[str]] = [
    "JobResult",
    "RunStats",
    "Worker",
    "WorkerPoolError",
    "run_workers",
]

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class WorkerPoolError(Exception):
    """One or more worker threads terminated abnormally."""

    __slots__ = ("worker_ids", "stats")

    def __init__(
        self,
        message: str,
        *,
        worker_ids: Sequence[int] = (),
        stats: RunStats | None = None,
    ) -> None:
        super().__init__(message)
        self.worker_ids = tuple(worker_ids)
        self.stats = stats


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True, slots=True)
class JobResult:
    """Outcome of one job; ``error`` is None on success."""

    job: Job
    error: CodecError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class RunStats:
    """Success/failure counts shared by all workers."""

    succeeded: int = 0
    failed: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, result: JobResult) -> None:
        with self._lock:
            if result.ok:
                self.succeeded += 1
            else:
                self.failed += 1
                self.failures.append((result.job.display_name, str(result.error)))

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


# =============================================================================
# Worker
# =============================================================================


class Worker:
    """Drains jobs from the shared queue until it is empty."""

    def __init__(
        self,
        worker_id: int,
        queue: JobQueue,
        config: Config,
        progress: WorkerProgress,
        reporter: ProgressBars,
        stats: RunStats,
    ) -> None:
        self.worker_id = worker_id
        self.queue = queue
        self.config = config
        self.progress = progress
        self.reporter = reporter
        self.stats = stats
        # Reused across jobs, resized in place
        self.source_buffer = bytearray()
        self.dest_buffer = bytearray()

    def run(self) -> int:
        """Process jobs until the queue is exhausted; return how many were handled."""
        handled = 0
        try:
            while (job := self._next_job()) is not None:
                result = self.process_job(job)
                self.stats.record(result)
                handled += 1

                if result.ok:
                    self.reporter.increment_total()
                    logger.debug("worker %d: %s -> %s", self.worker_id, job.display_name, job.dest_path.name)
                else:
                    logger.warning("worker %d: failed %s: %s", self.worker_id, job.display_name, result.error)
        finally:
            self.progress.finish()
        return handled

    def _next_job(self) -> Job | None:
        try:
            return self.queue.try_pop()
        except QueueAccessError as e:
            logger.error("worker %d: %s; taking no further jobs", self.worker_id, e)
            return None

    def process_job(self, job: Job) -> JobResult:
        """Decode, unpack, and encode a single job."""
        self.progress.set_status(f"unpacking {job.display_name}")
        try:
            width, height = decode_rgba_png_file(job.source_path, self.source_buffer)
            unpack_depth(self.source_buffer, self.config.near, self.config.far, out=self.dest_buffer)
            encode_grayscale_png_file(job.dest_path, width, height, self.dest_buffer)
        except CodecError as e:
            return JobResult(job, error=e)
        finally:
            self.progress.set_status("idle")
        return JobResult(job)


# =============================================================================
# Pool
# =============================================================================


def run_workers(queue: JobQueue, config: Config, reporter: ProgressBars) -> RunStats:
    """Run ``config.num_workers`` workers over ``queue`` and wait for all of them.

    At most one worker per queued job is started, and always at least one.

    Raises:
        WorkerPoolError: If any worker thread raised, after the rest finish
    """
    stats = RunStats()
    num_workers = max(1, min(config.num_workers, len(queue)))

    workers = [
        Worker(i, queue, config, reporter.new_worker_handle(i), reporter, stats)
        for i in range(num_workers)
    ]

    crashed: list[int] = []
    with ThreadPoolExecutor(max_workers=num_workers, thread_name_prefix="depth-worker") as executor:
        futures = {executor.submit(worker.run): worker for worker in workers}

        for future in as_completed(futures):
            worker = futures[future]
            try:
                handled = future.result()
                logger.debug("worker %d finished after %d job(s)", worker.worker_id, handled)
            except Exception as e:
                logger.error("worker %d terminated abnormally: %s", worker.worker_id, e)
                crashed.append(worker.worker_id)

    if crashed:
        crashed.sort()
        raise WorkerPoolError(
            f"{len(crashed)} worker(s) terminated abnormally: {crashed}",
            worker_ids=crashed,
            stats=stats,
        )
    return stats
