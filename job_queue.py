#!/usr/bin/env python3
"""
Conversion Job Queue Module.

Jobs are discovered once from the source directory, loaded into a
lock-guarded deque, then drained concurrently by the worker threads.
Nothing is pushed back once draining starts.

SPDX-License-Identifier: MPL-2.0
Copyright (c) 2025-2026 Aryan Ameri
"""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Final

__all__: Final[list[str]] = [
    "Job",
    "JobQueue",
    "QueueAccessError",
    "EnumerationError",
    "dest_file_name",
    "discover_jobs",
]

logger = logging.getLogger(__name__)


class QueueAccessError(Exception):
    """The queue's shared state was left inconsistent by a failed access."""


class EnumerationError(Exception):
    """The source directory could not be listed."""


@dataclass(frozen=True, slots=True)
class Job:
    """One source-to-destination conversion task."""

    source_path: Path
    display_name: str
    dest_path: Path


class JobQueue:
    """Write-once, drain-many job queue shared by the worker threads.

    The lock is held only while popping. If a pop ever fails part-way
    through, the queue is marked poisoned and every later ``try_pop``
    raises ``QueueAccessError``. Python locks cannot themselves be
    poisoned; the flag stands in for a critical section that failed while
    the lock was held, after which the deque contents are not trusted.
    """

    __slots__ = ("_jobs", "_lock", "_poisoned")

    def __init__(self, jobs: Iterable[Job] = ()) -> None:
        self._jobs: deque[Job] = deque(jobs)
        self._lock = threading.Lock()
        self._poisoned = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    def try_pop(self) -> Job | None:
        """Remove and return the front job, or None once the queue is empty.

        Raises:
            QueueAccessError: If the queue is poisoned
        """
        with self._lock:
            if self._poisoned:
                raise QueueAccessError("Job queue is poisoned by an earlier failed access")
            try:
                return self._jobs.popleft() if self._jobs else None
            except Exception as e:
                self._poisoned = True
                raise QueueAccessError(f"Job queue access failed: {e}") from e


def dest_file_name(name: str, source_suffix: str, dest_suffix: str) -> str | None:
    """Map ``frame_001.exr`` to ``frame_001_depth.png``; None if the suffix doesn't match."""
    if not name.endswith(source_suffix):
        return None
    return name.removesuffix(source_suffix) + dest_suffix


def _is_utf8(name: str) -> bool:
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def discover_jobs(
    source_dir: Path,
    dest_dir: Path,
    source_suffix: str,
    dest_suffix: str,
) -> list[Job]:
    """List regular files in ``source_dir`` ending with ``source_suffix``.

    Directories, symlinks, other non-regular entries, and names that are
    not valid UTF-8 are skipped. Jobs are returned sorted by file name.

    Raises:
        EnumerationError: If the directory or an entry cannot be read
    """
    jobs: list[Job] = []
    try:
        with os.scandir(source_dir) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if not entry.is_file(follow_symlinks=False):
                continue
            if not _is_utf8(entry.name):
                logger.debug("Skipping undecodable file name %r", entry.name)
                continue
            dest_name = dest_file_name(entry.name, source_suffix, dest_suffix)
            if dest_name is None:
                continue
            jobs.append(
                Job(
                    source_path=Path(entry.path),
                    display_name=entry.name,
                    dest_path=Path(dest_dir) / dest_name,
                )
            )
    except OSError as e:
        raise EnumerationError(f"Cannot list {source_dir}: {e}") from e

    logger.debug("Discovered %d job(s) in %s", len(jobs), source_dir)
    return jobs
