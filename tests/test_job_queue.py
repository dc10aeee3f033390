"""
test_job_queue.py
-----------------
Tests for JobQueue draining and source directory discovery.
"""

import os
import threading
from collections import deque
from pathlib import Path

import pytest

from job_queue import (
    EnumerationError,
    Job,
    JobQueue,
    QueueAccessError,
    dest_file_name,
    discover_jobs,
)


def _jobs(n: int) -> list[Job]:
    return [Job(Path(f"in/{i}.png"), f"{i}.png", Path(f"out/{i}.png")) for i in range(n)]


# ---------------------------------------------------------------------------
# 1. Queue semantics
# ---------------------------------------------------------------------------

def test_pops_in_fifo_order_then_none():
    jobs = _jobs(3)
    queue = JobQueue(jobs)
    assert len(queue) == 3
    assert [queue.try_pop() for _ in range(3)] == jobs
    assert queue.try_pop() is None
    assert queue.try_pop() is None
    assert len(queue) == 0


def test_concurrent_drain_delivers_each_job_once():
    jobs = _jobs(2000)
    queue = JobQueue(jobs)
    taken: list[list[Job]] = [[] for _ in range(8)]
    start = threading.Barrier(8)

    def drain(slot: list[Job]) -> None:
        start.wait()
        while (job := queue.try_pop()) is not None:
            slot.append(job)

    threads = [threading.Thread(target=drain, args=(slot,)) for slot in taken]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    delivered = [job for slot in taken for job in slot]
    assert len(delivered) == len(jobs)
    assert set(delivered) == set(jobs)


class _FailingDeque(deque):
    def popleft(self):
        raise RuntimeError("boom")


def test_failed_access_poisons_queue():
    queue = JobQueue(_jobs(2))
    queue._jobs = _FailingDeque(_jobs(2))

    with pytest.raises(QueueAccessError):
        queue.try_pop()
    assert queue.poisoned
    with pytest.raises(QueueAccessError):
        queue.try_pop()


# ---------------------------------------------------------------------------
# 2. Destination names
# ---------------------------------------------------------------------------

def test_dest_file_name():
    assert dest_file_name("frame_001.exr", ".exr", "_depth.png") == "frame_001_depth.png"
    assert dest_file_name("frame_001.png", ".exr", "_depth.png") is None
    assert dest_file_name(".exr", ".exr", "_depth.png") == "_depth.png"


# ---------------------------------------------------------------------------
# 3. Discovery
# ---------------------------------------------------------------------------

def test_discover_filters_by_suffix(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    for name in ("b_packed.png", "a_packed.png", "c.png", "readme.txt"):
        (src / name).write_bytes(b"")
    (src / "dir_packed.png").mkdir()

    jobs = discover_jobs(src, tmp_path / "out", "_packed.png", "_gray.png")

    assert [j.display_name for j in jobs] == ["a_packed.png", "b_packed.png"]
    assert jobs[0].source_path == src / "a_packed.png"
    assert jobs[0].dest_path == tmp_path / "out" / "a_gray.png"


def test_discover_skips_symlinks(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "real.png").write_bytes(b"")
    try:
        os.symlink(src / "real.png", src / "link.png")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")

    jobs = discover_jobs(src, src, ".png", "_depth.png")
    assert [j.display_name for j in jobs] == ["real.png"]


def test_discover_missing_directory(tmp_path):
    with pytest.raises(EnumerationError):
        discover_jobs(tmp_path / "missing", tmp_path, ".png", "_depth.png")
