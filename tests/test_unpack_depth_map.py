"""
test_unpack_depth_map.py
------------------------
End-to-end runs of the command-line entry point.
"""

import pytest

from unpack_depth_map import main, parse_args
from worker_pool import Worker

ENV_VARS = ("SOURCE_DIR", "DEST_DIR", "SOURCE_SUFFIX", "DEST_SUFFIX", "NUM_WORKERS", "NEAR", "FAR")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_parse_args_aliases():
    args = parse_args(["-s", "in", "--jobs", "3", "--near", "0.1", "--far", "-5"])
    assert str(args.source_dir) == "in"
    assert args.num_workers == 3
    assert (args.near, args.far) == (0.1, -5.0)
    assert not args.strict


def test_converts_directory(source_dir, tmp_path):
    out = tmp_path / "out"
    code = main(["-s", str(source_dir), "-d", str(out), "--near", "1", "--far", "0", "-j", "2", "--no-progress"])

    assert code == 0
    assert sorted(p.name for p in out.iterdir()) == [
        "frame_000_depth.png",
        "frame_001_depth.png",
        "frame_002_depth.png",
    ]


def test_failed_file_still_succeeds_unless_strict(source_dir, tmp_path):
    (source_dir / "broken.png").write_bytes(b"nope")
    out = tmp_path / "out"
    argv = ["-s", str(source_dir), "-d", str(out), "--near", "1", "--far", "0", "--no-progress"]

    assert main(argv) == 0
    assert len(list(out.iterdir())) == 3
    assert main([*argv, "--strict", "-v"]) == 1


def test_reads_environment(source_dir, tmp_path, monkeypatch):
    monkeypatch.setenv("SOURCE_DIR", str(source_dir))
    monkeypatch.setenv("DEST_DIR", str(tmp_path / "env_out"))
    monkeypatch.setenv("NEAR", "1")
    monkeypatch.setenv("FAR", "0")

    assert main(["--no-progress"]) == 0
    assert len(list((tmp_path / "env_out").iterdir())) == 3


def test_config_error_exit_status(tmp_path):
    assert main(["-s", str(tmp_path / "missing"), "--near", "1", "--far", "0"]) == 2


def test_no_matching_files(tmp_path):
    assert main(["-s", str(tmp_path), "--source-suffix", ".exr", "--near", "1", "--far", "0"]) == 0


def test_worker_crash_exit_status(source_dir, tmp_path, monkeypatch):
    def explode(self, job):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(Worker, "process_job", explode)
    code = main(["-s", str(source_dir), "-d", str(tmp_path / "o"), "--near", "1", "--far", "0", "--no-progress"])
    assert code == 1
