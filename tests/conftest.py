"""
conftest.py
-----------
Shared fixtures for the depth unpacking tests.
"""

import struct
import zlib
from pathlib import Path

import png
import pytest

from depth_transform import pack_depth


def write_rgba_png(path: Path, width: int, height: int, pixels: bytes) -> Path:
    """Write packed RGBA8 pixels to ``path``."""
    writer = png.Writer(width=width, height=height, greyscale=False, alpha=True, bitdepth=8)
    stride = width * 4
    rows = [pixels[y * stride : (y + 1) * stride] for y in range(height)]
    with open(path, "wb") as f:
        writer.write(f, rows)
    return path


def _chunk(kind: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))


def rgba_header_only_png(width: int, height: int) -> bytes:
    """Well-formed RGBA8 PNG whose header announces ``width`` x ``height``
    but whose IDAT holds almost no pixel data."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _chunk(b"IHDR", ihdr)
        + _chunk(b"IDAT", zlib.compress(bytes(5)))
        + _chunk(b"IEND", b"")
    )


def write_depth_png(path: Path, depths: list[list[float]]) -> Path:
    """Pack a 2-D grid of float depths into an RGBA8 PNG."""
    height = len(depths)
    width = len(depths[0])
    flat = [d for row in depths for d in row]
    return write_rgba_png(path, width, height, pack_depth(flat))


@pytest.fixture
def depth_grid() -> list[list[float]]:
    """3x2 grid covering far, near, midpoint, and both out-of-range sides."""
    return [
        [0.0, 1.0, 0.5],
        [-2.0, 3.0, 0.25],
    ]


@pytest.fixture
def source_dir(tmp_path: Path, depth_grid) -> Path:
    """Directory of three valid packed depth PNGs and one unrelated file."""
    src = tmp_path / "src"
    src.mkdir()
    for i in range(3):
        write_depth_png(src / f"frame_{i:03d}.png", depth_grid)
    (src / "notes.txt").write_text("not a depth map")
    return src
