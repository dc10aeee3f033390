#!/usr/bin/env python3
"""
Depth Map PNG Codec Module.

Reads packed-depth RGBA8 PNGs into reusable byte buffers and writes 8-bit
grayscale PNGs, using pypng.

SPDX-License-Identifier: MPL-2.0
Copyright (c) 2025-2026 Aryan Ameri
"""

from __future__ import annotations

import zlib
from contextlib import suppress
from pathlib import Path
from typing import BinaryIO, Final

import png

from depth_transform import BYTES_PER_PIXEL, resize_buffer

__all__: Final[list[str]] = [
    "MAX_DECODE_BYTES",
    "CodecError",
    "DecodeError",
    "UnsupportedFormatError",
    "EncodeError",
    "decode_rgba_png",
    "decode_rgba_png_file",
    "encode_grayscale_png",
    "encode_grayscale_png_file",
]

# Only 8-bit samples are read or written
BIT_DEPTH: Final[int] = 8

# Largest decoded RGBA buffer accepted from an image header (512 MiB)
MAX_DECODE_BYTES: Final[int] = 512 * 1024 * 1024

# Errors pypng and zlib raise on malformed or truncated streams
_PNG_READ_ERRORS: Final = (png.Error, zlib.error, EOFError, ValueError)


class CodecError(Exception):
    """Base exception for depth map codec errors."""


class DecodeError(CodecError):
    """Source image is unreadable, corrupt, or truncated."""


class UnsupportedFormatError(DecodeError):
    """Source image is a valid PNG but not 8-bit RGBA."""


class EncodeError(CodecError):
    """Destination image could not be written."""


def _check_rgba8(info: dict[str, object]) -> None:
    """Reject anything other than 4 channels of 8 bits each."""
    planes = info.get("planes")
    bitdepth = info.get("bitdepth")
    if planes != BYTES_PER_PIXEL or bitdepth != BIT_DEPTH:
        # RGBA may carry a suggested palette; only single-plane images are indexed
        kind = "palette" if "palette" in info and planes == 1 else f"{planes} channel(s)"
        raise UnsupportedFormatError(
            f"Expected 8-bit RGBA, got {kind} at {bitdepth}-bit"
        )


def decode_rgba_png(stream: BinaryIO, buffer: bytearray) -> tuple[int, int]:
    """Decode an RGBA8 PNG into ``buffer``.

    ``buffer`` is resized in place to exactly ``4 * width * height`` bytes and
    overwritten, so one bytearray can be reused across many images. Rows the
    decoder yields beyond the announced size are ignored.

    Args:
        stream: Readable binary stream positioned at the PNG signature
        buffer: Scratch buffer that receives the packed pixels

    Returns:
        (width, height) in pixels

    Raises:
        UnsupportedFormatError: If the image is not 8-bit RGBA
        DecodeError: If the stream is corrupt, truncated, or unreadable, or
            the announced size exceeds ``MAX_DECODE_BYTES``
    """
    try:
        width, height, rows, info = png.Reader(file=stream).read()
        _check_rgba8(info)

        size = width * height * BYTES_PER_PIXEL
        if size > MAX_DECODE_BYTES:
            raise DecodeError(
                f"Image of {width}x{height} exceeds the {MAX_DECODE_BYTES} byte decode limit"
            )
        resize_buffer(buffer, size)

        filled = 0
        with memoryview(buffer) as view:
            for row in rows:
                if filled >= size:
                    break
                end = min(filled + len(row), size)
                view[filled:end] = row[: end - filled]
                filled = end
    except DecodeError:
        raise
    except OSError as e:
        raise DecodeError(f"I/O error while reading PNG: {e}") from e
    except (MemoryError, OverflowError) as e:
        raise DecodeError(f"Cannot allocate pixel buffer: {e!r}") from e
    except _PNG_READ_ERRORS as e:
        raise DecodeError(f"Malformed PNG: {e}") from e

    if filled != size:
        raise DecodeError(f"Truncated pixel data: expected {size} bytes, got {filled}")

    return width, height


def decode_rgba_png_file(path: Path, buffer: bytearray) -> tuple[int, int]:
    """Open ``path`` and decode it with ``decode_rgba_png``."""
    try:
        with open(path, "rb") as f:
            return decode_rgba_png(f, buffer)
    except OSError as e:
        raise DecodeError(f"Cannot read {path}: {e}") from e


def encode_grayscale_png(
    stream: BinaryIO,
    width: int,
    height: int,
    buffer: bytes | bytearray,
) -> None:
    """Write ``buffer`` as a non-interlaced 8-bit grayscale PNG.

    No ancillary chunks (time, gamma, text) are emitted, so identical input
    always produces identical bytes.

    Raises:
        EncodeError: If the buffer does not match the dimensions or the
            write fails
    """
    if len(buffer) != width * height:
        raise EncodeError(
            f"Grayscale buffer holds {len(buffer)} bytes, expected {width}x{height}"
        )

    try:
        writer = png.Writer(
            width=width,
            height=height,
            greyscale=True,
            bitdepth=BIT_DEPTH,
            interlace=False,
        )
        rows = (buffer[y * width : (y + 1) * width] for y in range(height))
        writer.write(stream, rows)
    except OSError as e:
        raise EncodeError(f"I/O error while writing PNG: {e}") from e
    except (png.Error, ValueError) as e:
        raise EncodeError(f"Cannot encode PNG: {e}") from e


def encode_grayscale_png_file(
    path: Path,
    width: int,
    height: int,
    buffer: bytes | bytearray,
) -> None:
    """Create or overwrite ``path`` with a grayscale PNG.

    A partially written file is removed on failure. If ``path`` cannot be
    opened at all, any existing file there is left alone.
    """
    opened = False
    try:
        with open(path, "wb") as f:
            opened = True
            encode_grayscale_png(f, width, height, buffer)
    except OSError as e:
        if opened:
            _remove_partial(path)
        raise EncodeError(f"Cannot write {path}: {e}") from e
    except EncodeError:
        _remove_partial(path)
        raise


def _remove_partial(path: Path) -> None:
    with suppress(OSError):
        Path(path).unlink(missing_ok=True)
