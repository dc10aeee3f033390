#!/usr/bin/env python3
"""
Packed-Depth Transform Module.

Maps depth maps whose 32-bit float samples are packed into the four 8-bit
channels of an RGBA pixel onto 8-bit grayscale intensity.

Packing layout (per pixel, bytes in R, G, B, A order):
    bits = A << 24 | R << 16 | G << 8 | B
    depth = bits reinterpreted as IEEE-754 binary32

SPDX-License-Identifier: MPL-2.0
Copyright (c) 2025-2026 Aryan Ameri
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Final

import numpy as np
from numpy.typing import NDArray

__all__: Final[list[str]] = [
    "BYTES_PER_PIXEL",
    "pack_depth",
    "unpack_depth",
    "unpack_depth_values",
    "resize_buffer",
]

# Bytes per packed source pixel (R, G, B, A)
BYTES_PER_PIXEL: Final[int] = 4

_MAX_LEVEL: Final[np.float32] = np.float32(255.0)


def resize_buffer(buffer: bytearray, size: int) -> None:
    """Grow or shrink ``buffer`` in place to exactly ``size`` bytes."""
    current = len(buffer)
    if current > size:
        del buffer[size:]
    elif current < size:
        buffer.extend(bytes(size - current))


def unpack_depth_values(source: bytes | bytearray | memoryview) -> NDArray[np.float32]:
    """Reassemble packed RGBA pixels into their float32 depth values.

    Args:
        source: Packed pixels, 4 bytes per pixel in R, G, B, A order

    Returns:
        One float32 depth per pixel

    Raises:
        ValueError: If the buffer length is not a multiple of 4
    """
    if len(source) % BYTES_PER_PIXEL:
        raise ValueError(
            f"Packed depth buffer length {len(source)} is not a multiple of {BYTES_PER_PIXEL}"
        )

    channels = np.frombuffer(source, dtype=np.uint8).reshape(-1, BYTES_PER_PIXEL).astype(np.uint32)
    r, g, b, a = channels[:, 0], channels[:, 1], channels[:, 2], channels[:, 3]

    # Alpha carries the most significant byte, blue the least
    bits = (a << 24) | (r << 16) | (g << 8) | b
    return bits.view(np.float32)


def unpack_depth(
    source: bytes | bytearray | memoryview,
    near: float,
    far: float,
    out: bytearray | None = None,
) -> bytearray:
    """Convert packed RGBA depth pixels to 8-bit grayscale intensity.

    Each pixel maps to ``trunc(255 * clamp((depth - far) / (near - far), 0, 1))``,
    so ``depth == near`` gives 255 and ``depth == far`` gives 0. Arithmetic
    is done in float32.

    A NaN intensity (NaN depth, or ``depth == far`` when ``near == far``)
    maps to 0. Infinite intensities clamp like any other out-of-range value.

    Args:
        source: Packed pixels, 4 bytes per pixel in R, G, B, A order
        near: Depth mapped to full intensity
        far: Depth mapped to zero intensity
        out: Buffer to reuse for the result; resized in place

    Returns:
        ``out`` (or a new bytearray) holding one byte per source pixel

    Raises:
        ValueError: If the source length is not a multiple of 4
    """
    depth = unpack_depth_values(source)
    near32 = np.float32(near)
    far32 = np.float32(far)

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        intensity = (depth - far32) / (near32 - far32)
    np.clip(intensity, 0.0, 1.0, out=intensity)
    intensity[np.isnan(intensity)] = 0.0

    levels = _MAX_LEVEL * intensity

    if out is None:
        out = bytearray()
    resize_buffer(out, levels.size)
    if levels.size:
        # float -> uint8 cast truncates toward zero; levels is within [0, 255]
        np.copyto(np.frombuffer(out, dtype=np.uint8), levels, casting="unsafe")
    return out


def pack_depth(depths: Iterable[float] | NDArray[np.floating]) -> bytes:
    """Pack float depths into RGBA bytes, the inverse of ``unpack_depth_values``."""
    if not isinstance(depths, np.ndarray):
        depths = list(depths)
    bits = np.asarray(depths, dtype=np.float32).reshape(-1).view(np.uint32)

    packed = np.empty((bits.size, BYTES_PER_PIXEL), dtype=np.uint8)
    packed[:, 0] = (bits >> 16) & 0xFF
    packed[:, 1] = (bits >> 8) & 0xFF
    packed[:, 2] = bits & 0xFF
    packed[:, 3] = (bits >> 24) & 0xFF
    return packed.tobytes()
