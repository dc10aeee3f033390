#!/usr/bin/env python3
"""
Depth Unpacking Configuration Module.

Settings come from explicit arguments first, then environment variables
of the same upper-case name (SOURCE_DIR, DEST_DIR, SOURCE_SUFFIX,
DEST_SUFFIX, NUM_WORKERS, NEAR, FAR), then defaults. A `.env` file can be
supplied with `uv run --env-file .env unpack_depth_map.py`.

SPDX-License-Identifier: MPL-2.0
Copyright (c) 2025-2026 Aryan Ameri
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Self

import numpy as np

__all__: Final[list[str]] = [
    "Config",
    "ConfigError",
    "DEFAULT_SOURCE_SUFFIX",
    "DEFAULT_DEST_SUFFIX",
]

DEFAULT_SOURCE_SUFFIX: Final[str] = ".png"
DEFAULT_DEST_SUFFIX: Final[str] = "_depth.png"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration is missing or invalid."""


def _get_cpu_count() -> int:
    """Get CPU count with fallback."""
    return os.cpu_count() or 1


def _get_env_str(environ: Mapping[str, str], var_name: str, /) -> str | None:
    """Get a string from the environment, or None if not set/empty."""
    value = environ.get(var_name, "").strip()
    return value or None


def _get_env_path(environ: Mapping[str, str], var_name: str, /) -> Path | None:
    """Get a Path from the environment, or None if not set/empty."""
    value = _get_env_str(environ, var_name)
    return Path(value) if value else None


def _get_env_int(environ: Mapping[str, str], var_name: str, /) -> int | None:
    """Get an int from the environment, or None if not set/empty."""
    value = _get_env_str(environ, var_name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{var_name} must be an integer, got {value!r}") from None


def _get_env_float(environ: Mapping[str, str], var_name: str, /) -> float | None:
    """Get a float from the environment, or None if not set/empty."""
    value = _get_env_str(environ, var_name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{var_name} must be a number, got {value!r}") from None


@dataclass(frozen=True, slots=True, kw_only=True)
class Config:
    """Immutable run configuration, shared read-only by all workers."""

    source_dir: Path
    dest_dir: Path
    source_suffix: str = DEFAULT_SOURCE_SUFFIX
    dest_suffix: str = DEFAULT_DEST_SUFFIX
    num_workers: int
    near: float
    far: float

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.num_workers < 1:
            raise ConfigError(f"num_workers must be >= 1, got {self.num_workers}")
        for name in ("near", "far"):
            value = getattr(self, name)
            # Depths are compared in float32, so the value must survive the cast
            with np.errstate(over="ignore"):
                finite = bool(np.isfinite(np.float32(value)))
            if not finite:
                raise ConfigError(f"{name} must be a finite float32 value, got {value}")
        if not self.dest_suffix:
            raise ConfigError("dest_suffix must not be empty")
        if (
            self.source_suffix == self.dest_suffix
            and Path(self.source_dir).resolve() == Path(self.dest_dir).resolve()
        ):
            raise ConfigError(
                "Destination equals source directory with the same suffix; "
                "source files would be overwritten"
            )

    @property
    def is_degenerate(self) -> bool:
        """True when near == far and every depth maps to 0 or 255."""
        return self.near == self.far

    @classmethod
    def create(
        cls,
        *,
        source_dir: Path | None = None,
        dest_dir: Path | None = None,
        source_suffix: str | None = None,
        dest_suffix: str | None = None,
        num_workers: int | None = None,
        near: float | None = None,
        far: float | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Self:
        """Create config from arguments with environment variable fallbacks.

        The source directory must exist; a missing destination directory is
        created.

        Raises:
            ConfigError: If a value is missing, unparseable, or invalid
        """
        env = os.environ if environ is None else environ

        source_dir = source_dir or _get_env_path(env, "SOURCE_DIR")
        if source_dir is None:
            raise ConfigError("Source directory is required (--source-dir or SOURCE_DIR)")
        source_dir = Path(source_dir).expanduser().resolve()
        if not source_dir.is_dir():
            raise ConfigError(f"Source directory does not exist: {source_dir}")

        dest_dir = dest_dir or _get_env_path(env, "DEST_DIR") or source_dir
        dest_dir = Path(dest_dir).expanduser().resolve()

        if near is None:
            near = _get_env_float(env, "NEAR")
        if far is None:
            far = _get_env_float(env, "FAR")
        if near is None or far is None:
            raise ConfigError("Both near and far clip planes are required (--near/--far or NEAR/FAR)")

        if num_workers is None:
            num_workers = _get_env_int(env, "NUM_WORKERS")
        if num_workers is None:
            num_workers = _get_cpu_count()

        if source_suffix is None:
            source_suffix = _get_env_str(env, "SOURCE_SUFFIX") or DEFAULT_SOURCE_SUFFIX
        if dest_suffix is None:
            dest_suffix = _get_env_str(env, "DEST_SUFFIX") or DEFAULT_DEST_SUFFIX

        config = cls(
            source_dir=source_dir,
            dest_dir=dest_dir,
            source_suffix=source_suffix,
            dest_suffix=dest_suffix,
            num_workers=num_workers,
            near=near,
            far=far,
        )

        try:
            config.dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Cannot create destination directory {config.dest_dir}: {e}") from e

        if config.is_degenerate:
            logger.warning(
                "near == far (%s): depths equal to it map to 0, all others to 0 or 255", config.near
            )
        return config
