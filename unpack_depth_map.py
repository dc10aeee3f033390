#!/usr/bin/env -S uv run --quiet --script
# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "numpy>=1.26",
#     "pypng==0.20220715.0",
#     "rich>=13.0.0",
# ]
# ///
#
# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025-2026 Aryan Ameri
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""
Unpack Depth Maps

Converts a directory of depth-map PNGs, whose 32-bit float depth values are
packed into the RGBA channels, into 8-bit grayscale PNGs. Depth equal to the
near clip plane becomes white, depth at the far clip plane becomes black.

Every option falls back to an environment variable (SOURCE_DIR, DEST_DIR,
SOURCE_SUFFIX, DEST_SUFFIX, NUM_WORKERS, NEAR, FAR).

Usage:
    ./unpack_depth_map.py --source-dir frames --dest-dir depth --near 0.1 --far 100
    uv run --env-file .env unpack_depth_map.py
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Final

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from depth_config import DEFAULT_DEST_SUFFIX, DEFAULT_SOURCE_SUFFIX, Config, ConfigError
from job_queue import EnumerationError, JobQueue, discover_jobs
from progress_bars import ProgressBars
from worker_pool import RunStats, WorkerPoolError, run_workers

__all__: Final[list[str]] = [
    "configure_logging",
    "parse_args",
    "main",
]

__version__: Final[str] = "1.0.0"

# Exit statuses
EXIT_OK: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_CONFIG_ERROR: Final[int] = 2
EXIT_INTERRUPTED: Final[int] = 130

# Console shared by log output and the progress display
console = Console()

logger = logging.getLogger("unpack_depth_map")


def configure_logging(verbose: bool = False) -> None:
    """Route log records through rich so they print above the live progress."""
    handler = RichHandler(console=console, show_path=False, markup=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Unpack RGBA-packed float depth maps into 8-bit grayscale PNGs.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Each source pixel's R, G, B, A bytes hold one big-endian float32 stored as
A, R, G, B. Output intensity is 255 * clamp((depth - far) / (near - far), 0, 1).

Environment variables:
  SOURCE_DIR      Directory holding packed depth PNGs
  DEST_DIR        Output directory (default: SOURCE_DIR)
  SOURCE_SUFFIX   Suffix selecting source files (default: {DEFAULT_SOURCE_SUFFIX})
  DEST_SUFFIX     Suffix replacing it on output (default: {DEFAULT_DEST_SUFFIX})
  NUM_WORKERS     Worker threads (default: CPU count)
  NEAR, FAR       Clip planes

Examples:
  %(prog)s -s frames -d depth --near 0.1 --far 100
  %(prog)s -s frames --source-suffix _packed.png --dest-suffix _gray.png --near 1 --far 0
  %(prog)s -j 4 -v --strict
""",
    )

    parser.add_argument(
        "-s",
        "--source-dir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Directory containing packed depth PNGs",
    )
    parser.add_argument(
        "-d",
        "--dest-dir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Output directory (default: source directory)",
    )
    parser.add_argument(
        "--source-suffix",
        default=None,
        metavar="SUFFIX",
        help=f"Only convert files ending with SUFFIX (default: {DEFAULT_SOURCE_SUFFIX})",
    )
    parser.add_argument(
        "--dest-suffix",
        default=None,
        metavar="SUFFIX",
        help=f"Replace the source suffix with SUFFIX (default: {DEFAULT_DEST_SUFFIX})",
    )
    parser.add_argument(
        "-j",
        "--num-workers",
        "--jobs",
        dest="num_workers",
        type=int,
        default=None,
        metavar="N",
        help="Worker threads (default: CPU count)",
    )
    parser.add_argument(
        "--near",
        type=float,
        default=None,
        help="Depth mapped to white (255)",
    )
    parser.add_argument(
        "--far",
        type=float,
        default=None,
        help="Depth mapped to black (0)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 if any file failed to convert",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the live progress display",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def _print_summary(stats: RunStats, verbose: bool) -> None:
    console.print()
    if stats.failed == 0:
        console.print(f"[green]Complete:[/green] {stats.succeeded} depth map(s) converted")
        return

    console.print(
        f"[yellow]Complete:[/yellow] {stats.succeeded} converted, "
        f"[red]{stats.failed} failed[/red]"
    )
    if verbose:
        table = Table(title="Failed Files")
        table.add_column("File", style="cyan")
        table.add_column("Reason", style="red")
        for name, reason in sorted(stats.failures):
            table.add_row(name, reason)
        console.print(table)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = Config.create(
            source_dir=args.source_dir,
            dest_dir=args.dest_dir,
            source_suffix=args.source_suffix,
            dest_suffix=args.dest_suffix,
            num_workers=args.num_workers,
            near=args.near,
            far=args.far,
        )
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return EXIT_CONFIG_ERROR

    logger.debug("Config: %s", config)

    try:
        jobs = discover_jobs(
            config.source_dir,
            config.dest_dir,
            config.source_suffix,
            config.dest_suffix,
        )
    except EnumerationError as e:
        console.print(f"[red]Error:[/red] {e}")
        return EXIT_FAILURE

    if not jobs:
        console.print(
            f"[yellow]No files ending with {config.source_suffix!r} found in {config.source_dir}[/yellow]"
        )
        return EXIT_OK

    console.print()
    console.print(f"[bold]Unpack Depth Maps v{__version__}[/bold]")
    console.print(f"Source: {config.source_dir}")
    console.print(f"Destination: {config.dest_dir}")
    console.print(f"Found: {len(jobs)} file(s)")
    console.print(f"Clip planes: near={config.near} far={config.far}")
    console.print(f"Workers: {min(config.num_workers, len(jobs))}")
    console.print()

    queue = JobQueue(jobs)
    try:
        with ProgressBars(len(jobs), console=console, enabled=not args.no_progress) as reporter:
            stats = run_workers(queue, config, reporter)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return EXIT_INTERRUPTED
    except WorkerPoolError as e:
        console.print(f"\n[red]Worker failure:[/red] {e}")
        if e.stats is not None:
            _print_summary(e.stats, args.verbose)
        return EXIT_FAILURE

    _print_summary(stats, args.verbose)

    if args.strict and stats.failed:
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
