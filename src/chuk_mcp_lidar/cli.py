#!/usr/bin/env python3
"""
LIDAR heightmap CLI - one-shot batch run without the MCP server.

Example:
    chuk-mcp-lidar-run -p "(462, 101)" -r 2 --possible-blocks 35 36 -d ./out
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .constants import (
    ALL_SOURCE_IDS,
    DEFAULT_BLUR_KERNEL_SIZE,
    DEFAULT_BLUR_WORKERS,
    DEFAULT_ORIGIN_POLICY,
    DEFAULT_RESOLUTION,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SOURCE,
    ORIGIN_POLICIES,
    EnvVar,
    ErrorMessages,
)
from .core.fetcher import WorkerCrashedError
from .core.heightfield import DegenerateBoundsError
from .core.lidar_manager import LidarManager, RunConfig
from .core.region import build_areas

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chuk-mcp-lidar-run",
        description="Fetch LIDAR tiles around core points and write float heightmaps",
    )
    parser.add_argument(
        "-p",
        "--points",
        nargs="+",
        required=True,
        help='Core tile coordinates, e.g. "(462, 101)"',
    )
    parser.add_argument(
        "-r", "--radii", nargs="+", type=int, required=True, help="One radius (0-255) per point"
    )
    parser.add_argument(
        "--possible-blocks",
        nargs="+",
        type=int,
        required=True,
        help="Block ids to try for each tile, in priority order",
    )
    parser.add_argument(
        "-b",
        "--blur",
        type=int,
        default=DEFAULT_BLUR_KERNEL_SIZE,
        help=f"Gaussian blur radius in pixels (default: {DEFAULT_BLUR_KERNEL_SIZE})",
    )
    parser.add_argument(
        "-s",
        "--sample-size",
        type=int,
        default=DEFAULT_SAMPLE_SIZE,
        help=f"Nearest points averaged per pixel (default: {DEFAULT_SAMPLE_SIZE})",
    )
    parser.add_argument(
        "--resolution",
        type=int,
        default=DEFAULT_RESOLUTION,
        help=f"Heightmap side length in pixels (default: {DEFAULT_RESOLUTION})",
    )
    parser.add_argument(
        "-d",
        "--destination",
        default=None,
        help=f"Output directory (default: ${EnvVar.OUTPUT_DIR})",
    )
    parser.add_argument("--source", choices=ALL_SOURCE_IDS, default=DEFAULT_SOURCE)
    parser.add_argument(
        "--origin",
        choices=ORIGIN_POLICIES,
        default=DEFAULT_ORIGIN_POLICY,
        help="Offset origin: first assembled tile, or smallest requested tile",
    )
    parser.add_argument(
        "--url-template",
        default=None,
        help=f"Override the source URL template (default: ${EnvVar.URL_TEMPLATE})",
    )
    parser.add_argument("--fetch-workers", type=int, default=None)
    parser.add_argument("--compute-workers", type=int, default=None)
    parser.add_argument("--blur-workers", type=int, default=DEFAULT_BLUR_WORKERS)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run one heightmap batch. Returns the process exit code."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )

    destination = args.destination or os.environ.get(EnvVar.OUTPUT_DIR)
    if not destination:
        parser.error(ErrorMessages.NO_OUTPUT_DIR.format(EnvVar.OUTPUT_DIR))

    manager = LidarManager(
        default_source=args.source,
        output_dir=destination,
        fetch_workers=args.fetch_workers,
        url_template=args.url_template or os.environ.get(EnvVar.URL_TEMPLATE),
    )

    try:
        config = RunConfig(
            areas=build_areas(args.points, args.radii),
            source_variants=args.possible_blocks,
            output_dir=Path(destination),
            sample_size=args.sample_size,
            blur_kernel_size=args.blur,
            resolution=args.resolution,
            source=args.source,
            origin_policy=args.origin,
            fetch_workers=args.fetch_workers,
            compute_workers=args.compute_workers,
            blur_workers=args.blur_workers,
        )
        manager.validate_config(config)
    except ValueError as e:
        parser.error(str(e))

    try:
        result = manager.run(config)
    except (DegenerateBoundsError, WorkerCrashedError) as e:
        logger.error(f"Run failed: {e}")
        return 1

    missing = result.tiles_requested - result.tiles_fetched
    logger.info(
        f"Wrote {len(result.written)} heightmaps to {result.output_dir} "
        f"({missing} missing, {len(result.failures)} failed)"
    )
    for failure in result.failures:
        logger.warning(f"Tile {failure.coordinate} lost during {failure.stage}: {failure.error}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
