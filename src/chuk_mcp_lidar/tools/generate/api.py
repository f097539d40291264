"""
Generate tools: fetch LIDAR tiles and write heightmaps.

These tools perform network I/O and write one float32 GeoTIFF per tile
plus a config.json metadata record to the output directory.
"""

import logging

from ...constants import (
    DEFAULT_BLUR_KERNEL_SIZE,
    DEFAULT_ORIGIN_POLICY,
    DEFAULT_RESOLUTION,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SOURCE,
    SuccessMessages,
)
from ...models.responses import (
    ErrorResponse,
    HeightmapRunResponse,
    TileFailureInfo,
    format_response,
)

logger = logging.getLogger(__name__)


def register_generate_tools(mcp, manager):
    """Register heightmap generation tools with the MCP server."""

    @mcp.tool()
    async def lidar_generate_heightmaps(
        points: list[list[int]],
        radii: list[int],
        source_variants: list[int],
        output_dir: str | None = None,
        source: str = DEFAULT_SOURCE,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        blur_kernel_size: int = DEFAULT_BLUR_KERNEL_SIZE,
        resolution: int = DEFAULT_RESOLUTION,
        origin_policy: str = DEFAULT_ORIGIN_POLICY,
        output_mode: str = "json",
    ) -> str:
        """Fetch every tile around the core points and write one heightmap per tile.

        Tiles missing from every block are skipped. Heightmaps are normalized
        against the height range of all fetched tiles, so neighbouring tiles
        share one scale. Filenames encode the tile offset from the origin tile
        (img_<dx>_<dy>.tif, negative values prefixed with 'n').

        Args:
            points: Core tile coordinates [[x, y], ...]
            radii: One radius (0-255) per core point
            source_variants: Block ids to try, in priority order
            output_dir: Destination directory (defaults to LIDAR_OUTPUT_DIR)
            source: LIDAR source ID (arso_otr)
            sample_size: Nearest points averaged per pixel (>= 1)
            blur_kernel_size: Gaussian blur radius in pixels (0 disables)
            resolution: Heightmap side length in pixels
            origin_policy: "arrival" (first assembled tile) or "smallest" (reproducible)
            output_mode: "json" or "text"

        Returns:
            Written files, height range, origin, and per-tile failures
        """
        try:
            result = await manager.generate_heightmaps(
                points=points,
                radii=radii,
                source_variants=source_variants,
                output_dir=output_dir,
                source=source,
                sample_size=sample_size,
                blur_kernel_size=blur_kernel_size,
                resolution=resolution,
                origin_policy=origin_policy,
            )

            missing = result.tiles_requested - result.tiles_fetched
            response = HeightmapRunResponse(
                source=result.source,
                output_dir=str(result.output_dir),
                tiles_requested=result.tiles_requested,
                tiles_fetched=result.tiles_fetched,
                tiles_written=len(result.written),
                origin=[result.origin.x, result.origin.y] if result.origin else None,
                height_range=[result.bounds.min_height, result.bounds.max_height],
                resolution=result.resolution,
                files=[path.name for path in result.written],
                failures=[
                    TileFailureInfo(
                        tile=[f.coordinate.x, f.coordinate.y], stage=f.stage, error=f.error
                    )
                    for f in result.failures
                ],
                metadata_file=result.metadata_path.name,
                message=SuccessMessages.RUN_COMPLETE.format(
                    len(result.written), missing, len(result.failures)
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"lidar_generate_heightmaps failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)
