"""
Region tools: expand core points into the tile list a run would fetch.

No network I/O; useful to check the size of a request before generating.
"""

import logging

from ...constants import DEFAULT_SOURCE, SuccessMessages
from ...models.responses import ErrorResponse, RegionPlanResponse, format_response

logger = logging.getLogger(__name__)


def register_region_tools(mcp, manager):
    """Register region planning tools with the MCP server."""

    @mcp.tool()
    async def lidar_plan_region(
        points: list[list[int]],
        radii: list[int],
        source: str = DEFAULT_SOURCE,
        output_mode: str = "json",
    ) -> str:
        """Expand core points and radii into the unique, in-range tiles to fetch.

        Each core point covers a square of side 2*radius+1 tiles. Overlapping
        squares are merged and tiles outside the source's grid are dropped.

        Args:
            points: Core tile coordinates [[x, y], ...]
            radii: One radius (0-255) per core point
            source: LIDAR source ID (arso_otr)
            output_mode: "json" or "text"

        Returns:
            Tile list in fetch order and the smallest requested tile
        """
        try:
            plan = manager.plan_region(points, radii, source)
            pinned = plan.pinned_origin
            response = RegionPlanResponse(
                areas=len(plan.areas),
                tile_count=len(plan.coordinates),
                tiles=[[c.x, c.y] for c in plan.coordinates],
                pinned_origin=[pinned.x, pinned.y] if pinned else None,
                message=SuccessMessages.REGION_PLANNED.format(
                    len(plan.coordinates), len(plan.areas)
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"lidar_plan_region failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)
