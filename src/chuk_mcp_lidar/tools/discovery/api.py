"""
Discovery tools: LIDAR source listing, description, status, capabilities.

These tools require no network I/O and return information about
available LIDAR sources and server configuration.
"""

import logging

from ...constants import (
    ALL_SOURCE_IDS,
    ORIGIN_POLICIES,
    OUTPUT_FORMAT,
    TOOL_NAMES,
    ServerConfig,
    SuccessMessages,
)
from ...models.responses import (
    CapabilitiesResponse,
    ErrorResponse,
    SourceDetailResponse,
    SourceInfo,
    SourcesResponse,
    StatusResponse,
    format_response,
)

logger = logging.getLogger(__name__)


def register_discovery_tools(mcp, manager):
    """Register discovery tools with the MCP server."""

    @mcp.tool()
    async def lidar_list_sources(output_mode: str = "json") -> str:
        """List all available LIDAR tile sources with coverage, tile size, and format.

        Use this to discover which point-cloud datasets can be turned into heightmaps.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            List of available LIDAR sources with metadata
        """
        try:
            sources = [SourceInfo(**s) for s in manager.list_sources()]
            response = SourcesResponse(
                sources=sources,
                default=manager.default_source,
                message=SuccessMessages.SOURCES_LIST.format(len(sources)),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"lidar_list_sources failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def lidar_describe_source(source: str = "arso_otr", output_mode: str = "json") -> str:
        """Get detailed metadata for a LIDAR source including its URL template,
        tile grid range, CRS, and LLM usage guidance.

        Args:
            source: LIDAR source ID (arso_otr)
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Detailed source metadata including LLM guidance
        """
        try:
            data = manager.describe_source(source)
            response = SourceDetailResponse(
                **data,
                message=SuccessMessages.SOURCE_DESCRIBE.format(data["name"], data["coverage"]),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"lidar_describe_source failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def lidar_status(output_mode: str = "json") -> str:
        """Get server status including version, sources, output directory, and worker count.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Server status information
        """
        try:
            response = StatusResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                default_source=manager.default_source,
                available_sources=ALL_SOURCE_IDS,
                output_dir=str(manager.output_dir) if manager.output_dir else None,
                fetch_workers=manager.fetch_workers,
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"lidar_status failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def lidar_capabilities(output_mode: str = "json") -> str:
        """Get full server capabilities including sources, origin policies, and output format.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Complete server capabilities
        """
        try:
            sources = [SourceInfo(**s) for s in manager.list_sources()]
            response = CapabilitiesResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                sources=sources,
                default_source=manager.default_source,
                origin_policies=ORIGIN_POLICIES,
                output_format=OUTPUT_FORMAT,
                tool_count=len(TOOL_NAMES),
                llm_guidance=(
                    "Use lidar_list_sources to discover tile sources. "
                    "Use lidar_plan_region to preview which tiles a set of core points "
                    "and radii covers. Use lidar_generate_heightmaps to fetch the tiles "
                    "and write one float32 heightmap per tile plus config.json. "
                    "Pass origin_policy='smallest' for reproducible filenames."
                ),
                message=f"{ServerConfig.NAME} v{ServerConfig.VERSION} capabilities",
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"lidar_capabilities failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)
