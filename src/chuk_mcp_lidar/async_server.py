#!/usr/bin/env python3
"""
Async LIDAR MCP Server using chuk-mcp-server

LIDAR tile retrieval and heightmap synthesis. Fetches point-cloud tiles
around areas of interest and writes float32 heightmaps to a local
output directory.
"""

import logging
import os

from chuk_mcp_server import ChukMCPServer

from .constants import EnvVar
from .core.lidar_manager import LidarManager
from .tools.discovery import register_discovery_tools
from .tools.generate import register_generate_tools
from .tools.region import register_region_tools

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _manager_from_env() -> LidarManager:
    """Build the manager from LIDAR_* environment variables."""
    workers = os.environ.get(EnvVar.FETCH_WORKERS)
    return LidarManager(
        output_dir=os.environ.get(EnvVar.OUTPUT_DIR),
        fetch_workers=int(workers) if workers else None,
        url_template=os.environ.get(EnvVar.URL_TEMPLATE),
    )


# Create the MCP server instance
mcp = ChukMCPServer("chuk-mcp-lidar")

# Create LIDAR manager instance
manager = _manager_from_env()

# Register all tool modules
register_discovery_tools(mcp, manager)
register_region_tools(mcp, manager)
register_generate_tools(mcp, manager)

# Run the server
if __name__ == "__main__":
    logger.info("Starting LIDAR MCP Server...")
    mcp.run(stdio=True)
