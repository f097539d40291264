"""
chuk-mcp-lidar: LIDAR Tile Retrieval & Heightmap Synthesis MCP Server

Fetches LIDAR point-cloud tiles around areas of interest, rasterizes them
into k-nearest-neighbour heightmaps, blurs them, and writes float32
GeoTIFF textures named by their offset from an origin tile.
"""
