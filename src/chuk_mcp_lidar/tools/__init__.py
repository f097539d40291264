"""MCP tool modules for chuk-mcp-lidar."""
