"""Response models for chuk-mcp-lidar."""

from .responses import (
    CapabilitiesResponse,
    ErrorResponse,
    HeightmapRunResponse,
    RegionPlanResponse,
    RunMetadata,
    SourceDetailResponse,
    SourceInfo,
    SourcesResponse,
    StatusResponse,
    TileFailureInfo,
    format_response,
)

__all__ = [
    "ErrorResponse",
    "SourceInfo",
    "SourcesResponse",
    "SourceDetailResponse",
    "StatusResponse",
    "CapabilitiesResponse",
    "RegionPlanResponse",
    "TileFailureInfo",
    "HeightmapRunResponse",
    "RunMetadata",
    "format_response",
]
