"""
Response models for chuk-mcp-lidar tools.

All tool responses are Pydantic models for type safety and consistent API.
"""

from pydantic import BaseModel, ConfigDict, Field


def format_response(model: BaseModel, output_mode: str = "json") -> str:
    """Format a response model as JSON or human-readable text.

    Args:
        model: Pydantic response model instance
        output_mode: "json" (default) or "text"

    Returns:
        Formatted string
    """
    if output_mode == "text" and hasattr(model, "to_text"):
        return str(model.to_text())
    return str(model.model_dump_json())


class ErrorResponse(BaseModel):
    """Error response model for tool failures."""

    model_config = ConfigDict(extra="forbid")

    error: str = Field(..., description="Error message describing what went wrong")

    def to_text(self) -> str:
        return f"Error: {self.error}"


class SourceInfo(BaseModel):
    """Summary information about a LIDAR tile source."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="Source identifier (e.g., arso_otr)")
    name: str = Field(..., description="Human-readable source name")
    coverage: str = Field(..., description="Coverage description")
    tile_size_m: float = Field(..., description="Tile edge length in metres")
    format: str = Field(..., description="Point-cloud file format (las or laz)")

    def to_text(self) -> str:
        return f"{self.id}: {self.name} ({self.coverage}, {self.tile_size_m:.0f}m tiles, {self.format})"


class SourcesResponse(BaseModel):
    """Response model for listing available LIDAR sources."""

    model_config = ConfigDict(extra="forbid")

    sources: list[SourceInfo] = Field(..., description="Available LIDAR sources")
    default: str = Field(..., description="Default source identifier")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [self.message, f"Default: {self.default}", ""]
        for s in self.sources:
            lines.append(f"  {s.to_text()}")
        return "\n".join(lines)


class SourceDetailResponse(BaseModel):
    """Response model for detailed LIDAR source description."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="Source identifier")
    name: str = Field(..., description="Human-readable source name")
    url_template: str = Field(..., description="Tile URL template with {block}, {x}, {y}")
    coverage: str = Field(..., description="Coverage description")
    horizontal_crs: str = Field(..., description="Horizontal coordinate reference system")
    tile_size_m: float = Field(..., description="Tile edge length in metres")
    format: str = Field(..., description="Point-cloud file format")
    min_tile_dim: int = Field(..., description="Smallest valid tile index (inclusive)")
    max_tile_dim: int = Field(..., description="Largest valid tile index (exclusive)")
    license: str = Field(..., description="Data license")
    llm_guidance: str = Field(..., description="LLM-friendly usage guidance")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"{self.name} ({self.id})",
            f"URL: {self.url_template}",
            f"Coverage: {self.coverage}",
            f"CRS: {self.horizontal_crs}",
            f"Tiles: {self.tile_size_m:.0f}m, indices [{self.min_tile_dim}, {self.max_tile_dim})",
            f"Format: {self.format}",
            f"License: {self.license}",
            f"Guidance: {self.llm_guidance}",
        ]
        return "\n".join(lines)


class StatusResponse(BaseModel):
    """Response model for server status queries."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(default="chuk-mcp-lidar", description="Server name")
    version: str = Field(default="0.1.0", description="Server version")
    default_source: str = Field(..., description="Default LIDAR source")
    available_sources: list[str] = Field(..., description="Available source identifiers")
    output_dir: str | None = Field(None, description="Default output directory, if configured")
    fetch_workers: int = Field(..., description="Fetch worker threads", ge=1)

    def to_text(self) -> str:
        lines = [
            f"{self.server} v{self.version}",
            f"Default source: {self.default_source}",
            f"Sources: {', '.join(self.available_sources)}",
            f"Output directory: {self.output_dir or 'not configured'}",
            f"Fetch workers: {self.fetch_workers}",
        ]
        return "\n".join(lines)


class CapabilitiesResponse(BaseModel):
    """Response model for server capabilities listing."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(..., description="Server name")
    version: str = Field(..., description="Server version")
    sources: list[SourceInfo] = Field(..., description="Available LIDAR sources")
    default_source: str = Field(..., description="Default source identifier")
    origin_policies: list[str] = Field(..., description="Supported offset origin policies")
    output_format: str = Field(..., description="Heightmap output format")
    tool_count: int = Field(..., description="Number of available tools", ge=0)
    llm_guidance: str = Field(..., description="LLM-friendly usage guidance for the server")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"{self.server} v{self.version}",
            f"Tools: {self.tool_count}",
            f"Default source: {self.default_source}",
            f"Sources: {', '.join(s.id for s in self.sources)}",
            f"Origin policies: {', '.join(self.origin_policies)}",
            f"Output format: {self.output_format}",
            f"Guidance: {self.llm_guidance}",
        ]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Region & heightmap responses
# ---------------------------------------------------------------------------


class RegionPlanResponse(BaseModel):
    """Response model for expanding areas of interest into tiles."""

    model_config = ConfigDict(extra="forbid")

    areas: int = Field(..., description="Number of areas of interest", ge=0)
    tile_count: int = Field(..., description="Unique in-range tiles", ge=0)
    tiles: list[list[int]] = Field(..., description="Tile coordinates [x, y] in fetch order")
    pinned_origin: list[int] | None = Field(
        None, description="Smallest requested tile, used by the 'smallest' origin policy"
    )
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [self.message]
        if self.pinned_origin is not None:
            lines.append(f"Smallest tile: ({self.pinned_origin[0]}, {self.pinned_origin[1]})")
        preview = ", ".join(f"({x}, {y})" for x, y in self.tiles[:10])
        if len(self.tiles) > 10:
            preview += f", ... (+{len(self.tiles) - 10} more)"
        lines.append(f"Tiles: {preview}")
        return "\n".join(lines)


class TileFailureInfo(BaseModel):
    """A tile that was fetched but could not be turned into a heightmap."""

    model_config = ConfigDict(extra="forbid")

    tile: list[int] = Field(..., description="Tile coordinate [x, y]")
    stage: str = Field(..., description="Stage that failed (assemble or synthesize)")
    error: str = Field(..., description="Error message")


class HeightmapRunResponse(BaseModel):
    """Response model for a heightmap generation run."""

    model_config = ConfigDict(extra="forbid")

    source: str = Field(..., description="LIDAR source used")
    output_dir: str = Field(..., description="Directory holding the heightmaps")
    tiles_requested: int = Field(..., description="Unique tiles requested", ge=0)
    tiles_fetched: int = Field(..., description="Tiles fetched from any block", ge=0)
    tiles_written: int = Field(..., description="Heightmaps written", ge=0)
    origin: list[int] | None = Field(None, description="Origin tile [x, y] for offsets")
    height_range: list[float] = Field(..., description="[min, max] global height in metres")
    resolution: int = Field(..., description="Heightmap side length in pixels", gt=0)
    files: list[str] = Field(..., description="Written heightmap filenames")
    failures: list[TileFailureInfo] = Field(
        default_factory=list, description="Tiles lost after fetching"
    )
    metadata_file: str = Field(..., description="Run metadata filename")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"Heightmaps: {self.source}",
            f"Output: {self.output_dir}",
            f"Tiles: {self.tiles_written} written / {self.tiles_fetched} fetched "
            f"/ {self.tiles_requested} requested",
            f"Height range: {self.height_range[0]:.1f}m to {self.height_range[1]:.1f}m",
            f"Resolution: {self.resolution}x{self.resolution}",
        ]
        if self.origin is not None:
            lines.append(f"Origin: ({self.origin[0]}, {self.origin[1]})")
        for failure in self.failures:
            lines.append(
                f"FAILED ({failure.tile[0]}, {failure.tile[1]}) [{failure.stage}]: {failure.error}"
            )
        lines.append(f"Metadata: {self.metadata_file}")
        return "\n".join(lines)


class RunMetadata(BaseModel):
    """Run-level record written next to the heightmaps."""

    model_config = ConfigDict(extra="forbid")

    texture_resolution: int = Field(..., description="Heightmap side length in pixels", gt=0)
    min_height: float = Field(..., description="Global minimum height in metres")
    max_height: float = Field(..., description="Global maximum height in metres")
    real_world_dimensions_m: float = Field(..., description="Real-world tile extent in metres")
