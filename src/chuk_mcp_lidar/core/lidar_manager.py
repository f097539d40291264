"""
LIDAR Manager: central orchestrator for heightmap generation.

Holds source metadata, validates run configuration, and runs the pipeline:
region expansion, concurrent fetch with streaming assembly, global height
bounds, parallel synthesis, and the run metadata record. The pipeline is
blocking; the public async method runs it via asyncio.to_thread().
"""

import asyncio
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..constants import (
    DEFAULT_BLUR_KERNEL_SIZE,
    DEFAULT_BLUR_WORKERS,
    DEFAULT_ORIGIN_POLICY,
    DEFAULT_RESOLUTION,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SOURCE,
    LIDAR_SOURCES,
    ORIGIN_POLICIES,
    PACING_MAX_S,
    EnvVar,
    ErrorMessages,
    OriginPolicy,
)
from ..models.responses import RunMetadata
from .fetcher import HttpTileSource, TileFetcher, TileSource
from .heightfield import (
    GlobalHeightBounds,
    SynthesisSettings,
    compute_height_bounds,
    real_world_span,
    synthesize_tiles,
    write_run_metadata,
)
from .point_cloud import PointCloudAssembler, TileFailure
from .region import AreaOfInterest, TileCoordinate, build_areas, expand_region

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """Everything one heightmap run needs."""

    areas: list[AreaOfInterest]
    source_variants: list[int]
    output_dir: Path
    sample_size: int = DEFAULT_SAMPLE_SIZE
    blur_kernel_size: int = DEFAULT_BLUR_KERNEL_SIZE
    resolution: int = DEFAULT_RESOLUTION
    source: str = DEFAULT_SOURCE
    url_template: str | None = None
    origin_policy: str = DEFAULT_ORIGIN_POLICY
    fetch_workers: int | None = None
    compute_workers: int | None = None
    blur_workers: int = DEFAULT_BLUR_WORKERS
    pacing_max_s: float = PACING_MAX_S


@dataclass
class RegionPlan:
    """Result of expanding areas of interest."""

    areas: list[AreaOfInterest]
    coordinates: list[TileCoordinate]
    pinned_origin: TileCoordinate | None


@dataclass
class HeightmapRunResult:
    """Result of a heightmap generation run."""

    source: str
    output_dir: Path
    tiles_requested: int
    tiles_fetched: int
    written: list[Path]
    origin: TileCoordinate | None
    bounds: GlobalHeightBounds
    resolution: int
    metadata_path: Path
    failures: list[TileFailure] = field(default_factory=list)


class LidarManager:
    """Central manager for LIDAR heightmap operations."""

    def __init__(
        self,
        default_source: str = DEFAULT_SOURCE,
        output_dir: str | Path | None = None,
        fetch_workers: int | None = None,
        url_template: str | None = None,
    ) -> None:
        self.default_source = default_source
        self.output_dir = Path(output_dir) if output_dir else None
        self.fetch_workers = fetch_workers or os.cpu_count() or 1
        self.url_template = url_template

    # ------------------------------------------------------------------
    # Discovery (sync, no I/O)
    # ------------------------------------------------------------------

    def list_sources(self) -> list[dict]:
        """List all available LIDAR sources."""
        return [
            {
                "id": src["id"],
                "name": src["name"],
                "coverage": src["coverage"],
                "tile_size_m": src["tile_size_m"],
                "format": src["format"],
            }
            for src in LIDAR_SOURCES.values()
        ]

    def describe_source(self, source: str) -> dict:
        """Get detailed metadata for a LIDAR source."""
        return dict(self._get_source(source))

    def plan_region(
        self,
        points: Sequence[str | Sequence[int]],
        radii: Sequence[int],
        source: str = DEFAULT_SOURCE,
    ) -> RegionPlan:
        """Expand core points and radii into the deduplicated tile list."""
        src = self._get_source(source)
        areas = build_areas(points, radii)
        if not areas:
            raise ValueError(ErrorMessages.NO_AREAS)

        coordinates = expand_region(areas, src["min_tile_dim"], src["max_tile_dim"])
        pinned = min(coordinates) if coordinates else None
        return RegionPlan(areas=areas, coordinates=coordinates, pinned_origin=pinned)

    # ------------------------------------------------------------------
    # Generation (async)
    # ------------------------------------------------------------------

    async def generate_heightmaps(
        self,
        points: Sequence[str | Sequence[int]],
        radii: Sequence[int],
        source_variants: Sequence[int],
        output_dir: str | Path | None = None,
        source: str = DEFAULT_SOURCE,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        blur_kernel_size: int = DEFAULT_BLUR_KERNEL_SIZE,
        resolution: int = DEFAULT_RESOLUTION,
        origin_policy: str = DEFAULT_ORIGIN_POLICY,
        url_template: str | None = None,
    ) -> HeightmapRunResult:
        """Fetch tiles for the given areas and write one heightmap per tile."""
        target = Path(output_dir) if output_dir else self.output_dir
        if target is None:
            raise ValueError(ErrorMessages.NO_OUTPUT_DIR.format(EnvVar.OUTPUT_DIR))

        config = RunConfig(
            areas=build_areas(points, radii),
            source_variants=list(source_variants),
            output_dir=target,
            sample_size=sample_size,
            blur_kernel_size=blur_kernel_size,
            resolution=resolution,
            source=source,
            url_template=url_template,
            origin_policy=origin_policy,
            fetch_workers=self.fetch_workers,
        )
        return await asyncio.to_thread(self.run, config)

    def run(self, config: RunConfig) -> HeightmapRunResult:
        """Run the whole pipeline synchronously.

        Raises:
            ValueError: invalid configuration
            DegenerateBoundsError: no tiles assembled, or flat global bounds
            WorkerCrashedError: a fetch or compute worker died
        """
        self.validate_config(config)
        src = self._get_source(config.source)

        coordinates = expand_region(config.areas, src["min_tile_dim"], src["max_tile_dim"])
        logger.info(f"Requesting {len(coordinates)} tiles from {len(config.areas)} areas")

        origin = None
        if config.origin_policy == OriginPolicy.SMALLEST and coordinates:
            origin = min(coordinates)
            logger.info(f"Origin tile pinned to {origin}")

        fetcher = TileFetcher(
            self._make_tile_source(config),
            config.source_variants,
            workers=config.fetch_workers or self.fetch_workers,
            pacing_max_s=config.pacing_max_s,
        )
        assembler = PointCloudAssembler(origin)
        assembly = assembler.assemble_all(fetcher.fetch(coordinates))

        stats = fetcher.stats
        logger.info(
            f"Fetched {stats.fetched}/{stats.requested} tiles "
            f"({stats.missing} missing, {stats.failed_attempts} failed requests), "
            f"assembled {len(assembly.tiles)}"
        )

        bounds = compute_height_bounds(assembly.tiles)

        settings = SynthesisSettings(
            resolution=config.resolution,
            sample_size=config.sample_size,
            blur_kernel_size=config.blur_kernel_size,
            blur_workers=config.blur_workers,
            crs=src.get("horizontal_crs"),
        )
        synthesis = synthesize_tiles(
            assembly.tiles, bounds, settings, config.output_dir, config.compute_workers
        )

        metadata = RunMetadata(
            texture_resolution=config.resolution,
            min_height=bounds.min_height,
            max_height=bounds.max_height,
            real_world_dimensions_m=real_world_span(assembly.tiles),
        )
        metadata_path = write_run_metadata(config.output_dir, metadata)

        failures = assembly.failures + synthesis.failures
        if failures:
            logger.warning(f"{len(failures)} tiles failed after fetching")

        return HeightmapRunResult(
            source=config.source,
            output_dir=config.output_dir,
            tiles_requested=stats.requested,
            tiles_fetched=stats.fetched,
            written=sorted(synthesis.written),
            origin=assembly.origin,
            bounds=bounds,
            resolution=config.resolution,
            metadata_path=metadata_path,
            failures=failures,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def validate_config(self, config: RunConfig) -> None:
        """Check internal consistency of a run configuration."""
        self._get_source(config.source)
        if not config.areas:
            raise ValueError(ErrorMessages.NO_AREAS)
        if not config.source_variants:
            raise ValueError(ErrorMessages.NO_VARIANTS)
        if config.sample_size < 1:
            raise ValueError(ErrorMessages.INVALID_SAMPLE_SIZE.format(config.sample_size))
        if config.blur_kernel_size < 0:
            raise ValueError(ErrorMessages.INVALID_BLUR_KERNEL.format(config.blur_kernel_size))
        if config.resolution <= 0:
            raise ValueError(ErrorMessages.INVALID_RESOLUTION.format(config.resolution))
        if config.blur_workers < 1:
            raise ValueError(ErrorMessages.INVALID_WORKERS.format("blur_workers", config.blur_workers))
        for name in ("fetch_workers", "compute_workers"):
            value = getattr(config, name)
            if value is not None and value < 1:
                raise ValueError(ErrorMessages.INVALID_WORKERS.format(name, value))
        if config.origin_policy not in ORIGIN_POLICIES:
            raise ValueError(
                ErrorMessages.INVALID_ORIGIN_POLICY.format(
                    config.origin_policy, ", ".join(ORIGIN_POLICIES)
                )
            )

    def _get_source(self, source: str) -> dict:
        """Get source metadata, raising ValueError if unknown."""
        if source not in LIDAR_SOURCES:
            raise ValueError(
                ErrorMessages.UNKNOWN_SOURCE.format(source, ", ".join(LIDAR_SOURCES.keys()))
            )
        return LIDAR_SOURCES[source]

    def _make_tile_source(self, config: RunConfig) -> TileSource:
        """Build the HTTP tile source for a run."""
        template = (
            config.url_template
            or self.url_template
            or self._get_source(config.source)["url_template"]
        )
        return HttpTileSource(template)
