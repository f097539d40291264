"""
Height-field synthesis: point clouds to blurred float heightmaps.

All functions are synchronous; callers wrap them in asyncio.to_thread().
Each tile runs independently: normalize heights against the global bounds,
index the (x, y) positions, rasterize by k-nearest-neighbour averaging,
blur, and encode as a three-band float32 GeoTIFF named after the tile offset.
"""

import logging
import os
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy.ndimage import gaussian_filter1d
from scipy.spatial import cKDTree

from ..constants import (
    BLUR_TRUNCATE,
    DEFAULT_BLUR_WORKERS,
    METADATA_FILENAME,
    NEGATIVE_PREFIX,
    OUTPUT_BANDS,
    TILE_FILE_PREFIX,
    TILE_FILE_SUFFIX,
    ErrorMessages,
)
from ..models.responses import RunMetadata
from .fetcher import WorkerCrashedError
from .point_cloud import PointCloudTile, TileFailure

logger = logging.getLogger(__name__)

# Type aliases
FloatArray = NDArray[np.floating[Any]]


class DegenerateBoundsError(ValueError):
    """Heights cannot be normalized: no tiles, or min equals max."""


@dataclass(frozen=True)
class GlobalHeightBounds:
    min_height: float
    max_height: float

    @property
    def span(self) -> float:
        return self.max_height - self.min_height


@dataclass(frozen=True)
class SynthesisSettings:
    resolution: int
    sample_size: int
    blur_kernel_size: int
    blur_workers: int = DEFAULT_BLUR_WORKERS
    crs: str | None = None


@dataclass
class SynthesisResult:
    written: list[Path] = field(default_factory=list)
    failures: list[TileFailure] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Global bounds
# ---------------------------------------------------------------------------


def compute_height_bounds(tiles: Sequence[PointCloudTile]) -> GlobalHeightBounds:
    """Min and max height over every tile's bounding box."""
    if not tiles:
        raise DegenerateBoundsError(ErrorMessages.NO_TILES_ASSEMBLED)

    min_height = min(tile.bounds_min[2] for tile in tiles)
    max_height = max(tile.bounds_max[2] for tile in tiles)

    if not max_height > min_height:
        raise DegenerateBoundsError(ErrorMessages.DEGENERATE_BOUNDS.format(min_height, max_height))

    return GlobalHeightBounds(min_height, max_height)


def real_world_span(tiles: Sequence[PointCloudTile]) -> float:
    """Largest horizontal extent of any tile, in source units."""
    return max((max(tile.span) for tile in tiles), default=0.0)


# ---------------------------------------------------------------------------
# Per-tile stages
# ---------------------------------------------------------------------------


def normalize_heights(z: FloatArray, bounds: GlobalHeightBounds) -> FloatArray:
    """Map heights to [0, 1] against the global bounds."""
    if bounds.span == 0:
        raise DegenerateBoundsError(
            ErrorMessages.DEGENERATE_BOUNDS.format(bounds.min_height, bounds.max_height)
        )

    normalized = (np.asarray(z, dtype=np.float64) - bounds.min_height) / bounds.span
    if not np.all(np.isfinite(normalized)):
        raise ValueError("Normalized heights contain NaN or infinite values")
    return normalized


def build_index(points: FloatArray) -> cKDTree:
    """Immutable k-d tree over the (x, y) columns of an (N, >=2) array."""
    return cKDTree(np.ascontiguousarray(points[:, :2]))


def pixel_centers(
    bounds_min: Sequence[float],
    bounds_max: Sequence[float],
    resolution: int,
) -> tuple[FloatArray, FloatArray]:
    """
    World coordinates of pixel centers.

    Pixel ``i`` maps to ``min + (i + 0.5) / R * span`` rather than the
    ``min + i / R * span`` corner mapping. Row 0 is the northmost row (maximum y).

    Returns:
        Tuple of (xs per column, ys per row)
    """
    fractions = (np.arange(resolution, dtype=np.float64) + 0.5) / resolution
    span_x = bounds_max[0] - bounds_min[0]
    span_y = bounds_max[1] - bounds_min[1]

    xs = bounds_min[0] + fractions * span_x
    ys = bounds_max[1] - fractions * span_y
    return xs, ys


def rasterize(
    tile: PointCloudTile,
    bounds: GlobalHeightBounds,
    resolution: int,
    sample_size: int,
) -> NDArray[np.float32]:
    """
    Rasterize a tile by k-nearest-neighbour averaging.

    Each pixel gets the unweighted mean of the normalized heights of the
    ``sample_size`` points nearest to its center.

    Args:
        tile: Assembled point cloud
        bounds: Global height bounds used for normalization
        resolution: Output grid side length
        sample_size: Neighbours averaged per pixel (clamped to the point count)

    Returns:
        (resolution, resolution) float32 grid
    """
    heights = normalize_heights(tile.points[:, 2], bounds)
    tree = build_index(tile.points)
    k = max(1, min(sample_size, tile.point_count))

    xs, ys = pixel_centers(tile.bounds_min, tile.bounds_max, resolution)
    grid_x, grid_y = np.meshgrid(xs, ys)
    queries = np.column_stack((grid_x.ravel(), grid_y.ravel()))

    _, indices = tree.query(queries, k=k)
    if k == 1:
        indices = indices[:, np.newaxis]

    values = heights[indices].mean(axis=1)
    return values.reshape(resolution, resolution).astype(np.float32)


def _blur_axis(grid: FloatArray, sigma: float, axis: int, workers: int) -> FloatArray:
    other = 1 - axis
    chunks = min(workers, grid.shape[other])

    if chunks <= 1:
        return gaussian_filter1d(grid, sigma, axis=axis, mode="nearest", truncate=BLUR_TRUNCATE)

    parts = np.array_split(grid, chunks, axis=other)
    with ThreadPoolExecutor(max_workers=chunks) as pool:
        blurred = list(
            pool.map(
                lambda part: gaussian_filter1d(
                    part, sigma, axis=axis, mode="nearest", truncate=BLUR_TRUNCATE
                ),
                parts,
            )
        )
    return np.concatenate(blurred, axis=other)


def blur_height_field(
    grid: FloatArray,
    kernel_size: int,
    workers: int = DEFAULT_BLUR_WORKERS,
) -> FloatArray:
    """
    Separable Gaussian blur with clamped edges.

    The kernel reaches ``kernel_size`` pixels on each side (sigma is a third
    of that). Edge pixels are replicated, so a uniform grid stays uniform.
    With ``workers > 1`` each 1-D pass is split across threads along the
    other axis; the result is the same as the single-threaded pass.
    """
    if kernel_size <= 0:
        return grid.copy()

    sigma = kernel_size / BLUR_TRUNCATE
    result = _blur_axis(grid, sigma, axis=0, workers=workers)
    return _blur_axis(result, sigma, axis=1, workers=workers)


def encode_height_field(
    grid: FloatArray,
    bounds_min: Sequence[float],
    bounds_max: Sequence[float],
    crs: Any = None,
) -> bytes:
    """
    Encode a height grid as a lossless three-band float32 GeoTIFF.

    Args:
        grid: 2D height array, row 0 north
        bounds_min: Tile minimum (x, y, ...)
        bounds_max: Tile maximum (x, y, ...)
        crs: Optional coordinate reference system

    Returns:
        GeoTIFF bytes
    """
    from rasterio.io import MemoryFile
    from rasterio.transform import from_bounds

    height, width = grid.shape
    transform = from_bounds(
        bounds_min[0], bounds_min[1], bounds_max[0], bounds_max[1], width, height
    )
    bands = np.repeat(grid[np.newaxis, :, :], OUTPUT_BANDS, axis=0).astype(np.float32)

    memfile = MemoryFile()
    with memfile.open(
        driver="GTiff",
        height=height,
        width=width,
        count=OUTPUT_BANDS,
        dtype="float32",
        crs=crs,
        transform=transform,
        compress="deflate",
    ) as dst:
        dst.write(bands)

    return memfile.read()


# ---------------------------------------------------------------------------
# Output naming
# ---------------------------------------------------------------------------


def _coordinate_name(value: int) -> str:
    if value < 0:
        return f"{NEGATIVE_PREFIX}{abs(value)}"
    return str(value)


def _parse_coordinate_name(text: str) -> int:
    negative = text.startswith(NEGATIVE_PREFIX)
    digits = text[len(NEGATIVE_PREFIX) :] if negative else text
    if not digits.isdigit():
        raise ValueError(digits)
    return -int(digits) if negative else int(digits)


def tile_filename(offset: tuple[int, int]) -> str:
    """``img_{dx}_{dy}.tif``, negative components written as ``n<abs>``."""
    dx, dy = offset
    return f"{TILE_FILE_PREFIX}_{_coordinate_name(dx)}_{_coordinate_name(dy)}{TILE_FILE_SUFFIX}"


def parse_tile_filename(name: str | Path) -> tuple[int, int]:
    """Recover the (dx, dy) offset from a tile filename."""
    base = Path(name).name
    prefix = f"{TILE_FILE_PREFIX}_"
    if not (base.startswith(prefix) and base.endswith(TILE_FILE_SUFFIX)):
        raise ValueError(ErrorMessages.INVALID_TILE_FILENAME.format(name))

    parts = base[len(prefix) : -len(TILE_FILE_SUFFIX)].split("_")
    if len(parts) != 2:
        raise ValueError(ErrorMessages.INVALID_TILE_FILENAME.format(name))

    try:
        return _parse_coordinate_name(parts[0]), _parse_coordinate_name(parts[1])
    except ValueError:
        raise ValueError(ErrorMessages.INVALID_TILE_FILENAME.format(name)) from None


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def synthesize_tile(
    tile: PointCloudTile,
    bounds: GlobalHeightBounds,
    settings: SynthesisSettings,
    output_dir: Path,
) -> Path:
    """Rasterize, blur, encode and write one tile. Returns the written path."""
    grid = rasterize(tile, bounds, settings.resolution, settings.sample_size)
    grid = blur_height_field(grid, settings.blur_kernel_size, settings.blur_workers)
    data = encode_height_field(grid, tile.bounds_min, tile.bounds_max, settings.crs)

    path = output_dir / tile_filename(tile.offset)
    path.write_bytes(data)
    logger.debug(f"Wrote {path.name} for tile {tile.coordinate}")
    return path


def _synthesize_chunk(
    tiles: Sequence[PointCloudTile],
    bounds: GlobalHeightBounds,
    settings: SynthesisSettings,
    output_dir: Path,
) -> SynthesisResult:
    result = SynthesisResult()
    for tile in tiles:
        try:
            result.written.append(synthesize_tile(tile, bounds, settings, output_dir))
        except Exception as e:
            logger.error(f"Heightmap for tile {tile.coordinate} failed: {e}")
            result.failures.append(TileFailure(tile.coordinate, "synthesize", str(e)))
    return result


def synthesize_tiles(
    tiles: Sequence[PointCloudTile],
    bounds: GlobalHeightBounds,
    settings: SynthesisSettings,
    output_dir: Path,
    workers: int | None = None,
) -> SynthesisResult:
    """
    Synthesize every tile on a thread pool.

    Tiles are split into contiguous chunks, one per thread. The pool is
    capped at ``workers // blur_workers`` so nested blur threads do not
    oversubscribe the machine.
    """
    cpus = workers or os.cpu_count() or 1
    pool_size = max(1, cpus // max(1, settings.blur_workers))
    chunk_size = len(tiles) // pool_size + 1
    chunks = [tiles[i : i + chunk_size] for i in range(0, len(tiles), chunk_size)]

    logger.info(f"Number of tiles: {len(tiles)}")
    logger.info(f"Height bounds: min {bounds.min_height}, max {bounds.max_height}")
    logger.info(
        f"Compute threads: {pool_size} (blur threads per tile: {settings.blur_workers}), "
        f"tiles per thread: {chunk_size}"
    )

    output_dir.mkdir(parents=True, exist_ok=True)
    result = SynthesisResult()

    with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="lidar-compute") as pool:
        futures = [
            pool.submit(_synthesize_chunk, chunk, bounds, settings, output_dir) for chunk in chunks
        ]
        for future in futures:
            try:
                partial = future.result()
            except Exception as e:
                raise WorkerCrashedError(ErrorMessages.COMPUTE_CRASHED.format(e)) from e
            result.written.extend(partial.written)
            result.failures.extend(partial.failures)

    return result


def write_run_metadata(output_dir: Path, metadata: RunMetadata) -> Path:
    """Write the run-level metadata record next to the tiles."""
    path = output_dir / METADATA_FILENAME
    path.write_text(metadata.model_dump_json(indent=2))
    logger.info(f"Wrote run metadata to {path}")
    return path
