"""
Point-cloud assembler: decodes fetched payloads into tiles with offsets.

Offsets are relative to an origin tile. Unless the origin is pinned, the
first tile to finish assembly becomes the origin, so offsets depend on
network arrival order and can differ between runs.
"""

import io
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import laspy
import numpy as np
from numpy.typing import NDArray

from ..constants import ErrorMessages
from .fetcher import RawTilePayload
from .region import TileCoordinate

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.floating[Any]]


class PointCloudParseError(ValueError):
    """A payload was fetched successfully but is not a readable point cloud."""


@dataclass
class PointCloudTile:
    """Decoded tile: bounding box, (N, 3) points and offset from the origin."""

    coordinate: TileCoordinate
    bounds_min: tuple[float, float, float]
    bounds_max: tuple[float, float, float]
    points: FloatArray
    offset: tuple[int, int] = (0, 0)

    @property
    def span(self) -> tuple[float, float]:
        return (
            self.bounds_max[0] - self.bounds_min[0],
            self.bounds_max[1] - self.bounds_min[1],
        )

    @property
    def point_count(self) -> int:
        return int(self.points.shape[0])


@dataclass
class TileFailure:
    """A tile that was lost after it was fetched."""

    coordinate: TileCoordinate
    stage: str
    error: str


@dataclass
class AssemblyResult:
    tiles: list[PointCloudTile] = field(default_factory=list)
    failures: list[TileFailure] = field(default_factory=list)
    origin: TileCoordinate | None = None


def parse_point_cloud(
    data: bytes,
) -> tuple[tuple[float, float, float], tuple[float, float, float], FloatArray]:
    """
    Decode LAS/LAZ bytes.

    The returned bounds are the header bounds widened to the actual point
    extent, so they always enclose every point.

    Args:
        data: Raw LAS or LAZ file contents

    Returns:
        Tuple of (bounds_min, bounds_max, points) with points as (N, 3) float64
    """
    las = laspy.read(io.BytesIO(data))
    points = np.column_stack(
        (np.asarray(las.x), np.asarray(las.y), np.asarray(las.z))
    ).astype(np.float64)

    if points.shape[0] == 0:
        raise ValueError("no points")

    header_min = np.asarray(las.header.mins, dtype=np.float64)
    header_max = np.asarray(las.header.maxs, dtype=np.float64)
    lo = np.minimum(header_min, points.min(axis=0))
    hi = np.maximum(header_max, points.max(axis=0))

    return (
        (float(lo[0]), float(lo[1]), float(lo[2])),
        (float(hi[0]), float(hi[1]), float(hi[2])),
        points,
    )


class PointCloudAssembler:
    """Turns payloads into PointCloudTiles with offsets from a shared origin."""

    def __init__(self, origin: TileCoordinate | None = None) -> None:
        self.origin = origin

    def assemble(self, payload: RawTilePayload) -> PointCloudTile:
        coordinate = payload.coordinate
        try:
            bounds_min, bounds_max, points = parse_point_cloud(payload.data)
        except Exception as e:
            raise PointCloudParseError(ErrorMessages.PARSE_FAILED.format(coordinate, e)) from e

        if self.origin is None:
            self.origin = coordinate
            logger.info(f"Origin tile set to {coordinate} (first assembled)")

        return PointCloudTile(
            coordinate=coordinate,
            bounds_min=bounds_min,
            bounds_max=bounds_max,
            points=points,
            offset=coordinate.offset_from(self.origin),
        )

    def assemble_all(self, payloads: Iterable[RawTilePayload]) -> AssemblyResult:
        """Assemble payloads as they arrive; parse failures are recorded, not raised."""
        result = AssemblyResult()
        for payload in payloads:
            try:
                tile = self.assemble(payload)
            except PointCloudParseError as e:
                logger.error(str(e))
                result.failures.append(TileFailure(payload.coordinate, "assemble", str(e)))
                continue

            logger.debug(
                f"Assembled {tile.coordinate}: {tile.point_count} points, offset {tile.offset}"
            )
            result.tiles.append(tile)

        result.origin = self.origin
        return result
