"""Shared test fixtures for chuk-mcp-lidar."""

from unittest.mock import MagicMock, patch

import laspy
import numpy as np
import pytest

from chuk_mcp_lidar.core.point_cloud import PointCloudTile
from chuk_mcp_lidar.core.region import TileCoordinate


def make_las_bytes(points) -> bytes:
    """Encode an (N, 3) array of x, y, z as an uncompressed LAS 1.2 file."""
    import io

    pts = np.asarray(points, dtype=np.float64)
    header = laspy.LasHeader(point_format=0, version="1.2")
    header.offsets = pts.min(axis=0)
    header.scales = np.array([0.01, 0.01, 0.01])
    header.mins = pts.min(axis=0)
    header.maxs = pts.max(axis=0)

    las = laspy.LasData(header)
    las.x = pts[:, 0]
    las.y = pts[:, 1]
    las.z = pts[:, 2]

    buf = io.BytesIO()
    with laspy.open(buf, mode="w", header=las.header, closefd=False, do_compress=False) as writer:
        writer.write_points(las.points)
    return buf.getvalue()


def make_tile(x, y, points, offset=(0, 0)) -> PointCloudTile:
    """PointCloudTile whose bounding box is the point extent."""
    pts = np.asarray(points, dtype=np.float64)
    lo = pts.min(axis=0)
    hi = pts.max(axis=0)
    return PointCloudTile(
        coordinate=TileCoordinate(x, y),
        bounds_min=(float(lo[0]), float(lo[1]), float(lo[2])),
        bounds_max=(float(hi[0]), float(hi[1]), float(hi[2])),
        points=pts,
        offset=offset,
    )


class FakeTileSource:
    """In-memory tile source keyed by (variant, x, y).

    Values may be bytes, None, or an exception instance to raise.
    """

    def __init__(self, tiles=None):
        self.tiles = dict(tiles or {})
        self.calls = []

    def resolve(self, coordinate, variant):
        self.calls.append((coordinate, variant))
        value = self.tiles.get((variant, coordinate.x, coordinate.y))
        if isinstance(value, BaseException):
            raise value
        return value


@pytest.fixture
def corner_points():
    """Four points on a 10m square with heights 0, 10, 10, 20."""
    return np.array(
        [
            [0.0, 0.0, 0.0],
            [10.0, 0.0, 10.0],
            [0.0, 10.0, 10.0],
            [10.0, 10.0, 20.0],
        ]
    )


@pytest.fixture
def hill_points():
    """Random 10x10m point cloud with heights 100-150m."""
    rng = np.random.default_rng(42)
    xy = rng.uniform(0.0, 10.0, (200, 2))
    z = 100.0 + 50.0 * np.exp(-((xy[:, 0] - 5.0) ** 2 + (xy[:, 1] - 5.0) ** 2) / 10.0)
    pts = np.column_stack((xy, z))
    # pin the extent so header bounds are predictable
    pts[0] = [0.0, 0.0, 100.0]
    pts[1] = [10.0, 10.0, 100.0]
    return pts


@pytest.fixture
def corner_las(corner_points):
    return make_las_bytes(corner_points)


@pytest.fixture
def hill_las(hill_points):
    return make_las_bytes(hill_points)


@pytest.fixture
def fake_source():
    return FakeTileSource()


@pytest.fixture
def no_pacing():
    """Skip the random sleep between fetches."""
    with patch("chuk_mcp_lidar.core.fetcher.time.sleep") as sleep:
        yield sleep


@pytest.fixture
def mock_manager(tmp_path):
    """LidarManager with an output directory under tmp_path."""
    from chuk_mcp_lidar.core.lidar_manager import LidarManager

    return LidarManager(output_dir=tmp_path / "out", fetch_workers=2)


@pytest.fixture
def mock_mcp():
    """Mock ChukMCPServer."""
    mcp = MagicMock()
    mcp.tool = MagicMock(return_value=lambda fn: fn)
    return mcp


@pytest.fixture
def capture_tools():
    """Return (mcp, tools) where tools maps name -> registered coroutine."""
    tools = {}
    mcp = MagicMock()

    def capture_tool(**kwargs):
        def decorator(fn):
            tools[fn.__name__] = fn
            return fn

        return decorator

    mcp.tool = capture_tool
    return mcp, tools
