"""
Spatial region model: tile coordinates and areas of interest.

Areas are square neighbourhoods around core points. The union of all areas
is deduplicated in order of first occurrence, which decides which tile is
fetched first and therefore which one may become the offset origin.
"""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from ..constants import MAX_AREA_SIDE, MAX_RADIUS, MAX_TILE_DIM, MIN_TILE_DIM, ErrorMessages


@dataclass(frozen=True, order=True)
class TileCoordinate:
    """Integer (x, y) cell of the global tile grid."""

    x: int
    y: int

    @classmethod
    def parse(cls, text: str) -> "TileCoordinate":
        """Parse ``"(x, y)"``; parentheses and spaces are optional."""
        parts = text.split(",")
        if len(parts) != 2:
            raise ValueError(ErrorMessages.INVALID_POINT.format(text))

        values = [part.strip("( )") for part in parts]
        try:
            return cls(int(values[0]), int(values[1]))
        except ValueError:
            raise ValueError(ErrorMessages.INVALID_POINT.format(text)) from None

    def in_range(self, min_dim: int = MIN_TILE_DIM, max_dim: int = MAX_TILE_DIM) -> bool:
        return min_dim <= self.x < max_dim and min_dim <= self.y < max_dim

    def offset_from(self, origin: "TileCoordinate") -> tuple[int, int]:
        return self.x - origin.x, self.y - origin.y

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


@dataclass(frozen=True)
class AreaOfInterest:
    """Square neighbourhood of tiles around a center.

    Iterates row-major from ``(cx - r, cy - r)``; x varies fastest. The side
    length is ``2r + 1`` but never exceeds ``MAX_AREA_SIDE``.
    """

    center: TileCoordinate
    radius: int

    def __post_init__(self) -> None:
        if not 0 <= self.radius <= MAX_RADIUS:
            raise ValueError(ErrorMessages.INVALID_RADIUS.format(MAX_RADIUS, self.radius))

    @property
    def side(self) -> int:
        return min(2 * self.radius + 1, MAX_AREA_SIDE)

    def __len__(self) -> int:
        return self.side * self.side

    def __iter__(self) -> Iterator[TileCoordinate]:
        start_x = self.center.x - self.radius
        start_y = self.center.y - self.radius
        side = self.side
        for dy in range(side):
            for dx in range(side):
                yield TileCoordinate(start_x + dx, start_y + dy)


def build_areas(
    points: Sequence[str | Sequence[int]],
    radii: Sequence[int],
) -> list[AreaOfInterest]:
    """Pair core points with radii.

    Args:
        points: Either ``"(x, y)"`` strings or ``[x, y]`` pairs
        radii: One radius per point

    Returns:
        List of areas in the order given
    """
    if len(points) != len(radii):
        raise ValueError(ErrorMessages.POINTS_RADII_MISMATCH.format(len(points), len(radii)))

    areas = []
    for point, radius in zip(points, radii):
        if isinstance(point, str):
            center = TileCoordinate.parse(point)
        else:
            if len(point) != 2:
                raise ValueError(ErrorMessages.INVALID_POINT.format(point))
            center = TileCoordinate(int(point[0]), int(point[1]))
        areas.append(AreaOfInterest(center, int(radius)))
    return areas


def expand_region(
    areas: Iterable[AreaOfInterest],
    min_dim: int = MIN_TILE_DIM,
    max_dim: int = MAX_TILE_DIM,
) -> list[TileCoordinate]:
    """Union of all areas, in order of first occurrence, inside ``[min_dim, max_dim)``."""
    seen: dict[TileCoordinate, None] = {}
    for area in areas:
        for coordinate in area:
            if coordinate.in_range(min_dim, max_dim):
                seen.setdefault(coordinate, None)
    return list(seen)
