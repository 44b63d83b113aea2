"""Hull tiles: painted 1x1 hull blocks and their outline.

Hull tiles are plain grid positions, stored as a frozenset on the planner
state and covered by undo/redo. This module computes their boundary for
drawing: whether a tile is inside the hull (all four neighbours are hull)
and merged outline polygons via shapely.
"""

from __future__ import annotations

from collections.abc import Iterable

from shapely.geometry import box
from shapely.ops import unary_union

from .types import Position

# (dx, dy) of the four edge neighbours; y grows downward.
_NEIGHBOURS: tuple[Position, ...] = ((0, -1), (0, 1), (-1, 0), (1, 0))


def is_inner_hull_tile(hull_tiles: frozenset[Position], x: int, y: int) -> bool:
    return all((x + dx, y + dy) in hull_tiles for dx, dy in _NEIGHBOURS)


def rect_tiles(x1: int, y1: int, x2: int, y2: int) -> Iterable[Position]:
    for y in range(y1, y2 + 1):
        for x in range(x1, x2 + 1):
            yield (x, y)


def hull_outline(
    hull_tiles: frozenset[Position],
) -> list[list[tuple[float, float]]]:
    """Merge hull tiles into outline rings, in tile-corner coordinates.

    Returns one exterior ring per connected region followed by its interior
    rings (holes). Tiles touching only at a corner stay separate regions.
    """
    if not hull_tiles:
        return []
    merged = unary_union([box(x, y, x + 1, y + 1) for x, y in hull_tiles])
    polygons = (
        list(merged.geoms) if merged.geom_type == "MultiPolygon" else [merged]
    )
    rings: list[list[tuple[float, float]]] = []
    for poly in sorted(polygons, key=lambda p: (p.bounds[1], p.bounds[0])):
        rings.append([(float(cx), float(cy)) for cx, cy in poly.exterior.coords])
        for interior in poly.interiors:
            rings.append([(float(cx), float(cy)) for cx, cy in interior.coords])
    return rings
