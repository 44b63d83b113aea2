"""Normalize decoded structure geometry into a canonical ``TileLayout``.

The extraction collaborator hands over three kinds of descriptors per
structure, already decoded from the game data:

  * **Data tiles**: the structure's own tiles, each with an element-type
    token and a walk cost.
  * **Linked tiles**: extra positions belonging to the structure body.
  * **Restrictions**: rectangles describing required clearance around the
    structure (floor space crew walk on, or open space that must stay free).

``normalize_tile_layout`` merges them in a fixed order:

  1. core tiles (linked tiles, then data tiles merged over them),
  2. gap fill of the core bounding box with construction tiles,
  3. restriction expansion onto positions that are still free,
  4. a selection filter that drops restriction access tiles further than
     ``ACCESS_MARGIN`` from the core box,

and finally shifts the surviving tiles so the bounding box starts at (0,0).
The result is a pure function of the input sets: descriptor order never
matters.
"""

from __future__ import annotations

from collections.abc import Iterable

from .types import (
    Position,
    RawLinkedTile,
    RawRestriction,
    RawTile,
    RestrictionKind,
    Size,
    StructureTile,
    TileLayout,
    TileType,
)

IMPASSABLE_WALK_COST = 255
ACCESS_WALK_COST = 0
CONSTRUCTION_WALK_COST = 1

# Chebyshev distance from the core box within which restriction-derived
# access tiles are kept.
ACCESS_MARGIN = 1

# Element-type tokens that describe walkable fixtures rather than structure
# body. Anything not listed classifies as construction.
ELEMENT_TILE_TYPES: dict[str, TileType] = {
    "Light": TileType.ACCESS,
    "FloorDeco": TileType.ACCESS,
}
DEFAULT_ELEMENT_TILE_TYPE = TileType.CONSTRUCTION

RESTRICTION_TILE_TYPES: dict[RestrictionKind, tuple[TileType, int]] = {
    RestrictionKind.FLOOR: (TileType.ACCESS, ACCESS_WALK_COST),
    RestrictionKind.SPACE: (TileType.BLOCKED, IMPASSABLE_WALK_COST),
    RestrictionKind.SPACE_ONE_ONLY: (TileType.BLOCKED, IMPASSABLE_WALK_COST),
}

Box = tuple[int, int, int, int]  # min_x, min_y, max_x, max_y (inclusive)


def classify_element(token: str | None, walk_cost: int) -> TileType:
    if walk_cost >= IMPASSABLE_WALK_COST:
        return TileType.BLOCKED
    if token is None:
        return DEFAULT_ELEMENT_TILE_TYPE
    return ELEMENT_TILE_TYPES.get(token, DEFAULT_ELEMENT_TILE_TYPE)


def _bounding_box(positions: Iterable[Position]) -> Box | None:
    xs: list[int] = []
    ys: list[int] = []
    for x, y in positions:
        xs.append(x)
        ys.append(y)
    if not xs:
        return None
    return min(xs), min(ys), max(xs), max(ys)


def _core_tiles(
    data_tiles: Iterable[RawTile],
    linked_tiles: Iterable[RawLinkedTile],
) -> dict[Position, StructureTile]:
    core: dict[Position, StructureTile] = {}
    for lt in linked_tiles:
        core[(lt.x, lt.y)] = StructureTile(
            lt.x, lt.y, TileType.CONSTRUCTION, CONSTRUCTION_WALK_COST
        )

    for dt in data_tiles:
        pos = (dt.x, dt.y)
        existing = core.get(pos)
        if existing is None:
            core[pos] = StructureTile(
                dt.x,
                dt.y,
                classify_element(dt.element_type, dt.walk_cost),
                dt.walk_cost,
            )
        elif dt.walk_cost >= IMPASSABLE_WALK_COST:
            core[pos] = StructureTile(
                dt.x, dt.y, TileType.BLOCKED, dt.walk_cost
            )
    return core


def _fill_gaps(core: dict[Position, StructureTile], box: Box) -> None:
    min_x, min_y, max_x, max_y = box
    for y in range(min_y, max_y + 1):
        for x in range(min_x, max_x + 1):
            if (x, y) not in core:
                core[(x, y)] = StructureTile(
                    x, y, TileType.CONSTRUCTION, CONSTRUCTION_WALK_COST
                )


def _expand_restrictions(
    restrictions: Iterable[RawRestriction],
    occupied: dict[Position, StructureTile],
) -> dict[Position, StructureTile]:
    expanded: dict[Position, StructureTile] = {}
    for r in restrictions:
        mapping = RESTRICTION_TILE_TYPES.get(r.kind)
        if mapping is None:
            continue
        tile_type, walk_cost = mapping
        for y in range(r.y, r.y + r.height):
            for x in range(r.x, r.x + r.width):
                pos = (x, y)
                if pos in occupied or pos in expanded:
                    continue
                expanded[pos] = StructureTile(x, y, tile_type, walk_cost)
    return expanded


def _restriction_order(r: RawRestriction) -> tuple[int, int, int, int, int]:
    blocked = r.kind in (RestrictionKind.SPACE, RestrictionKind.SPACE_ONE_ONLY)
    return (0 if blocked else 1, r.y, r.x, r.height, r.width)


def _within_margin(x: int, y: int, box: Box, margin: int) -> bool:
    min_x, min_y, max_x, max_y = box
    return (
        min_x - margin <= x <= max_x + margin
        and min_y - margin <= y <= max_y + margin
    )


def normalize_tile_layout(
    data_tiles: Iterable[RawTile],
    linked_tiles: Iterable[RawLinkedTile],
    restrictions: Iterable[RawRestriction],
    fallback_size: Size,
) -> TileLayout | None:
    """Build a structure's canonical tile layout.

    Returns ``None`` when no tile survives, in which case the placement
    engine falls back to the structure's declared rectangular size.
    """
    # Duplicate positions resolve first-wins below, so fix the order.
    data_tiles = sorted(
        set(data_tiles),
        key=lambda t: (t.y, t.x, t.walk_cost, t.element_type or ""),
    )
    core = _core_tiles(data_tiles, linked_tiles)

    core_box = _bounding_box(core)
    if core_box is None:
        core_box = (0, 0, fallback_size[0] - 1, fallback_size[1] - 1)
    else:
        _fill_gaps(core, core_box)

    # Space restrictions claim shared positions before floor restrictions.
    ordered = sorted(set(restrictions), key=_restriction_order)
    extra = _expand_restrictions(ordered, core)

    selected: list[StructureTile] = list(core.values())
    for tile in extra.values():
        if tile.type is TileType.BLOCKED or _within_margin(
            tile.x, tile.y, core_box, ACCESS_MARGIN
        ):
            selected.append(tile)

    box = _bounding_box((t.x, t.y) for t in selected)
    if box is None:
        return None
    min_x, min_y, max_x, max_y = box
    tiles = frozenset(
        StructureTile(t.x - min_x, t.y - min_y, t.type, t.walk_cost)
        for t in selected
    )
    return TileLayout(
        tiles=tiles, width=max_x - min_x + 1, height=max_y - min_y + 1
    )
