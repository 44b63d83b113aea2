"""Tile-level collision detection and the placement commands built on it.

The central question this module answers: "may this structure occupy these
tiles?" Every structure-changing command in ``reducer.py`` goes through
here. The check enforces:

  * **Grid bounds**: the rotated footprint, and every rotated layout tile,
    must lie inside ``[0, width) x [0, height)``.
  * **Tile overlap**: a position shared with another structure is a
    collision unless *both* tiles there are ``access`` tiles. Blocking tiles
    (construction, blocked) never share a position with anything.
  * **Fallback footprints**: a definition without a ``TileLayout`` occupies
    its whole rotated bounding rectangle as blocking tiles.

Commands (``place_structure``, ``move_selected``, ``erase_at``,
``erase_in_rect``, ``delete_selected``) are pure: they return the very same
state object when nothing changes, so callers can tell a no-op by identity.
Placement is always re-validated against the state it is applied to, never
against an earlier preview.

Erase and delete only touch structures the caller's ``is_interactive``
predicate accepts; layer visibility and locking live in ``organization.py``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass, replace

from .organization import assign_organization
from .rotation import rotate_position, rotate_size
from .types import (
    GridSize,
    PlacedStructure,
    PlannerState,
    Position,
    Rotation,
    StructureCatalog,
    StructureDef,
    TileType,
)

logger = logging.getLogger(__name__)

InteractivePredicate = Callable[[PlacedStructure], bool]


@dataclass(frozen=True)
class StructureTiles:
    """Absolute positions of a placed structure, split by how they block."""

    blocking: frozenset[Position]
    access: frozenset[Position]

    @property
    def all(self) -> frozenset[Position]:
        return self.blocking | self.access


def typed_tiles(
    defn: StructureDef, x: int, y: int, rotation: Rotation
) -> dict[Position, TileType]:
    """Rotate then translate a definition's tiles, keyed by grid position.

    A definition without a layout fills its rotated footprint with
    construction tiles.
    """
    layout = defn.tile_layout
    if layout is None or not layout.tiles:
        width, height = rotate_size(defn.size, rotation)
        return {
            (x + dx, y + dy): TileType.CONSTRUCTION
            for dy in range(height)
            for dx in range(width)
        }
    out: dict[Position, TileType] = {}
    for tile in layout.tiles:
        rx, ry = rotate_position(
            tile.x, tile.y, rotation, layout.width, layout.height
        )
        pos = (x + rx, y + ry)
        # A position can't be both; blocking wins.
        if tile.type is TileType.ACCESS:
            out.setdefault(pos, tile.type)
        else:
            out[pos] = tile.type
    return out


def structure_tiles(
    defn: StructureDef, x: int, y: int, rotation: Rotation
) -> StructureTiles:
    """Rotate then translate a definition's tiles to grid positions."""
    typed = typed_tiles(defn, x, y, rotation)
    return StructureTiles(
        blocking=frozenset(
            pos for pos, kind in typed.items() if kind is not TileType.ACCESS
        ),
        access=frozenset(
            pos for pos, kind in typed.items() if kind is TileType.ACCESS
        ),
    )


def placed_tiles(
    struct: PlacedStructure, catalog: StructureCatalog
) -> StructureTiles | None:
    defn = catalog.find_structure(struct.structure_id)
    if defn is None:
        return None
    return structure_tiles(defn, struct.x, struct.y, struct.rotation)


def in_bounds(
    grid: GridSize,
    defn: StructureDef,
    x: int,
    y: int,
    rotation: Rotation,
    tiles: StructureTiles | None = None,
) -> bool:
    width, height = rotate_size(defn.size, rotation)
    if x < 0 or y < 0 or x + width > grid.width or y + height > grid.height:
        return False
    if tiles is None:
        tiles = structure_tiles(defn, x, y, rotation)
    return all(
        0 <= tx < grid.width and 0 <= ty < grid.height for tx, ty in tiles.all
    )


def layout_fits_grid(
    grid: GridSize,
    structures: Iterable[PlacedStructure],
    hull_tiles: Iterable[Position],
    catalog: StructureCatalog,
) -> bool:
    """True if every known structure and every hull tile lies inside ``grid``."""
    for struct in structures:
        defn = catalog.find_structure(struct.structure_id)
        if defn is None:
            continue
        if not in_bounds(grid, defn, struct.x, struct.y, struct.rotation):
            return False
    return all(
        0 <= x < grid.width and 0 <= y < grid.height for x, y in hull_tiles
    )


def tiles_collide(candidate: StructureTiles, existing: StructureTiles) -> bool:
    """True unless every shared position is access on both sides."""
    if not candidate.blocking.isdisjoint(existing.all):
        return True
    return not candidate.access.isdisjoint(existing.blocking)


def has_collision(
    instances: Iterable[PlacedStructure],
    catalog: StructureCatalog,
    candidate: StructureTiles,
    exclude_ids: Collection[str] = (),
) -> bool:
    for struct in instances:
        if struct.id in exclude_ids:
            continue
        existing = placed_tiles(struct, catalog)
        if existing is None:
            continue
        if tiles_collide(candidate, existing):
            return True
    return False


def can_place(
    grid: GridSize,
    instances: Iterable[PlacedStructure],
    catalog: StructureCatalog,
    defn: StructureDef,
    x: int,
    y: int,
    rotation: Rotation,
    exclude_ids: Collection[str] = (),
) -> bool:
    """Check whether ``defn`` fits at ``(x, y)`` with ``rotation``.

    Instances whose id is in ``exclude_ids`` are ignored, which lets an
    in-progress move test a structure against everything but itself.
    """
    tiles = structure_tiles(defn, x, y, rotation)
    if not in_bounds(grid, defn, x, y, rotation, tiles):
        return False
    return not has_collision(instances, catalog, tiles, exclude_ids)


def can_place_at(
    state: PlannerState,
    catalog: StructureCatalog,
    structure_id: str,
    x: int,
    y: int,
    rotation: Rotation,
) -> bool:
    """``can_place`` against a planner state, resolving the definition by id."""
    defn = catalog.find_structure(structure_id)
    if defn is None:
        return False
    return can_place(
        state.grid, state.structures, catalog, defn, x, y, rotation
    )


def place_structure(
    state: PlannerState,
    catalog: StructureCatalog,
    struct: PlacedStructure,
) -> PlannerState:
    defn = catalog.find_structure(struct.structure_id)
    if defn is None:
        logger.debug("Rejected placement of unknown %s", struct.structure_id)
        return state
    if any(s.id == struct.id for s in state.structures):
        return state
    if not can_place(
        state.grid,
        state.structures,
        catalog,
        defn,
        struct.x,
        struct.y,
        struct.rotation,
    ):
        logger.debug(
            "Rejected placement of %s at (%d, %d) rot %d",
            struct.structure_id,
            struct.x,
            struct.y,
            struct.rotation,
        )
        return state

    placed, groups = assign_organization(state, struct, catalog)
    return replace(
        state,
        structures=state.structures + (placed,),
        user_groups=groups,
    )


def move_selected(
    state: PlannerState,
    catalog: StructureCatalog,
    selected_ids: Collection[str],
    dx: int,
    dy: int,
) -> PlannerState:
    """Translate every selected structure by ``(dx, dy)``, all or nothing.

    Each moved structure is checked against the structures that stay put;
    selected structures may overlap each other since their relative
    arrangement doesn't change.
    """
    if (dx == 0 and dy == 0) or not selected_ids:
        return state
    selected = frozenset(selected_ids)
    staying = [s for s in state.structures if s.id not in selected]

    moved: dict[str, PlacedStructure] = {}
    for struct in state.structures:
        if struct.id not in selected:
            continue
        defn = catalog.find_structure(struct.structure_id)
        if defn is None:
            return state
        nx, ny = struct.x + dx, struct.y + dy
        if not can_place(
            state.grid, staying, catalog, defn, nx, ny, struct.rotation
        ):
            return state
        moved[struct.id] = replace(struct, x=nx, y=ny)

    if not moved:
        return state
    return replace(
        state,
        structures=tuple(moved.get(s.id, s) for s in state.structures),
    )


def find_structure_at(
    state: PlannerState,
    catalog: StructureCatalog,
    x: int,
    y: int,
    is_interactive: InteractivePredicate,
) -> str | None:
    """Id of the first interactive structure with any tile at ``(x, y)``."""
    for struct in state.structures:
        if not is_interactive(struct):
            continue
        tiles = placed_tiles(struct, catalog)
        if tiles is not None and (x, y) in tiles.all:
            return struct.id
    return None


def _remove_ids(
    state: PlannerState, ids: Collection[str]
) -> tuple[tuple[PlacedStructure, ...], frozenset[str]]:
    structures = tuple(s for s in state.structures if s.id not in ids)
    selected = frozenset(i for i in state.selected_structure_ids if i not in ids)
    return structures, selected


def erase_at(
    state: PlannerState,
    catalog: StructureCatalog,
    x: int,
    y: int,
    is_interactive: InteractivePredicate,
) -> PlannerState:
    """Erase the structure and the hull tile under ``(x, y)``."""
    struct_id = find_structure_at(state, catalog, x, y, is_interactive)
    has_hull = (x, y) in state.hull_tiles
    if struct_id is None and not has_hull:
        return state

    structures = state.structures
    selected = state.selected_structure_ids
    if struct_id is not None:
        structures, selected = _remove_ids(state, {struct_id})
    hull_tiles = state.hull_tiles - {(x, y)} if has_hull else state.hull_tiles
    return replace(
        state,
        structures=structures,
        hull_tiles=hull_tiles,
        selected_structure_ids=selected,
    )


def clamp_rect(
    grid: GridSize, x1: int, y1: int, x2: int, y2: int
) -> tuple[int, int, int, int] | None:
    """Normalize an inclusive rectangle and clip it to the grid."""
    lo_x = max(0, min(x1, x2))
    lo_y = max(0, min(y1, y2))
    hi_x = min(grid.width - 1, max(x1, x2))
    hi_y = min(grid.height - 1, max(y1, y2))
    if lo_x > hi_x or lo_y > hi_y:
        return None
    return lo_x, lo_y, hi_x, hi_y


def erase_in_rect(
    state: PlannerState,
    catalog: StructureCatalog,
    x1: int,
    y1: int,
    x2: int,
    y2: int,
    is_interactive: InteractivePredicate,
) -> PlannerState:
    """Erase interactive structures touching the rectangle, and its hull tiles."""
    rect = clamp_rect(state.grid, x1, y1, x2, y2)
    if rect is None:
        return state
    lo_x, lo_y, hi_x, hi_y = rect

    doomed: set[str] = set()
    for struct in state.structures:
        if not is_interactive(struct):
            continue
        tiles = placed_tiles(struct, catalog)
        if tiles is None:
            continue
        if any(lo_x <= tx <= hi_x and lo_y <= ty <= hi_y for tx, ty in tiles.all):
            doomed.add(struct.id)

    hull_doomed = {
        (hx, hy)
        for hx, hy in state.hull_tiles
        if lo_x <= hx <= hi_x and lo_y <= hy <= hi_y
    }
    if not doomed and not hull_doomed:
        return state

    structures = state.structures
    selected = state.selected_structure_ids
    if doomed:
        structures, selected = _remove_ids(state, doomed)
    return replace(
        state,
        structures=structures,
        hull_tiles=(
            state.hull_tiles - hull_doomed if hull_doomed else state.hull_tiles
        ),
        selected_structure_ids=selected,
    )


def delete_structures(
    state: PlannerState,
    ids: Collection[str],
    is_interactive: InteractivePredicate,
) -> PlannerState:
    doomed = {
        s.id for s in state.structures if s.id in ids and is_interactive(s)
    }
    if not doomed:
        return state
    structures, selected = _remove_ids(state, doomed)
    return replace(
        state, structures=structures, selected_structure_ids=selected
    )


def delete_selected(
    state: PlannerState, is_interactive: InteractivePredicate
) -> PlannerState:
    return delete_structures(
        state, state.selected_structure_ids, is_interactive
    )


@dataclass(frozen=True)
class LayoutProblem:
    instance_id: str
    message: str


def find_layout_problems(
    state: PlannerState, catalog: StructureCatalog
) -> list[LayoutProblem]:
    """Audit a loaded layout: unknown definitions, out of bounds, overlaps.

    Each structure is checked against the ones listed before it, so an
    overlapping pair reports only the later of the two.
    """
    problems: list[LayoutProblem] = []
    accepted: list[PlacedStructure] = []
    for struct in state.structures:
        defn = catalog.find_structure(struct.structure_id)
        if defn is None:
            problems.append(
                LayoutProblem(
                    struct.id, f"unknown structure {struct.structure_id}"
                )
            )
            continue
        tiles = structure_tiles(defn, struct.x, struct.y, struct.rotation)
        if not in_bounds(
            state.grid, defn, struct.x, struct.y, struct.rotation, tiles
        ):
            problems.append(
                LayoutProblem(
                    struct.id,
                    f"{defn.name} at ({struct.x}, {struct.y}) is outside "
                    f"the {state.grid.width}x{state.grid.height} grid",
                )
            )
            continue
        if has_collision(accepted, catalog, tiles):
            problems.append(
                LayoutProblem(
                    struct.id,
                    f"{defn.name} at ({struct.x}, {struct.y}) overlaps "
                    "another structure",
                )
            )
            continue
        accepted.append(struct)
    return problems
