"""Turn a parsed save-game ship into planner hull tiles and structures.

The save file itself is decoded elsewhere; this module reads the JSON dump of
an already-parsed ship (``meta`` plus a flat list of tile ``elements``) and
converts it against a catalog:

  * floor mids (``HULL_MIDS``) become hull tiles; empty tiles (mid -2) are
    dropped;
  * a mid the catalog knows becomes a placed structure. A multi-tile
    structure reports one element per covered tile, so it is placed once, at
    the top-left of its child tiles;
  * an unknown single-tile mid is kept as a hull tile, an unknown multi-tile
    mid is dropped, and both are counted for a warning.

Imported structures go through the same ``can_place`` check as anything
placed by hand, in element order. One that would overlap an earlier import
or leave the grid is skipped and reported, so a converted ship always loads
as a valid layout.

The conversion lands in the four legacy user layers (Hull, Rooms, Systems,
Furniture) via ``ship_to_action``.
"""

from __future__ import annotations

import enum
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from .catalog import structure_id_for
from .collision import can_place
from .organization import LEGACY_SYSTEM_LAYER_TO_USER_LAYER, LEGACY_USER_LAYERS
from .reducer import LoadProject
from .rotation import normalize_rotation
from .types import (
    GridSize,
    PlacedStructure,
    Position,
    Rotation,
    StructureCatalog,
)

logger = logging.getLogger(__name__)

HULL_MIDS = frozenset({1146, 1147, 1148})
EMPTY_MID = -2


class ShipFormatError(ValueError):
    """A ship dump is structurally invalid."""

    def __init__(self, detail: str):
        super().__init__(f"Invalid ship dump: {detail}")
        self.detail = detail


def parse_rotation(value: object) -> Rotation:
    """Read a save-game rotation token ("R90", "R180", "R270") or a number."""
    if isinstance(value, str) and value.startswith("R"):
        value = value[1:]
    return normalize_rotation(value)


@dataclass(frozen=True)
class ShipMeta:
    sid: int
    name: str
    width: int
    height: int
    is_player_owned: bool = False

    @staticmethod
    def from_dict(d: dict) -> ShipMeta:
        return ShipMeta(
            sid=int(d.get("sid", 0)),
            name=str(d.get("name", "")),
            width=int(d["width"]),
            height=int(d["height"]),
            is_player_owned=d.get("isPlayerOwned") is True,
        )


@dataclass(frozen=True)
class ShipChildTile:
    index: int
    x: int
    y: int


@dataclass(frozen=True)
class ShipElement:
    x: int
    y: int
    mid: int
    rotation: Rotation = 0
    is_multi_tile: bool = False
    child_tiles: tuple[ShipChildTile, ...] = ()

    @staticmethod
    def from_dict(d: dict) -> ShipElement:
        return ShipElement(
            x=int(d["x"]),
            y=int(d["y"]),
            mid=int(d["mid"]),
            rotation=parse_rotation(d.get("rotation")),
            is_multi_tile=d.get("isMultiTile") is True,
            child_tiles=tuple(
                ShipChildTile(
                    index=int(c.get("index", i)), x=int(c["x"]), y=int(c["y"])
                )
                for i, c in enumerate(d.get("childTiles") or [])
            ),
        )


@dataclass(frozen=True)
class ParsedShip:
    meta: ShipMeta
    elements: tuple[ShipElement, ...] = ()


class WarningKind(str, enum.Enum):
    UNKNOWN_STRUCTURE = "unknown_structure"
    BOUNDS_EXCEEDED = "bounds_exceeded"
    STRUCTURE_SKIPPED = "structure_skipped"


@dataclass(frozen=True)
class ConversionWarning:
    kind: WarningKind
    message: str
    count: int | None = None


@dataclass(frozen=True)
class ConversionStats:
    total_elements: int = 0
    hull_tiles_created: int = 0
    hull_tiles_clipped: int = 0
    structures_created: int = 0
    structures_skipped: int = 0
    unknown_mids: int = 0


@dataclass(frozen=True)
class ShipConversion:
    preset_label: str
    grid: GridSize
    hull_tiles: frozenset[Position] = frozenset()
    structures: tuple[PlacedStructure, ...] = ()
    warnings: tuple[ConversionWarning, ...] = ()
    stats: ConversionStats = field(default_factory=ConversionStats)


def convert_ship(
    ship: ParsedShip,
    catalog: StructureCatalog,
    preset_label: str,
    grid: GridSize,
) -> ShipConversion:
    """Convert ``ship`` onto a ``grid`` chosen by the caller.

    Structure ids are ``imported-1``, ``imported-2``... in element order.
    """
    hull: set[Position] = set()
    structures: list[PlacedStructure] = []
    unknown: Counter[int] = Counter()
    seen_multi: set[tuple[str, int, int]] = set()
    skipped = 0

    for element in ship.elements:
        if element.mid == EMPTY_MID:
            continue
        if element.mid in HULL_MIDS:
            hull.add((element.x, element.y))
            continue

        structure_id = structure_id_for(element.mid)
        defn = catalog.find_structure(structure_id)
        if defn is None:
            unknown[element.mid] += 1
            if not element.is_multi_tile:
                hull.add((element.x, element.y))
            continue

        x, y = element.x, element.y
        if element.is_multi_tile and element.child_tiles:
            x = min(c.x for c in element.child_tiles)
            y = min(c.y for c in element.child_tiles)
            key = (structure_id, x, y)
            if key in seen_multi:
                continue
            seen_multi.add(key)

        if not can_place(grid, structures, catalog, defn, x, y, element.rotation):
            logger.debug("Skipping %s at (%d, %d)", structure_id, x, y)
            skipped += 1
            continue

        category = catalog.find_category(defn.category_id)
        layer = category.default_layer if category is not None else "Rooms"
        structures.append(
            PlacedStructure(
                id=f"imported-{len(structures) + 1}",
                structure_id=defn.id,
                category_id=defn.category_id,
                x=x,
                y=y,
                rotation=element.rotation,
                layer=layer,
                org_layer_id=LEGACY_SYSTEM_LAYER_TO_USER_LAYER.get(
                    layer, "layer-rooms"
                ),
            )
        )

    in_grid = frozenset(
        (x, y) for x, y in hull if 0 <= x < grid.width and 0 <= y < grid.height
    )

    warnings: list[ConversionWarning] = []
    if unknown:
        total = sum(unknown.values())
        warnings.append(
            ConversionWarning(
                WarningKind.UNKNOWN_STRUCTURE,
                f"{total} tiles with {len(unknown)} unknown structure types "
                "were treated as hull",
                count=total,
            )
        )
    if ship.meta.width > grid.width or ship.meta.height > grid.height:
        warnings.append(
            ConversionWarning(
                WarningKind.BOUNDS_EXCEEDED,
                f"Ship size ({ship.meta.width}x{ship.meta.height}) exceeds the "
                f"{grid.width}x{grid.height} grid; content outside it was dropped",
            )
        )
    if skipped:
        warnings.append(
            ConversionWarning(
                WarningKind.STRUCTURE_SKIPPED,
                f"{skipped} structures overlapped another or left the grid "
                "and were skipped",
                count=skipped,
            )
        )

    logger.info(
        "Imported ship %r: %d structures, %d hull tiles",
        ship.meta.name,
        len(structures),
        len(in_grid),
    )
    return ShipConversion(
        preset_label=preset_label,
        grid=grid,
        hull_tiles=in_grid,
        structures=tuple(structures),
        warnings=tuple(warnings),
        stats=ConversionStats(
            total_elements=len(ship.elements),
            hull_tiles_created=len(in_grid),
            hull_tiles_clipped=len(hull) - len(in_grid),
            structures_created=len(structures),
            structures_skipped=skipped,
            unknown_mids=len(unknown),
        ),
    )


def ship_to_action(result: ShipConversion) -> LoadProject:
    return LoadProject(
        grid=result.grid,
        preset_label=result.preset_label,
        structures=result.structures,
        hull_tiles=result.hull_tiles,
        user_layers=LEGACY_USER_LAYERS,
        user_groups=(),
        active_layer_id=LEGACY_USER_LAYERS[0].id,
    )


# -- Files -------------------------------------------------------------------


def parsed_ship_from_dict(d) -> ParsedShip:
    """Read the ``{"meta": ..., "elements": [...]}`` dump of a parsed ship.

    Raises:
        ShipFormatError: a required field is missing or not a number.
    """
    if not isinstance(d, dict):
        raise ShipFormatError("not an object")
    if not isinstance(d.get("meta"), dict):
        raise ShipFormatError("missing meta")
    if not isinstance(d.get("elements", []), list):
        raise ShipFormatError("elements is not an array")
    try:
        meta = ShipMeta.from_dict(d["meta"])
    except (KeyError, TypeError, ValueError) as e:
        raise ShipFormatError(f"bad meta ({e})") from e
    elements = []
    for i, raw in enumerate(d.get("elements", [])):
        try:
            elements.append(ShipElement.from_dict(raw))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ShipFormatError(f"bad element {i} ({e})") from e
    return ParsedShip(meta=meta, elements=tuple(elements))


def load_parsed_ship(path: Path) -> ParsedShip:
    """Load a parsed ship dump from JSON."""
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ShipFormatError(f"malformed JSON ({e})") from e
    return parsed_ship_from_dict(data)
