"""Data types for the ship planner model and its JSON snapshot format.

Catalog types (``StructureDef``, ``StructureCategory``, ``StructureCatalog``
and the tile layout they carry) round-trip through ``from_dict`` /
``to_dict`` using the camelCase keys of the shipped catalog snapshots.
Everything here is immutable: frozen dataclasses, tuples and frozensets, so
the reducer can share unchanged fields between successive states and the
history manager can compare them by identity.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

Rotation = int  # one of ROTATIONS
ROTATIONS: tuple[int, ...] = (0, 90, 180, 270)

Size = tuple[int, int]
Position = tuple[int, int]

# System layers, kept on each placed structure for migration and for picking
# the default user layer.
LAYERS: tuple[str, ...] = ("Hull", "Rooms", "Systems", "Furniture")


class TileType(str, enum.Enum):
    CONSTRUCTION = "construction"
    ACCESS = "access"
    BLOCKED = "blocked"


class RestrictionKind(str, enum.Enum):
    FLOOR = "Floor"
    SPACE = "Space"
    SPACE_ONE_ONLY = "SpaceOneOnly"
    OTHER = "other"

    @staticmethod
    def from_token(token: str | None) -> RestrictionKind:
        for kind in RestrictionKind:
            if kind.value == token:
                return kind
        return RestrictionKind.OTHER


# -- Raw descriptors (decoded by the extraction collaborator) ---------------


@dataclass(frozen=True)
class RawTile:
    x: int
    y: int
    element_type: str | None = None
    walk_cost: int = 1


@dataclass(frozen=True)
class RawLinkedTile:
    x: int
    y: int


@dataclass(frozen=True)
class RawRestriction:
    kind: RestrictionKind
    x: int
    y: int
    width: int = 1
    height: int = 1


# -- Tile layout -------------------------------------------------------------


@dataclass(frozen=True)
class StructureTile:
    x: int
    y: int
    type: TileType
    walk_cost: int = 1

    @staticmethod
    def from_dict(d: dict) -> StructureTile:
        return StructureTile(
            x=d["x"],
            y=d["y"],
            type=TileType(d.get("type", "construction")),
            walk_cost=d.get("walkCost", 1),
        )

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "type": self.type.value,
            "walkCost": self.walk_cost,
        }


@dataclass(frozen=True)
class TileLayout:
    tiles: frozenset[StructureTile]
    width: int
    height: int

    @staticmethod
    def from_dict(d: dict) -> TileLayout:
        return TileLayout(
            tiles=frozenset(StructureTile.from_dict(t) for t in d["tiles"]),
            width=d["width"],
            height=d["height"],
        )

    def to_dict(self) -> dict:
        ordered = sorted(self.tiles, key=lambda t: (t.y, t.x))
        return {
            "tiles": [t.to_dict() for t in ordered],
            "width": self.width,
            "height": self.height,
        }


# -- Catalog -----------------------------------------------------------------


@dataclass(frozen=True)
class StructureDef:
    id: str
    name: str
    size: Size
    color: str
    category_id: str
    tile_layout: TileLayout | None = None

    @staticmethod
    def from_dict(d: dict) -> StructureDef:
        tl = d.get("tileLayout")
        width, height = d["size"]
        return StructureDef(
            id=d["id"],
            name=d["name"],
            size=(width, height),
            color=d.get("color", "#888888"),
            category_id=d["categoryId"],
            tile_layout=TileLayout.from_dict(tl) if tl else None,
        )

    def to_dict(self) -> dict:
        d: dict = {
            "id": self.id,
            "name": self.name,
            "size": list(self.size),
            "color": self.color,
            "categoryId": self.category_id,
        }
        if self.tile_layout:
            d["tileLayout"] = self.tile_layout.to_dict()
        return d


@dataclass(frozen=True)
class StructureCategory:
    id: str
    name: str
    color: str
    default_layer: str
    items: tuple[StructureDef, ...] = ()

    @staticmethod
    def from_dict(d: dict) -> StructureCategory:
        return StructureCategory(
            id=d["id"],
            name=d["name"],
            color=d.get("color", "#888888"),
            default_layer=d.get("defaultLayer", "Rooms"),
            items=tuple(StructureDef.from_dict(i) for i in d.get("items", [])),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "defaultLayer": self.default_layer,
            "items": [i.to_dict() for i in self.items],
        }


@dataclass(frozen=True)
class StructureCatalog:
    """Categories of structure definitions, indexed by id for lookup.

    Placed structures hold only a definition id and resolve it through
    ``find_structure``; the catalog is never mutated after construction.
    """

    categories: tuple[StructureCategory, ...] = ()
    _structures: dict[str, StructureDef] = field(
        init=False, repr=False, compare=False
    )
    _categories: dict[str, StructureCategory] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        structures: dict[str, StructureDef] = {}
        for cat in self.categories:
            for item in cat.items:
                structures.setdefault(item.id, item)
        object.__setattr__(self, "_structures", structures)
        object.__setattr__(
            self, "_categories", {c.id: c for c in self.categories}
        )

    def find_structure(self, structure_id: str) -> StructureDef | None:
        return self._structures.get(structure_id)

    def find_category(self, category_id: str) -> StructureCategory | None:
        return self._categories.get(category_id)

    def structure_count(self) -> int:
        return len(self._structures)

    @staticmethod
    def from_dict(d: dict) -> StructureCatalog:
        return StructureCatalog(
            categories=tuple(
                StructureCategory.from_dict(c) for c in d.get("categories", [])
            )
        )

    def to_dict(self) -> dict:
        return {"categories": [c.to_dict() for c in self.categories]}


# -- Placed model ------------------------------------------------------------


@dataclass(frozen=True)
class GridSize:
    width: int
    height: int


@dataclass(frozen=True)
class PlacedStructure:
    id: str
    structure_id: str
    category_id: str
    x: int
    y: int
    rotation: Rotation = 0
    layer: str = "Rooms"
    org_layer_id: str | None = None
    org_group_id: str | None = None


@dataclass(frozen=True)
class UserLayer:
    id: str
    name: str
    is_visible: bool = True
    is_locked: bool = False
    order: int = 0


@dataclass(frozen=True)
class UserGroup:
    id: str
    layer_id: str
    name: str
    is_visible: bool = True
    is_locked: bool = False
    order: int = 0
    category_id: str | None = None


@dataclass(frozen=True)
class StructureSelection:
    category_id: str
    structure_id: str


DEFAULT_LAYER_ID = "layer-default"
DEFAULT_USER_LAYERS: tuple[UserLayer, ...] = (
    UserLayer(id=DEFAULT_LAYER_ID, name="Default", order=0),
)

DEFAULT_GRID = GridSize(54, 54)
DEFAULT_PRESET_LABEL = "2x2"
DEFAULT_ZOOM = 12


@dataclass(frozen=True)
class PlannerState:
    """Complete planner state.

    The undoable subset is ``structures``, ``hull_tiles``, ``user_layers``,
    ``user_groups``, ``active_layer_id`` and ``active_group_id``; every other
    field is view state.
    """

    grid: GridSize = DEFAULT_GRID
    preset_label: str = DEFAULT_PRESET_LABEL
    zoom: int = DEFAULT_ZOOM
    show_grid: bool = True

    tool: str = "select"
    selection: StructureSelection | None = None
    preview_rotation: Rotation = 0
    expanded_categories: frozenset[str] = frozenset({"hull"})

    user_layers: tuple[UserLayer, ...] = DEFAULT_USER_LAYERS
    user_groups: tuple[UserGroup, ...] = ()
    active_layer_id: str | None = DEFAULT_LAYER_ID
    active_group_id: str | None = None
    expanded_layer_ids: frozenset[str] = frozenset({DEFAULT_LAYER_ID})
    expanded_group_ids: frozenset[str] = frozenset()

    structures: tuple[PlacedStructure, ...] = ()
    hull_tiles: frozenset[Position] = frozenset()

    hovered_tile: Position | None = None
    is_dragging: bool = False
    selected_structure_ids: frozenset[str] = frozenset()
