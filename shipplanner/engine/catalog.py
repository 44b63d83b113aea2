"""Assemble a ``StructureCatalog`` from decoded game data.

The extraction collaborator produces an ``ExtractedData`` bundle: raw
structures (with their geometry descriptors), the text table used to
resolve names, and the game's own category list. Assembly:

  * resolves each structure's category through a fixed id table, then by
    keywords in the category's name, falling back to the ``other`` bucket;
  * skips structures whose name can't be resolved;
  * normalizes geometry into a ``TileLayout`` via ``geometry.py``;
  * deduplicates by name and size within a category (color variants of the
    same structure share both);
  * emits categories in a fixed order with items sorted by name.

Nothing here raises on incomplete data: unknown categories, missing sizes
and missing geometry all degrade to defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .geometry import normalize_tile_layout
from .types import (
    RawLinkedTile,
    RawRestriction,
    RawTile,
    Size,
    StructureCatalog,
    StructureCategory,
    StructureDef,
)

logger = logging.getLogger(__name__)

DEFAULT_SIZE: Size = (2, 2)


@dataclass(frozen=True)
class CategoryMeta:
    id: str
    name: str
    color: str
    default_layer: str


CATEGORY_TABLE: dict[int, CategoryMeta] = {
    1520: CategoryMeta("hull", "Hull & Walls", "#3a4a5c", "Hull"),
    1521: CategoryMeta("power", "Power", "#cc8844", "Systems"),
    1522: CategoryMeta("life_support", "Life Support", "#44aa88", "Systems"),
    1523: CategoryMeta("system", "Systems & Combat", "#cc4444", "Systems"),
    1524: CategoryMeta("airlock", "Airlock & Hangar", "#8866aa", "Rooms"),
    1525: CategoryMeta("storage", "Storage", "#888866", "Rooms"),
    1526: CategoryMeta("food", "Food & Agriculture", "#66aa44", "Rooms"),
    1527: CategoryMeta("resource", "Resource & Industry", "#aa8844", "Rooms"),
    1528: CategoryMeta("facility", "Crew Facilities", "#6688aa", "Rooms"),
    1529: CategoryMeta("robots", "Robots", "#55aaaa", "Systems"),
    1530: CategoryMeta(
        "furniture", "Furniture & Decoration", "#aa8877", "Furniture"
    ),
}
DEFAULT_CATEGORY = CategoryMeta("other", "Other", "#888888", "Rooms")

CATEGORY_ORDER: tuple[str, ...] = (
    "hull",
    "power",
    "life_support",
    "system",
    "airlock",
    "storage",
    "food",
    "resource",
    "facility",
    "robots",
    "furniture",
    "other",
)

# First matching row wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("hull", ("hull", "wall", "door")),
    ("power", ("power", "generator", "energy")),
    ("life_support", ("life support", "oxygen", "thermal")),
    ("system", ("weapon", "shield", "combat", "system")),
    ("airlock", ("airlock", "hangar")),
    ("storage", ("storage", "cargo")),
    ("food", ("food", "kitchen", "grow", "agriculture")),
    ("resource", ("resource", "refinery", "assembler", "industry")),
    ("facility", ("crew", "bed", "medical", "facility")),
    ("robots", ("robot",)),
    ("furniture", ("furniture", "decoration", "light")),
)

_META_BY_ID: dict[str, CategoryMeta] = {
    m.id: m for m in (*CATEGORY_TABLE.values(), DEFAULT_CATEGORY)
}


@dataclass(frozen=True)
class RawStructure:
    mid: int
    name_tid: int
    sub_cat_id: int | None = None
    size: Size | None = None
    debug_name: str | None = None
    data_tiles: tuple[RawTile, ...] = ()
    linked_tiles: tuple[RawLinkedTile, ...] = ()
    restrictions: tuple[RawRestriction, ...] = ()


@dataclass(frozen=True)
class RawCategory:
    id: int
    name_tid: int
    parent_id: int | None = None


@dataclass
class ExtractedData:
    structures: list[RawStructure] = field(default_factory=list)
    texts: dict[int, str] = field(default_factory=dict)
    categories: list[RawCategory] = field(default_factory=list)
    game_version: str | None = None


def structure_id_for(mid: int) -> str:
    return f"mid_{mid}"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def generate_color(name: str) -> str:
    """Deterministic muted HSL color for a structure name.

    Matches the string hash of the shipped snapshots, so regenerated
    catalogs keep the colors users already know.
    """
    h = 0
    for ch in name:
        h = ord(ch) + (_to_int32(_to_int32(h) << 5) - h)
    hue = abs(h) % 360
    saturation = 40 + abs(_to_int32(h) >> 8) % 30
    lightness = 35 + abs(_to_int32(h) >> 16) % 20
    return f"hsl({hue}, {saturation}%, {lightness}%)"


def infer_category_id(category_name: str) -> str:
    lowered = category_name.lower()
    for category_id, keywords in CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category_id
    return DEFAULT_CATEGORY.id


def build_category_lookup(
    categories: list[RawCategory], texts: dict[int, str]
) -> dict[int, str]:
    """Map game category ids to planner category ids."""
    lookup: dict[int, str] = {}
    for cat in categories:
        direct = CATEGORY_TABLE.get(cat.id)
        if direct:
            lookup[cat.id] = direct.id
            continue
        lookup[cat.id] = infer_category_id(texts.get(cat.name_tid, ""))
    return lookup


def convert_structure(
    raw: RawStructure,
    texts: dict[int, str],
    category_lookup: dict[int, str],
) -> StructureDef | None:
    name = texts.get(raw.name_tid)
    if not name:
        return None

    category_id = DEFAULT_CATEGORY.id
    if raw.sub_cat_id is not None:
        direct = CATEGORY_TABLE.get(raw.sub_cat_id)
        if direct:
            category_id = direct.id
        else:
            category_id = category_lookup.get(
                raw.sub_cat_id, DEFAULT_CATEGORY.id
            )

    size = raw.size or DEFAULT_SIZE
    layout = normalize_tile_layout(
        raw.data_tiles, raw.linked_tiles, raw.restrictions, size
    )
    return StructureDef(
        id=structure_id_for(raw.mid),
        name=name,
        size=size,
        color=generate_color(name),
        category_id=category_id,
        tile_layout=layout,
    )


def _dedupe_key(name: str, size: Size) -> str:
    return f"{name}|{size[0]}x{size[1]}"


def _sort_items(items: list[StructureDef]) -> tuple[StructureDef, ...]:
    return tuple(sorted(items, key=lambda s: (s.name.casefold(), s.name)))


def assemble_catalog(data: ExtractedData) -> StructureCatalog:
    lookup = build_category_lookup(data.categories, data.texts)

    buckets: dict[str, list[StructureDef]] = {cid: [] for cid in CATEGORY_ORDER}
    seen: dict[str, set[str]] = {cid: set() for cid in CATEGORY_ORDER}
    skipped_unnamed = 0
    skipped_duplicate = 0

    for raw in data.structures:
        defn = convert_structure(raw, data.texts, lookup)
        if defn is None:
            skipped_unnamed += 1
            continue
        bucket_id = (
            defn.category_id
            if defn.category_id in buckets
            else DEFAULT_CATEGORY.id
        )
        key = _dedupe_key(defn.name, defn.size)
        if key in seen[bucket_id]:
            skipped_duplicate += 1
            continue
        seen[bucket_id].add(key)
        buckets[bucket_id].append(defn)

    categories: list[StructureCategory] = []
    for cid in CATEGORY_ORDER:
        items = buckets[cid]
        if not items:
            continue
        meta = _META_BY_ID[cid]
        categories.append(
            StructureCategory(
                id=meta.id,
                name=meta.name,
                color=meta.color,
                default_layer=meta.default_layer,
                items=_sort_items(items),
            )
        )

    catalog = StructureCatalog(categories=tuple(categories))
    logger.info(
        "Assembled catalog: %d structures in %d categories "
        "(%d unnamed, %d duplicates skipped)",
        catalog.structure_count(),
        len(categories),
        skipped_unnamed,
        skipped_duplicate,
    )
    return catalog


def merge_catalogs(
    primary: StructureCatalog, fallback: StructureCatalog
) -> StructureCatalog:
    """Merge two catalogs; ``primary`` wins and ``fallback`` fills gaps."""
    primary_ids = {
        item.id for cat in primary.categories for item in cat.items
    }

    items_by_cat: dict[str, list[StructureDef]] = {
        cat.id: list(cat.items) for cat in primary.categories
    }
    for cat in fallback.categories:
        for item in cat.items:
            if item.id not in primary_ids:
                items_by_cat.setdefault(cat.id, []).append(item)

    result: list[StructureCategory] = []
    for cat in primary.categories:
        items = items_by_cat.pop(cat.id, [])
        if items:
            result.append(
                StructureCategory(
                    id=cat.id,
                    name=cat.name,
                    color=cat.color,
                    default_layer=cat.default_layer,
                    items=_sort_items(items),
                )
            )
    for cat in fallback.categories:
        items = items_by_cat.pop(cat.id, [])
        if items:
            result.append(
                StructureCategory(
                    id=cat.id,
                    name=cat.name,
                    color=cat.color,
                    default_layer=cat.default_layer,
                    items=_sort_items(items),
                )
            )
    return StructureCatalog(categories=tuple(result))
