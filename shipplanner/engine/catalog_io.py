"""Load and save structure catalogs and extracted game data as JSON.

Provides helpers for reading catalog snapshot files into typed
``StructureCatalog`` objects (via ``types.py``), writing them back, and
locating the built-in snapshot shipped under ``shipplanner/catalogs/``.

Also reads the JSON dump of already-decoded game data (raw structures with
their tile, linked-tile and restriction descriptors) that
``catalog.assemble_catalog`` turns into a catalog. Decoding the game archive
itself happens elsewhere; the dump is expected to be well-formed.

Used by:
  - ``frontend/cli.py``: ``build-catalog``, ``check`` and ``render``.
  - ``frontend/export.py`` tests: built-in catalog fixtures.
"""

from __future__ import annotations

import json
from pathlib import Path

from .catalog import ExtractedData, RawCategory, RawStructure
from .types import (
    RawLinkedTile,
    RawRestriction,
    RawTile,
    RestrictionKind,
    StructureCatalog,
)

# shipplanner/catalogs/ is one level up from shipplanner/engine/catalog_io.py
_CATALOGS_DIR = Path(__file__).parent.parent / "catalogs"


def builtin_catalog_path(name: str = "builtin") -> Path:
    """Return the path to a built-in catalog snapshot.

    Args:
        name: Snapshot name without extension.

    Returns:
        Path to ``shipplanner/catalogs/{name}.json``.
    """
    return _CATALOGS_DIR / f"{name}.json"


def load_catalog(path: Path) -> StructureCatalog:
    """Load a JSON catalog snapshot and return a typed ``StructureCatalog``."""
    with open(path) as f:
        data = json.load(f)
    return StructureCatalog.from_dict(data)


def load_builtin_catalog() -> StructureCatalog:
    return load_catalog(builtin_catalog_path())


def save_catalog(catalog: StructureCatalog, path: Path) -> None:
    """Write a catalog snapshot to a JSON file.

    Creates parent directories if they don't exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(catalog.to_dict(), f, indent=2)
        f.write("\n")


def _raw_structure_from_dict(d: dict) -> RawStructure:
    size = d.get("size")
    return RawStructure(
        mid=d["mid"],
        name_tid=d["nameTid"],
        sub_cat_id=d.get("subCatId"),
        size=(size[0], size[1]) if size else None,
        debug_name=d.get("debugName"),
        data_tiles=tuple(
            RawTile(
                x=t["x"],
                y=t["y"],
                element_type=t.get("elementType"),
                walk_cost=t.get("walkCost", 1),
            )
            for t in d.get("dataTiles", [])
        ),
        linked_tiles=tuple(
            RawLinkedTile(x=t["x"], y=t["y"]) for t in d.get("linkedTiles", [])
        ),
        restrictions=tuple(
            RawRestriction(
                kind=RestrictionKind.from_token(r.get("kind")),
                x=r["x"],
                y=r["y"],
                width=r.get("width", 1),
                height=r.get("height", 1),
            )
            for r in d.get("restrictions", [])
        ),
    )


def extracted_data_from_dict(d: dict) -> ExtractedData:
    return ExtractedData(
        structures=[_raw_structure_from_dict(s) for s in d.get("structures", [])],
        texts={int(k): v for k, v in d.get("texts", {}).items()},
        categories=[
            RawCategory(
                id=c["id"],
                name_tid=c.get("nameTid", 0),
                parent_id=c.get("parentId"),
            )
            for c in d.get("categories", [])
        ],
        game_version=d.get("gameVersion"),
    )


def load_extracted_data(path: Path) -> ExtractedData:
    """Load a JSON dump of decoded game data."""
    with open(path) as f:
        return extracted_data_from_dict(json.load(f))
