"""Save and load ship projects as JSON or PNG (with embedded metadata).

A project file holds everything the undo snapshot holds plus the grid: the
placed structures, hull tiles, user layers and groups, and the active layer.
The current format is version 4. Older files are migrated on load:

  * v1 structures used ``category`` / ``item`` instead of ``categoryId`` /
    ``structureId``.
  * v3 and earlier have no user layers; they get one layer per system layer
    and every structure is filed under the layer matching its system layer.

PNG files are the rendered layout with the project JSON stored in a tEXt
chunk (key: ``shipplanner_project``), so an exported image can be loaded
back. Rendering itself lives in ``export.py``.

Used by ``cli.py`` (every project-reading or -writing command) and
``export.py``.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path

from PIL import Image
from PIL.PngImagePlugin import PngInfo

from ..engine.organization import (
    LEGACY_SYSTEM_LAYER_TO_USER_LAYER,
    LEGACY_USER_LAYERS,
)
from ..engine.reducer import LoadProject
from ..engine.rotation import normalize_rotation
from ..engine.types import (
    GridSize,
    PlacedStructure,
    PlannerState,
    Position,
    UserGroup,
    UserLayer,
)

logger = logging.getLogger(__name__)

PROJECT_VERSION = 4
METADATA_KEY = "shipplanner_project"


class ProjectFormatError(ValueError):
    """A project file is structurally invalid."""

    def __init__(self, detail: str):
        super().__init__(f"Invalid project file: {detail}")
        self.detail = detail


@dataclass(frozen=True)
class ProjectFile:
    grid: GridSize
    preset: str
    structures: tuple[PlacedStructure, ...]
    hull_tiles: frozenset[Position]
    user_layers: tuple[UserLayer, ...]
    user_groups: tuple[UserGroup, ...]
    active_layer_id: str | None = None


# -- Serialization -----------------------------------------------------------


def _structure_to_dict(s: PlacedStructure) -> dict:
    return {
        "id": s.id,
        "structureId": s.structure_id,
        "categoryId": s.category_id,
        "x": s.x,
        "y": s.y,
        "rotation": s.rotation,
        "layer": s.layer,
        "orgLayerId": s.org_layer_id,
        "orgGroupId": s.org_group_id,
    }


def _layer_to_dict(layer: UserLayer) -> dict:
    return {
        "id": layer.id,
        "name": layer.name,
        "isVisible": layer.is_visible,
        "isLocked": layer.is_locked,
        "order": layer.order,
    }


def _group_to_dict(g: UserGroup) -> dict:
    return {
        "id": g.id,
        "layerId": g.layer_id,
        "name": g.name,
        "isVisible": g.is_visible,
        "isLocked": g.is_locked,
        "order": g.order,
        "categoryId": g.category_id,
    }


def create_project_file(state: PlannerState) -> dict:
    """Build the version 4 JSON document for a planner state."""
    return {
        "version": PROJECT_VERSION,
        "gridSize": {"width": state.grid.width, "height": state.grid.height},
        "preset": state.preset_label,
        "structures": [_structure_to_dict(s) for s in state.structures],
        "hullTiles": [
            {"x": x, "y": y}
            for x, y in sorted(state.hull_tiles, key=lambda p: (p[1], p[0]))
        ],
        "userLayers": [_layer_to_dict(layer) for layer in state.user_layers],
        "userGroups": [_group_to_dict(g) for g in state.user_groups],
        "activeLayerId": state.active_layer_id,
    }


# -- Parsing -----------------------------------------------------------------


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _int_field(entry: dict, key: str, what: str) -> int:
    """Read an optional integer field; missing or null means 0."""
    value = entry.get(key)
    if value is None:
        return 0
    if not _is_number(value):
        raise ProjectFormatError(f"{what} has non-numeric {key}")
    return int(value)


def _parse_structure(index: int, raw) -> PlacedStructure:
    if not isinstance(raw, dict):
        raise ProjectFormatError("invalid structure entry")
    category_id = raw.get("categoryId") or raw.get("category")
    structure_id = raw.get("structureId") or raw.get("item")
    if not category_id or not structure_id:
        raise ProjectFormatError("structure missing category/item identifiers")

    layer = str(raw.get("layer") or "Hull")
    org_layer_id = raw.get("orgLayerId") or LEGACY_SYSTEM_LAYER_TO_USER_LAYER.get(
        layer, "layer-hull"
    )
    return PlacedStructure(
        id=str(raw.get("id") or f"migrated-{index}"),
        structure_id=str(structure_id),
        category_id=str(category_id),
        x=_int_field(raw, "x", "structure"),
        y=_int_field(raw, "y", "structure"),
        rotation=normalize_rotation(raw.get("rotation")),
        layer=layer,
        org_layer_id=org_layer_id,
        org_group_id=raw.get("orgGroupId"),
    )


def _parse_layers(raw) -> tuple[UserLayer, ...]:
    layers = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ProjectFormatError("invalid user layer entry")
        layers.append(
            UserLayer(
                id=str(entry.get("id")),
                name=str(entry.get("name")),
                is_visible=entry.get("isVisible") is not False,
                is_locked=entry.get("isLocked") is True,
                order=_int_field(entry, "order", "user layer"),
            )
        )
    return tuple(layers)


def _parse_groups(raw) -> tuple[UserGroup, ...]:
    groups = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ProjectFormatError("invalid user group entry")
        groups.append(
            UserGroup(
                id=str(entry.get("id")),
                layer_id=str(entry.get("layerId")),
                name=str(entry.get("name")),
                is_visible=entry.get("isVisible") is not False,
                is_locked=entry.get("isLocked") is True,
                order=_int_field(entry, "order", "user group"),
                category_id=entry.get("categoryId"),
            )
        )
    return tuple(groups)


def parse_project_file(data) -> ProjectFile:
    """Validate a decoded project document and migrate it to version 4.

    Raises:
        ProjectFormatError: the document is missing a required piece.
    """
    if not isinstance(data, dict):
        raise ProjectFormatError("not an object")
    version = data.get("version")
    if not _is_number(version):
        version = 1

    grid = data.get("gridSize")
    if not isinstance(grid, dict):
        raise ProjectFormatError("missing gridSize")
    if not _is_number(grid.get("width")) or not _is_number(grid.get("height")):
        raise ProjectFormatError("invalid gridSize")
    if not isinstance(data.get("preset"), str):
        raise ProjectFormatError("missing preset")
    if not isinstance(data.get("structures"), list):
        raise ProjectFormatError("structures is not an array")

    raw_layers = data.get("userLayers")
    has_layers = version >= 4 and isinstance(raw_layers, list) and raw_layers
    user_layers = _parse_layers(raw_layers) if has_layers else LEGACY_USER_LAYERS
    if not has_layers:
        logger.info("Migrating version %s project to default user layers", version)

    structures = tuple(
        _parse_structure(i, s)
        for i, s in enumerate(data["structures"])
    )

    hull_tiles = frozenset(
        (int(t["x"]), int(t["y"]))
        for t in data.get("hullTiles") or []
        if isinstance(t, dict) and _is_number(t.get("x")) and _is_number(t.get("y"))
    )

    raw_groups = data.get("userGroups")
    user_groups = (
        _parse_groups(raw_groups)
        if version >= 4 and isinstance(raw_groups, list)
        else ()
    )

    active = data.get("activeLayerId")
    return ProjectFile(
        grid=GridSize(int(grid["width"]), int(grid["height"])),
        preset=data["preset"],
        structures=structures,
        hull_tiles=hull_tiles,
        user_layers=user_layers,
        user_groups=user_groups,
        active_layer_id=active if isinstance(active, str) else None,
    )


def project_to_action(project: ProjectFile) -> LoadProject:
    return LoadProject(
        grid=project.grid,
        preset_label=project.preset,
        structures=project.structures,
        hull_tiles=project.hull_tiles,
        user_layers=project.user_layers,
        user_groups=project.user_groups,
        active_layer_id=project.active_layer_id,
    )


# -- Files -------------------------------------------------------------------


def save_project_json(state: PlannerState, path: Path | str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(create_project_file(state), f, indent=2)
        f.write("\n")


def save_project_png(img: Image.Image, project: dict, path: Path | str) -> None:
    """Save a rendered image with the project JSON embedded as a PNG tEXt chunk."""
    info = PngInfo()
    info.add_text(METADATA_KEY, json.dumps(project))
    img.save(path, pnginfo=info)


def load_project_png(path: Path | str) -> dict:
    """Load the raw project document from a PNG file's tEXt metadata.

    Raises ValueError if the PNG does not contain project metadata.
    """
    with Image.open(path) as img:
        text_data = getattr(img, "text", None)
        if not text_data or METADATA_KEY not in text_data:
            raise ValueError(
                f"PNG file does not contain project metadata (missing '{METADATA_KEY}' chunk)"
            )
        return json.loads(text_data[METADATA_KEY])


def load_project_json(path: Path | str) -> dict:
    with open(path) as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ProjectFormatError(f"malformed JSON ({e})") from e


def load_project(path: Path | str) -> ProjectFile:
    """Load and migrate a project, dispatching by extension.

    Supports .png (reads embedded metadata) and .json (reads raw JSON).
    Raises ValueError for unsupported extensions.
    """
    lower = str(path).lower()
    if lower.endswith(".png"):
        data = load_project_png(path)
    elif lower.endswith(".json"):
        data = load_project_json(path)
    else:
        raise ValueError(f"Unsupported file extension: {path}")
    return parse_project_file(data)
