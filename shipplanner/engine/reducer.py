"""Typed planner commands and the reducer that applies them.

Every user interaction is an immutable action object. ``planner_reducer``
maps ``(state, action, catalog)`` to the next state and is total: an action
that can't apply (a colliding placement, an unknown id, an empty rectangle)
returns the *same* state object. ``history.py`` relies on that identity to
decide whether anything happened, and on ``classify_action`` below to decide
whether it belongs in the undo stack.

The catalog is passed in on every call rather than stored on the state; it
is read-only and shared by every placed structure.

Structure commands delegate to ``collision.py``; layer and group bookkeeping
uses ``organization.py``. Ids for new layers and groups are derived from the
ids already present, so replaying the same actions yields the same ids.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

from .collision import (
    clamp_rect,
    delete_selected,
    delete_structures,
    erase_at,
    erase_in_rect,
    layout_fits_grid,
    move_selected,
    place_structure,
)
from .hull import rect_tiles
from .organization import find_group, interactive_predicate, next_id
from .rotation import rotate_by_90
from .types import (
    DEFAULT_USER_LAYERS,
    GridSize,
    PlacedStructure,
    PlannerState,
    Position,
    StructureCatalog,
    StructureSelection,
    UserGroup,
    UserLayer,
)

ZOOM_MIN = 6
ZOOM_MAX = 72


# -- View actions ------------------------------------------------------------


@dataclass(frozen=True)
class SetZoom:
    zoom: int


@dataclass(frozen=True)
class ToggleGrid:
    pass


@dataclass(frozen=True)
class SetTool:
    tool: str  # "select", "place", "erase" or "hull"


@dataclass(frozen=True)
class SelectStructure:
    category_id: str
    structure_id: str


@dataclass(frozen=True)
class ClearSelection:
    pass


@dataclass(frozen=True)
class RotatePreview:
    direction: str  # "cw" or "ccw"


@dataclass(frozen=True)
class ToggleCategoryExpanded:
    category_id: str


@dataclass(frozen=True)
class ToggleLayerExpanded:
    layer_id: str


@dataclass(frozen=True)
class ToggleGroupExpanded:
    group_id: str


@dataclass(frozen=True)
class SetHoveredTile:
    tile: Position | None


@dataclass(frozen=True)
class SetDragging:
    is_dragging: bool


@dataclass(frozen=True)
class SetSelectedStructures:
    structure_ids: tuple[str, ...]


@dataclass(frozen=True)
class ClearSelectedStructures:
    pass


# -- Reset actions -----------------------------------------------------------


@dataclass(frozen=True)
class NewProject:
    pass


@dataclass(frozen=True)
class SetPreset:
    preset_label: str
    grid: GridSize


@dataclass(frozen=True)
class LoadStructures:
    structures: tuple[PlacedStructure, ...]


@dataclass(frozen=True)
class LoadHullTiles:
    tiles: tuple[Position, ...]


@dataclass(frozen=True)
class LoadUserLayers:
    layers: tuple[UserLayer, ...]
    groups: tuple[UserGroup, ...] = ()
    active_layer_id: str | None = None


@dataclass(frozen=True)
class LoadProject:
    """Replace the model with a loaded project; ``None`` keeps a field."""

    grid: GridSize | None = None
    preset_label: str | None = None
    structures: tuple[PlacedStructure, ...] | None = None
    hull_tiles: frozenset[Position] | None = None
    user_layers: tuple[UserLayer, ...] | None = None
    user_groups: tuple[UserGroup, ...] | None = None
    active_layer_id: str | None = None


# -- Model actions -----------------------------------------------------------


@dataclass(frozen=True)
class PlaceStructure:
    structure: PlacedStructure


@dataclass(frozen=True)
class MoveSelectedStructures:
    dx: int
    dy: int


@dataclass(frozen=True)
class EraseAt:
    x: int
    y: int


@dataclass(frozen=True)
class EraseInRect:
    x1: int
    y1: int
    x2: int
    y2: int


@dataclass(frozen=True)
class DeleteStructure:
    structure_id: str


@dataclass(frozen=True)
class DeleteStructures:
    structure_ids: tuple[str, ...]


@dataclass(frozen=True)
class DeleteSelectedStructures:
    pass


@dataclass(frozen=True)
class ClearAllStructures:
    pass


@dataclass(frozen=True)
class PlaceHullTile:
    x: int
    y: int


@dataclass(frozen=True)
class PlaceHullRect:
    x1: int
    y1: int
    x2: int
    y2: int


@dataclass(frozen=True)
class EraseHullTile:
    x: int
    y: int


@dataclass(frozen=True)
class EraseHullRect:
    x1: int
    y1: int
    x2: int
    y2: int


@dataclass(frozen=True)
class CreateLayer:
    name: str


@dataclass(frozen=True)
class RenameLayer:
    layer_id: str
    name: str


@dataclass(frozen=True)
class ToggleLayerVisible:
    layer_id: str


@dataclass(frozen=True)
class ToggleLayerLock:
    layer_id: str


@dataclass(frozen=True)
class DeleteLayerAndItems:
    layer_id: str


@dataclass(frozen=True)
class SetActiveLayer:
    layer_id: str | None


@dataclass(frozen=True)
class ReorderLayer:
    layer_id: str
    new_order: int


@dataclass(frozen=True)
class CreateGroup:
    layer_id: str
    name: str
    category_id: str | None = None


@dataclass(frozen=True)
class RenameGroup:
    group_id: str
    name: str


@dataclass(frozen=True)
class ToggleGroupVisible:
    group_id: str


@dataclass(frozen=True)
class ToggleGroupLock:
    group_id: str


@dataclass(frozen=True)
class DeleteGroupAndItems:
    group_id: str


@dataclass(frozen=True)
class SetActiveGroup:
    group_id: str | None


@dataclass(frozen=True)
class ReorderGroup:
    group_id: str
    new_order: int


@dataclass(frozen=True)
class MoveStructureToGroup:
    structure_id: str
    layer_id: str
    group_id: str | None


# -- History actions (handled by history.py) ---------------------------------


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Redo:
    pass


class ActionKind(enum.Enum):
    RESET = "reset"
    VIEW_ONLY = "view_only"
    UNDOABLE = "undoable"
    UNDO = "undo"
    REDO = "redo"


RESET_ACTIONS: frozenset[type] = frozenset(
    {NewProject, SetPreset, LoadStructures, LoadHullTiles, LoadUserLayers, LoadProject}
)

VIEW_ONLY_ACTIONS: frozenset[type] = frozenset(
    {
        SetZoom,
        ToggleGrid,
        SetTool,
        SelectStructure,
        ClearSelection,
        RotatePreview,
        ToggleCategoryExpanded,
        ToggleLayerExpanded,
        ToggleGroupExpanded,
        SetHoveredTile,
        SetDragging,
        SetSelectedStructures,
        ClearSelectedStructures,
    }
)

UNDOABLE_ACTIONS: frozenset[type] = frozenset(
    {
        PlaceStructure,
        MoveSelectedStructures,
        EraseAt,
        EraseInRect,
        DeleteStructure,
        DeleteStructures,
        DeleteSelectedStructures,
        ClearAllStructures,
        PlaceHullTile,
        PlaceHullRect,
        EraseHullTile,
        EraseHullRect,
        CreateLayer,
        RenameLayer,
        ToggleLayerVisible,
        ToggleLayerLock,
        DeleteLayerAndItems,
        SetActiveLayer,
        ReorderLayer,
        CreateGroup,
        RenameGroup,
        ToggleGroupVisible,
        ToggleGroupLock,
        DeleteGroupAndItems,
        SetActiveGroup,
        ReorderGroup,
        MoveStructureToGroup,
    }
)


def classify_action(action: object) -> ActionKind:
    kind = type(action)
    if kind is Undo:
        return ActionKind.UNDO
    if kind is Redo:
        return ActionKind.REDO
    if kind in RESET_ACTIONS:
        return ActionKind.RESET
    if kind in VIEW_ONLY_ACTIONS:
        return ActionKind.VIEW_ONLY
    if kind in UNDOABLE_ACTIONS:
        return ActionKind.UNDOABLE
    raise TypeError(f"Unknown planner action: {kind.__name__}")


# -- Reducer -----------------------------------------------------------------


def _toggle(ids: frozenset[str], key: str) -> frozenset[str]:
    return ids - {key} if key in ids else ids | {key}


def _update_layer(state: PlannerState, layer_id: str, **changes) -> PlannerState:
    if not any(layer.id == layer_id for layer in state.user_layers):
        return state
    return replace(
        state,
        user_layers=tuple(
            replace(layer, **changes) if layer.id == layer_id else layer
            for layer in state.user_layers
        ),
    )


def _update_group(state: PlannerState, group_id: str, **changes) -> PlannerState:
    if find_group(state, group_id) is None:
        return state
    return replace(
        state,
        user_groups=tuple(
            replace(g, **changes) if g.id == group_id else g
            for g in state.user_groups
        ),
    )


def _reduce_view(state: PlannerState, action: object) -> PlannerState:
    if isinstance(action, SetZoom):
        return replace(state, zoom=max(ZOOM_MIN, min(ZOOM_MAX, action.zoom)))
    if isinstance(action, ToggleGrid):
        return replace(state, show_grid=not state.show_grid)
    if isinstance(action, SetTool):
        return replace(state, tool=action.tool)
    if isinstance(action, SelectStructure):
        return replace(
            state,
            selection=StructureSelection(action.category_id, action.structure_id),
            tool="place",
            preview_rotation=0,
        )
    if isinstance(action, ClearSelection):
        return replace(state, selection=None, selected_structure_ids=frozenset())
    if isinstance(action, RotatePreview):
        return replace(
            state,
            preview_rotation=rotate_by_90(state.preview_rotation, action.direction),
        )
    if isinstance(action, ToggleCategoryExpanded):
        return replace(
            state,
            expanded_categories=_toggle(
                state.expanded_categories, action.category_id
            ),
        )
    if isinstance(action, ToggleLayerExpanded):
        return replace(
            state,
            expanded_layer_ids=_toggle(state.expanded_layer_ids, action.layer_id),
        )
    if isinstance(action, ToggleGroupExpanded):
        return replace(
            state,
            expanded_group_ids=_toggle(state.expanded_group_ids, action.group_id),
        )
    if isinstance(action, SetHoveredTile):
        return replace(state, hovered_tile=action.tile)
    if isinstance(action, SetDragging):
        return replace(state, is_dragging=action.is_dragging)
    if isinstance(action, SetSelectedStructures):
        return replace(
            state, selected_structure_ids=frozenset(action.structure_ids)
        )
    if isinstance(action, ClearSelectedStructures):
        return replace(state, selected_structure_ids=frozenset())
    return state


def _reduce_reset(
    state: PlannerState, action: object, catalog: StructureCatalog
) -> PlannerState:
    if isinstance(action, SetPreset):
        # A smaller grid may not cut off anything already placed.
        if not layout_fits_grid(
            action.grid, state.structures, state.hull_tiles, catalog
        ):
            return state
        return replace(state, preset_label=action.preset_label, grid=action.grid)
    if isinstance(action, LoadStructures):
        return replace(
            state,
            structures=tuple(action.structures),
            selected_structure_ids=frozenset(),
        )
    if isinstance(action, LoadHullTiles):
        return replace(state, hull_tiles=frozenset(action.tiles))
    if isinstance(action, LoadUserLayers):
        active = action.active_layer_id
        if active is None and action.layers:
            active = action.layers[0].id
        return replace(
            state,
            user_layers=tuple(action.layers),
            user_groups=tuple(action.groups),
            active_layer_id=active,
            active_group_id=None,
        )
    if isinstance(action, LoadProject):
        changes: dict = {"selected_structure_ids": frozenset(), "active_group_id": None}
        for name in (
            "grid",
            "preset_label",
            "structures",
            "hull_tiles",
            "user_layers",
            "user_groups",
        ):
            value = getattr(action, name)
            if value is not None:
                changes[name] = value
        layers = changes.get("user_layers", state.user_layers)
        active = action.active_layer_id
        if active is None or not any(layer.id == active for layer in layers):
            active = layers[0].id if layers else None
        changes["active_layer_id"] = active
        return replace(state, **changes)
    if isinstance(action, NewProject):
        # Keep the canvas and zoom so the view doesn't jump.
        return PlannerState(
            grid=state.grid,
            preset_label=state.preset_label,
            zoom=state.zoom,
            show_grid=state.show_grid,
            user_layers=DEFAULT_USER_LAYERS,
        )
    return state


def _reduce_layers(state: PlannerState, action: object) -> PlannerState:
    if isinstance(action, CreateLayer):
        max_order = max((layer.order for layer in state.user_layers), default=-1)
        layer = UserLayer(
            id=next_id("layer", (layer.id for layer in state.user_layers)),
            name=action.name,
            order=max_order + 1,
        )
        return replace(
            state,
            user_layers=state.user_layers + (layer,),
            active_layer_id=layer.id,
            active_group_id=None,
        )
    if isinstance(action, RenameLayer):
        return _update_layer(state, action.layer_id, name=action.name)
    if isinstance(action, ToggleLayerVisible):
        for layer in state.user_layers:
            if layer.id == action.layer_id:
                return _update_layer(
                    state, action.layer_id, is_visible=not layer.is_visible
                )
        return state
    if isinstance(action, ToggleLayerLock):
        for layer in state.user_layers:
            if layer.id == action.layer_id:
                return _update_layer(
                    state, action.layer_id, is_locked=not layer.is_locked
                )
        return state
    if isinstance(action, DeleteLayerAndItems):
        target = next(
            (layer for layer in state.user_layers if layer.id == action.layer_id),
            None,
        )
        if target is None or target.is_locked:
            return state
        layers = tuple(
            layer for layer in state.user_layers if layer.id != action.layer_id
        )
        active_layer = state.active_layer_id
        active_group = state.active_group_id
        if active_layer == action.layer_id:
            active_layer = layers[0].id if layers else None
            active_group = None
        removed = {
            s.id for s in state.structures if s.org_layer_id == action.layer_id
        }
        return replace(
            state,
            user_layers=layers,
            user_groups=tuple(
                g for g in state.user_groups if g.layer_id != action.layer_id
            ),
            structures=tuple(s for s in state.structures if s.id not in removed),
            selected_structure_ids=state.selected_structure_ids - removed,
            active_layer_id=active_layer,
            active_group_id=active_group,
        )
    if isinstance(action, SetActiveLayer):
        if (
            action.layer_id == state.active_layer_id
            and state.active_group_id is None
        ):
            return state
        return replace(state, active_layer_id=action.layer_id, active_group_id=None)
    if isinstance(action, ReorderLayer):
        return _update_layer(state, action.layer_id, order=action.new_order)
    return state


def _reduce_groups(state: PlannerState, action: object) -> PlannerState:
    if isinstance(action, CreateGroup):
        max_order = max(
            (g.order for g in state.user_groups if g.layer_id == action.layer_id),
            default=-1,
        )
        group = UserGroup(
            id=next_id("group", (g.id for g in state.user_groups)),
            layer_id=action.layer_id,
            name=action.name,
            order=max_order + 1,
            category_id=action.category_id,
        )
        return replace(
            state,
            user_groups=state.user_groups + (group,),
            active_layer_id=action.layer_id,
            active_group_id=group.id,
        )
    if isinstance(action, RenameGroup):
        return _update_group(state, action.group_id, name=action.name)
    if isinstance(action, ToggleGroupVisible):
        group = find_group(state, action.group_id)
        if group is None:
            return state
        return _update_group(state, group.id, is_visible=not group.is_visible)
    if isinstance(action, ToggleGroupLock):
        group = find_group(state, action.group_id)
        if group is None:
            return state
        return _update_group(state, group.id, is_locked=not group.is_locked)
    if isinstance(action, DeleteGroupAndItems):
        if find_group(state, action.group_id) is None:
            return state
        removed = {
            s.id for s in state.structures if s.org_group_id == action.group_id
        }
        return replace(
            state,
            user_groups=tuple(
                g for g in state.user_groups if g.id != action.group_id
            ),
            structures=tuple(s for s in state.structures if s.id not in removed),
            selected_structure_ids=state.selected_structure_ids - removed,
            active_group_id=(
                None
                if state.active_group_id == action.group_id
                else state.active_group_id
            ),
        )
    if isinstance(action, SetActiveGroup):
        group = find_group(state, action.group_id)
        layer_id = group.layer_id if group is not None else state.active_layer_id
        if (
            action.group_id == state.active_group_id
            and layer_id == state.active_layer_id
        ):
            return state
        return replace(
            state, active_group_id=action.group_id, active_layer_id=layer_id
        )
    if isinstance(action, ReorderGroup):
        return _update_group(state, action.group_id, order=action.new_order)
    if isinstance(action, MoveStructureToGroup):
        if not any(s.id == action.structure_id for s in state.structures):
            return state
        return replace(
            state,
            structures=tuple(
                replace(s, org_layer_id=action.layer_id, org_group_id=action.group_id)
                if s.id == action.structure_id
                else s
                for s in state.structures
            ),
        )
    return state


def _reduce_hull(state: PlannerState, action: object) -> PlannerState:
    if isinstance(action, PlaceHullTile):
        pos = (action.x, action.y)
        if not (0 <= action.x < state.grid.width and 0 <= action.y < state.grid.height):
            return state
        if pos in state.hull_tiles:
            return state
        return replace(state, hull_tiles=state.hull_tiles | {pos})
    if isinstance(action, EraseHullTile):
        pos = (action.x, action.y)
        if pos not in state.hull_tiles:
            return state
        return replace(state, hull_tiles=state.hull_tiles - {pos})
    if isinstance(action, (PlaceHullRect, EraseHullRect)):
        rect = clamp_rect(state.grid, action.x1, action.y1, action.x2, action.y2)
        if rect is None:
            return state
        tiles = set(rect_tiles(*rect))
        if isinstance(action, PlaceHullRect):
            if tiles <= state.hull_tiles:
                return state
            return replace(state, hull_tiles=state.hull_tiles | tiles)
        if state.hull_tiles.isdisjoint(tiles):
            return state
        return replace(state, hull_tiles=state.hull_tiles - tiles)
    return state


def _reduce_structures(
    state: PlannerState, action: object, catalog: StructureCatalog
) -> PlannerState:
    if isinstance(action, PlaceStructure):
        return place_structure(state, catalog, action.structure)
    if isinstance(action, MoveSelectedStructures):
        return move_selected(
            state, catalog, state.selected_structure_ids, action.dx, action.dy
        )
    if isinstance(action, EraseAt):
        return erase_at(
            state, catalog, action.x, action.y, interactive_predicate(state)
        )
    if isinstance(action, EraseInRect):
        return erase_in_rect(
            state,
            catalog,
            action.x1,
            action.y1,
            action.x2,
            action.y2,
            interactive_predicate(state),
        )
    if isinstance(action, DeleteStructure):
        return delete_structures(
            state, {action.structure_id}, interactive_predicate(state)
        )
    if isinstance(action, DeleteStructures):
        return delete_structures(
            state, set(action.structure_ids), interactive_predicate(state)
        )
    if isinstance(action, DeleteSelectedStructures):
        return delete_selected(state, interactive_predicate(state))
    if isinstance(action, ClearAllStructures):
        if not state.structures and not state.hull_tiles and not state.user_groups:
            return state
        # Groups are reset too; layers stay.
        return replace(
            state,
            structures=(),
            hull_tiles=frozenset(),
            user_groups=(),
            active_group_id=None,
            selected_structure_ids=frozenset(),
        )
    return state


def planner_reducer(
    state: PlannerState, action: object, catalog: StructureCatalog
) -> PlannerState:
    """Apply one action. Returns ``state`` itself when nothing changed."""
    kind = classify_action(action)
    if kind is ActionKind.VIEW_ONLY:
        return _reduce_view(state, action)
    if kind is ActionKind.RESET:
        return _reduce_reset(state, action, catalog)
    if kind is not ActionKind.UNDOABLE:
        return state
    for step in (_reduce_layers, _reduce_groups, _reduce_hull):
        new_state = step(state, action)
        if new_state is not state:
            return new_state
    return _reduce_structures(state, action, catalog)
