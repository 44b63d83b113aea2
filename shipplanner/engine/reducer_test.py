"""Tests for the planner reducer and its typed actions."""

import pytest

from shipplanner.engine.catalog_io import load_builtin_catalog
from shipplanner.engine.reducer import (
    ZOOM_MAX,
    ZOOM_MIN,
    ActionKind,
    ClearAllStructures,
    ClearSelection,
    CreateGroup,
    CreateLayer,
    DeleteGroupAndItems,
    DeleteLayerAndItems,
    DeleteSelectedStructures,
    DeleteStructure,
    EraseAt,
    EraseHullRect,
    EraseHullTile,
    EraseInRect,
    LoadHullTiles,
    LoadProject,
    LoadStructures,
    LoadUserLayers,
    MoveSelectedStructures,
    MoveStructureToGroup,
    NewProject,
    PlaceHullRect,
    PlaceHullTile,
    PlaceStructure,
    Redo,
    RenameGroup,
    RenameLayer,
    ReorderGroup,
    ReorderLayer,
    RotatePreview,
    SelectStructure,
    SetActiveGroup,
    SetActiveLayer,
    SetDragging,
    SetHoveredTile,
    SetPreset,
    SetSelectedStructures,
    SetTool,
    SetZoom,
    ToggleCategoryExpanded,
    ToggleGrid,
    ToggleGroupLock,
    ToggleGroupVisible,
    ToggleLayerLock,
    ToggleLayerVisible,
    Undo,
    classify_action,
    planner_reducer,
)
from shipplanner.engine.types import (
    GridSize,
    PlacedStructure,
    PlannerState,
    UserGroup,
    UserLayer,
)

CATALOG = load_builtin_catalog()


def _storage(id, x, y):
    return PlacedStructure(
        id=id, structure_id="mid_1030", category_id="storage", x=x, y=y
    )


def _run(state, *actions):
    for action in actions:
        state = planner_reducer(state, action, CATALOG)
    return state


def _with_two_crates():
    return _run(
        PlannerState(),
        PlaceStructure(_storage("a", 0, 0)),
        PlaceStructure(_storage("b", 4, 0)),
    )


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassifyAction:
    def test_kinds(self):
        assert classify_action(Undo()) is ActionKind.UNDO
        assert classify_action(Redo()) is ActionKind.REDO
        assert classify_action(NewProject()) is ActionKind.RESET
        assert classify_action(SetZoom(10)) is ActionKind.VIEW_ONLY
        assert classify_action(SetSelectedStructures(("a",))) is ActionKind.VIEW_ONLY
        assert classify_action(PlaceHullTile(0, 0)) is ActionKind.UNDOABLE
        assert classify_action(SetActiveLayer(None)) is ActionKind.UNDOABLE

    def test_unknown_action_raises(self):
        with pytest.raises(TypeError):
            classify_action(object())


# ---------------------------------------------------------------------------
# View actions
# ---------------------------------------------------------------------------


class TestViewActions:
    def test_zoom_clamped(self):
        state = PlannerState()
        assert _run(state, SetZoom(1)).zoom == ZOOM_MIN
        assert _run(state, SetZoom(500)).zoom == ZOOM_MAX
        assert _run(state, SetZoom(20)).zoom == 20

    def test_toggle_grid(self):
        state = _run(PlannerState(), ToggleGrid())
        assert state.show_grid is False

    def test_select_structure_switches_to_place(self):
        state = _run(
            PlannerState(preview_rotation=180),
            SetTool("erase"),
            SelectStructure("storage", "mid_1030"),
        )
        assert state.tool == "place"
        assert state.preview_rotation == 0
        assert state.selection.structure_id == "mid_1030"

    def test_clear_selection_clears_multi_selection(self):
        state = _run(
            PlannerState(),
            SelectStructure("storage", "mid_1030"),
            SetSelectedStructures(("a", "b")),
            ClearSelection(),
        )
        assert state.selection is None
        assert state.selected_structure_ids == frozenset()

    def test_rotate_preview(self):
        state = _run(PlannerState(), RotatePreview("cw"), RotatePreview("cw"))
        assert state.preview_rotation == 180
        assert _run(state, RotatePreview("ccw")).preview_rotation == 90

    def test_toggle_category_expanded(self):
        state = _run(PlannerState(), ToggleCategoryExpanded("hull"))
        assert "hull" not in state.expanded_categories
        state = _run(state, ToggleCategoryExpanded("power"))
        assert state.expanded_categories == {"power"}

    def test_hover_and_drag(self):
        state = _run(PlannerState(), SetHoveredTile((3, 4)), SetDragging(True))
        assert state.hovered_tile == (3, 4)
        assert state.is_dragging


# ---------------------------------------------------------------------------
# Structures
# ---------------------------------------------------------------------------


class TestStructureActions:
    def test_place_and_reject(self):
        state = _with_two_crates()
        assert [s.id for s in state.structures] == ["a", "b"]
        assert planner_reducer(
            state, PlaceStructure(_storage("c", 1, 1)), CATALOG
        ) is state

    def test_move_uses_current_selection(self):
        state = _run(
            _with_two_crates(),
            SetSelectedStructures(("a",)),
            MoveSelectedStructures(0, 5),
        )
        assert [(s.x, s.y) for s in state.structures] == [(0, 5), (4, 0)]

    def test_move_without_selection_is_noop(self):
        state = _with_two_crates()
        assert planner_reducer(state, MoveSelectedStructures(1, 1), CATALOG) is state

    def test_erase_at(self):
        state = _run(_with_two_crates(), EraseAt(5, 1))
        assert [s.id for s in state.structures] == ["a"]

    def test_erase_in_rect(self):
        state = _run(_with_two_crates(), EraseInRect(0, 0, 10, 10))
        assert state.structures == ()

    def test_delete_structure(self):
        state = _run(_with_two_crates(), DeleteStructure("a"))
        assert [s.id for s in state.structures] == ["b"]

    def test_delete_selected(self):
        state = _run(
            _with_two_crates(),
            SetSelectedStructures(("a", "b")),
            DeleteSelectedStructures(),
        )
        assert state.structures == ()
        assert state.selected_structure_ids == frozenset()

    def test_locked_layer_blocks_erase(self):
        state = _run(_with_two_crates(), ToggleLayerLock("layer-default"))
        assert planner_reducer(state, EraseAt(0, 0), CATALOG) is state
        assert planner_reducer(state, DeleteStructure("a"), CATALOG) is state

    def test_hidden_group_blocks_erase(self):
        state = _with_two_crates()
        group_id = state.structures[0].org_group_id
        state = _run(state, ToggleGroupVisible(group_id))
        assert planner_reducer(state, EraseInRect(0, 0, 53, 53), CATALOG) is state

    def test_clear_all_keeps_layers(self):
        state = _run(
            _with_two_crates(),
            CreateLayer("Extra"),
            PlaceHullTile(10, 10),
            ClearAllStructures(),
        )
        assert state.structures == ()
        assert state.hull_tiles == frozenset()
        assert state.user_groups == ()
        assert [layer.id for layer in state.user_layers] == [
            "layer-default",
            "layer-1",
        ]

    def test_clear_all_on_empty_is_noop(self):
        state = PlannerState()
        assert planner_reducer(state, ClearAllStructures(), CATALOG) is state


# ---------------------------------------------------------------------------
# Hull tiles
# ---------------------------------------------------------------------------


class TestHullActions:
    def test_place_tile_in_bounds_only(self):
        state = _run(PlannerState(), PlaceHullTile(0, 0))
        assert state.hull_tiles == {(0, 0)}
        assert planner_reducer(state, PlaceHullTile(54, 0), CATALOG) is state
        assert planner_reducer(state, PlaceHullTile(0, 0), CATALOG) is state

    def test_rect_clamped(self):
        state = _run(PlannerState(), PlaceHullRect(52, 52, 60, 60))
        assert state.hull_tiles == {(52, 52), (53, 52), (52, 53), (53, 53)}

    def test_erase(self):
        state = _run(
            PlannerState(),
            PlaceHullRect(0, 0, 2, 0),
            EraseHullTile(1, 0),
        )
        assert state.hull_tiles == {(0, 0), (2, 0)}
        state = _run(state, EraseHullRect(0, 0, 5, 5))
        assert state.hull_tiles == frozenset()

    def test_erase_missing_is_noop(self):
        state = PlannerState()
        assert planner_reducer(state, EraseHullTile(1, 1), CATALOG) is state
        assert planner_reducer(state, EraseHullRect(0, 0, 3, 3), CATALOG) is state


# ---------------------------------------------------------------------------
# Layers and groups
# ---------------------------------------------------------------------------


class TestLayerActions:
    def test_create_layer_becomes_active(self):
        state = _run(PlannerState(active_group_id="group-9"), CreateLayer("Deck 2"))
        layer = state.user_layers[-1]
        assert (layer.id, layer.name, layer.order) == ("layer-1", "Deck 2", 1)
        assert state.active_layer_id == "layer-1"
        assert state.active_group_id is None

    def test_rename_toggle_reorder(self):
        state = _run(
            PlannerState(),
            RenameLayer("layer-default", "Main"),
            ToggleLayerVisible("layer-default"),
            ReorderLayer("layer-default", 5),
        )
        layer = state.user_layers[0]
        assert (layer.name, layer.is_visible, layer.order) == ("Main", False, 5)

    def test_unknown_layer_is_noop(self):
        state = PlannerState()
        for action in (
            RenameLayer("nope", "x"),
            ToggleLayerVisible("nope"),
            ToggleLayerLock("nope"),
            DeleteLayerAndItems("nope"),
            ReorderLayer("nope", 1),
        ):
            assert planner_reducer(state, action, CATALOG) is state

    def test_delete_layer_removes_items(self):
        state = _run(
            _with_two_crates(),
            CreateLayer("Deck 2"),
            PlaceStructure(_storage("c", 10, 10)),
        )
        assert state.structures[-1].org_layer_id == "layer-1"
        state = _run(state, DeleteLayerAndItems("layer-1"))
        assert [s.id for s in state.structures] == ["a", "b"]
        assert all(g.layer_id != "layer-1" for g in state.user_groups)
        assert state.active_layer_id == "layer-default"

    def test_locked_layer_cannot_be_deleted(self):
        state = _run(_with_two_crates(), ToggleLayerLock("layer-default"))
        assert planner_reducer(
            state, DeleteLayerAndItems("layer-default"), CATALOG
        ) is state

    def test_set_active_layer_clears_group(self):
        state = _run(
            PlannerState(),
            CreateGroup("layer-default", "Engines"),
            SetActiveLayer("layer-default"),
        )
        assert state.active_group_id is None
        assert planner_reducer(
            state, SetActiveLayer("layer-default"), CATALOG
        ) is state


class TestGroupActions:
    def test_create_group_sets_active(self):
        state = _run(PlannerState(), CreateLayer("Deck 2"))
        state = _run(state, CreateGroup("layer-default", "Engines", "power"))
        group = state.user_groups[0]
        assert (group.id, group.layer_id, group.category_id) == (
            "group-1",
            "layer-default",
            "power",
        )
        assert state.active_layer_id == "layer-default"
        assert state.active_group_id == "group-1"

    def test_placement_goes_into_active_group(self):
        state = _run(
            PlannerState(),
            CreateGroup("layer-default", "Cargo"),
            PlaceStructure(_storage("a", 0, 0)),
        )
        assert state.structures[0].org_group_id == "group-1"
        assert len(state.user_groups) == 1

    def test_set_active_group_selects_parent_layer(self):
        state = _run(
            PlannerState(),
            CreateLayer("Deck 2"),
            CreateGroup("layer-1", "Engines"),
            SetActiveLayer("layer-default"),
            SetActiveGroup("group-1"),
        )
        assert state.active_layer_id == "layer-1"
        assert state.active_group_id == "group-1"

    def test_rename_toggle_reorder(self):
        state = _run(
            PlannerState(),
            CreateGroup("layer-default", "G"),
            RenameGroup("group-1", "Engines"),
            ToggleGroupLock("group-1"),
            ReorderGroup("group-1", 3),
        )
        group = state.user_groups[0]
        assert (group.name, group.is_locked, group.order) == ("Engines", True, 3)

    def test_delete_group_and_items(self):
        state = _run(
            _with_two_crates(),
            CreateGroup("layer-default", "Extra"),
            PlaceStructure(_storage("c", 10, 10)),
        )
        extra_id = state.active_group_id
        state = _run(state, DeleteGroupAndItems(extra_id))
        assert [s.id for s in state.structures] == ["a", "b"]
        assert state.active_group_id is None
        assert all(g.id != extra_id for g in state.user_groups)

    def test_move_structure_to_group(self):
        state = _run(
            _with_two_crates(),
            CreateLayer("Deck 2"),
            MoveStructureToGroup("a", "layer-1", None),
        )
        moved = state.structures[0]
        assert (moved.org_layer_id, moved.org_group_id) == ("layer-1", None)
        assert planner_reducer(
            state, MoveStructureToGroup("zzz", "layer-1", None), CATALOG
        ) is state


# ---------------------------------------------------------------------------
# Reset actions
# ---------------------------------------------------------------------------


class TestResetActions:
    def test_new_project_keeps_view(self):
        state = _run(
            _with_two_crates(),
            SetPreset("3x1", GridSize(81, 27)),
            SetZoom(30),
            ToggleGrid(),
            CreateLayer("Deck 2"),
            NewProject(),
        )
        assert state.structures == ()
        assert state.grid == GridSize(81, 27)
        assert state.preset_label == "3x1"
        assert state.zoom == 30
        assert state.show_grid is False
        assert [layer.id for layer in state.user_layers] == ["layer-default"]
        assert state.active_layer_id == "layer-default"

    def test_preset_shrinking_under_structure_rejected(self):
        state = _run(PlannerState(), PlaceStructure(_storage("a", 40, 40)))
        after = planner_reducer(state, SetPreset("1x1", GridSize(27, 27)), CATALOG)
        assert after is state
        assert after.grid == GridSize(54, 54)

    def test_preset_shrinking_under_hull_rejected(self):
        state = _run(PlannerState(), PlaceHullTile(30, 2))
        after = planner_reducer(state, SetPreset("1x1", GridSize(27, 27)), CATALOG)
        assert after is state

    def test_preset_that_still_fits_applies(self):
        state = _run(
            PlannerState(),
            PlaceStructure(_storage("a", 25, 25)),
            SetPreset("1x1", GridSize(27, 27)),
        )
        assert state.grid == GridSize(27, 27)
        assert state.preset_label == "1x1"
        assert [s.id for s in state.structures] == ["a"]

    def test_load_structures_and_hull(self):
        state = _run(
            PlannerState(selected_structure_ids=frozenset({"x"})),
            LoadStructures((_storage("a", 0, 0),)),
            LoadHullTiles(((1, 1), (2, 2))),
        )
        assert [s.id for s in state.structures] == ["a"]
        assert state.hull_tiles == {(1, 1), (2, 2)}
        assert state.selected_structure_ids == frozenset()

    def test_load_user_layers_picks_first(self):
        layers = (UserLayer("l-a", "A"), UserLayer("l-b", "B", order=1))
        groups = (UserGroup("g-1", "l-b", "G"),)
        state = _run(PlannerState(), LoadUserLayers(layers, groups))
        assert state.user_layers == layers
        assert state.user_groups == groups
        assert state.active_layer_id == "l-a"

    def test_load_project_merges_given_fields(self):
        state = _run(
            PlannerState(zoom=40),
            LoadProject(
                grid=GridSize(27, 27),
                preset_label="1x1",
                structures=(_storage("a", 0, 0),),
                active_layer_id="missing",
            ),
        )
        assert state.grid == GridSize(27, 27)
        assert state.zoom == 40
        assert len(state.structures) == 1
        # Unknown active layer falls back to the first layer.
        assert state.active_layer_id == "layer-default"
