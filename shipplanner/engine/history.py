"""Undo/redo around the planner reducer.

``history_reducer`` wraps ``planner_reducer`` and keeps two stacks of
``UndoableSnapshot`` values: the model fields an edit can change
(structures, hull tiles, user layers and groups, the active layer and
group). View fields such as zoom or the hovered tile are never recorded, so
undo doesn't scroll the canvas around.

How an action is treated depends on ``classify_action``:

  * reset (new project, load, preset change): apply, clear both stacks.
  * view-only: apply, leave both stacks alone.
  * undoable: apply; if any snapshot field changed (compared by identity)
    push the previous snapshot, cap ``past`` at ``MAX_HISTORY`` and clear
    ``future``.
  * undo / redo: swap the current snapshot with the nearest one on the
    other stack. Both clear the multi-selection.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .reducer import ActionKind, classify_action, planner_reducer
from .types import (
    PlacedStructure,
    PlannerState,
    Position,
    StructureCatalog,
    UserGroup,
    UserLayer,
)

MAX_HISTORY = 50


@dataclass(frozen=True)
class UndoableSnapshot:
    structures: tuple[PlacedStructure, ...]
    hull_tiles: frozenset[Position]
    user_layers: tuple[UserLayer, ...]
    user_groups: tuple[UserGroup, ...]
    active_layer_id: str | None
    active_group_id: str | None


@dataclass(frozen=True)
class HistoryState:
    state: PlannerState
    past: tuple[UndoableSnapshot, ...] = ()
    future: tuple[UndoableSnapshot, ...] = ()

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)


def create_snapshot(state: PlannerState) -> UndoableSnapshot:
    return UndoableSnapshot(
        structures=state.structures,
        hull_tiles=state.hull_tiles,
        user_layers=state.user_layers,
        user_groups=state.user_groups,
        active_layer_id=state.active_layer_id,
        active_group_id=state.active_group_id,
    )


def apply_snapshot(state: PlannerState, snapshot: UndoableSnapshot) -> PlannerState:
    return replace(
        state,
        structures=snapshot.structures,
        hull_tiles=snapshot.hull_tiles,
        user_layers=snapshot.user_layers,
        user_groups=snapshot.user_groups,
        active_layer_id=snapshot.active_layer_id,
        active_group_id=snapshot.active_group_id,
        selected_structure_ids=frozenset(),
    )


def has_undoable_change(before: PlannerState, after: PlannerState) -> bool:
    """True when any snapshot field of ``after`` is a different object."""
    return (
        before.structures is not after.structures
        or before.hull_tiles is not after.hull_tiles
        or before.user_layers is not after.user_layers
        or before.user_groups is not after.user_groups
        or before.active_layer_id != after.active_layer_id
        or before.active_group_id != after.active_group_id
    )


def create_initial_history_state(
    state: PlannerState | None = None,
) -> HistoryState:
    return HistoryState(state=state if state is not None else PlannerState())


def _undo(history: HistoryState) -> HistoryState:
    if not history.past:
        return history
    previous = history.past[-1]
    return HistoryState(
        state=apply_snapshot(history.state, previous),
        past=history.past[:-1],
        future=(create_snapshot(history.state),) + history.future,
    )


def _redo(history: HistoryState) -> HistoryState:
    if not history.future:
        return history
    following = history.future[0]
    return HistoryState(
        state=apply_snapshot(history.state, following),
        past=history.past + (create_snapshot(history.state),),
        future=history.future[1:],
    )


def history_reducer(
    history: HistoryState, action: object, catalog: StructureCatalog
) -> HistoryState:
    """Apply ``action`` and maintain the undo/redo stacks.

    Returns ``history`` itself when the action changed nothing.
    """
    kind = classify_action(action)
    if kind is ActionKind.UNDO:
        return _undo(history)
    if kind is ActionKind.REDO:
        return _redo(history)

    new_state = planner_reducer(history.state, action, catalog)

    if new_state is history.state:
        return history
    if kind is ActionKind.RESET:
        return HistoryState(state=new_state)
    if kind is ActionKind.VIEW_ONLY:
        return replace(history, state=new_state)

    if not has_undoable_change(history.state, new_state):
        return replace(history, state=new_state)
    past = history.past + (create_snapshot(history.state),)
    if len(past) > MAX_HISTORY:
        past = past[-MAX_HISTORY:]
    return HistoryState(state=new_state, past=past, future=())
