"""User layers and groups: visibility, locking and placement assignment.

Every placed structure belongs to one user layer and optionally one group
inside it. A structure is *interactive* (hit-testable, erasable, deletable)
only when it is visible and neither its layer nor its group is locked. The
collision engine never reads these flags directly; it receives
``interactive_predicate(state)`` instead.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import replace

from .types import (
    DEFAULT_LAYER_ID,
    PlacedStructure,
    PlannerState,
    StructureCatalog,
    UserGroup,
    UserLayer,
)

# Every system layer lands in the single default user layer.
SYSTEM_LAYER_TO_USER_LAYER: dict[str, str] = {
    "Hull": DEFAULT_LAYER_ID,
    "Rooms": DEFAULT_LAYER_ID,
    "Systems": DEFAULT_LAYER_ID,
    "Furniture": DEFAULT_LAYER_ID,
}

# Layers given to projects saved before user layers existed, and to
# imported ships.
LEGACY_SYSTEM_LAYER_TO_USER_LAYER: dict[str, str] = {
    "Hull": "layer-hull",
    "Rooms": "layer-rooms",
    "Systems": "layer-systems",
    "Furniture": "layer-furniture",
}

LEGACY_USER_LAYERS: tuple[UserLayer, ...] = (
    UserLayer("layer-hull", "Hull", order=0),
    UserLayer("layer-rooms", "Rooms", order=1),
    UserLayer("layer-systems", "Systems", order=2),
    UserLayer("layer-furniture", "Furniture", order=3),
)


def next_id(prefix: str, existing: Iterable[str]) -> str:
    """Smallest ``{prefix}-{n}`` not already in use."""
    taken = set(existing)
    n = 1
    while f"{prefix}-{n}" in taken:
        n += 1
    return f"{prefix}-{n}"


def find_layer(state: PlannerState, layer_id: str | None) -> UserLayer | None:
    for layer in state.user_layers:
        if layer.id == layer_id:
            return layer
    return None


def find_group(state: PlannerState, group_id: str | None) -> UserGroup | None:
    for group in state.user_groups:
        if group.id == group_id:
            return group
    return None


def is_structure_visible(state: PlannerState, struct: PlacedStructure) -> bool:
    layer = find_layer(state, struct.org_layer_id)
    if layer is None or not layer.is_visible:
        return False
    if struct.org_group_id:
        group = find_group(state, struct.org_group_id)
        if group is not None and not group.is_visible:
            return False
    return True


def is_structure_interactive(
    state: PlannerState, struct: PlacedStructure
) -> bool:
    if not is_structure_visible(state, struct):
        return False
    layer = find_layer(state, struct.org_layer_id)
    if layer is not None and layer.is_locked:
        return False
    if struct.org_group_id:
        group = find_group(state, struct.org_group_id)
        if group is not None and group.is_locked:
            return False
    return True


def interactive_predicate(
    state: PlannerState,
) -> Callable[[PlacedStructure], bool]:
    return lambda struct: is_structure_interactive(state, struct)


def user_layer_for_system_layer(state: PlannerState, system_layer: str) -> str:
    wanted = SYSTEM_LAYER_TO_USER_LAYER.get(system_layer, DEFAULT_LAYER_ID)
    if find_layer(state, wanted) is not None:
        return wanted
    if state.user_layers:
        return state.user_layers[0].id
    return DEFAULT_LAYER_ID


def get_or_create_category_group(
    groups: tuple[UserGroup, ...],
    layer_id: str,
    category_id: str,
    category_name: str,
) -> tuple[tuple[UserGroup, ...], str]:
    """Return ``(groups, group_id)`` for the category's group in a layer.

    The tuple is returned unchanged when the group already exists.
    """
    for g in groups:
        if g.layer_id == layer_id and g.category_id == category_id:
            return groups, g.id
    max_order = max((g.order for g in groups if g.layer_id == layer_id), default=-1)
    group = UserGroup(
        id=next_id("group", (g.id for g in groups)),
        layer_id=layer_id,
        name=category_name,
        order=max_order + 1,
        category_id=category_id,
    )
    return groups + (group,), group.id


def assign_organization(
    state: PlannerState,
    struct: PlacedStructure,
    catalog: StructureCatalog,
) -> tuple[PlacedStructure, tuple[UserGroup, ...]]:
    """Pick the user layer and group for a newly placed structure.

    Active group first, then the active layer (with a per-category group),
    then the system layer's default user layer.
    """
    if struct.org_layer_id:
        return struct, state.user_groups

    groups = state.user_groups
    group_id: str | None = None
    active_group = find_group(state, state.active_group_id)

    if state.active_group_id and active_group is not None:
        layer_id = active_group.layer_id
        group_id = active_group.id
    else:
        if state.active_group_id:
            layer_id = user_layer_for_system_layer(state, struct.layer)
            category = None
        else:
            layer_id = state.active_layer_id or user_layer_for_system_layer(
                state, struct.layer
            )
            category = catalog.find_category(struct.category_id)
        if category is not None:
            groups, group_id = get_or_create_category_group(
                groups, layer_id, category.id, category.name
            )

    return replace(struct, org_layer_id=layer_id, org_group_id=group_id), groups
