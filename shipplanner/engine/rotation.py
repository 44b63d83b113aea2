"""Quarter-turn rotation of tile positions and footprint sizes.

Rotations are clockwise in a y-down grid. A structure's rotated geometry is
always computed once, from its canonical unrotated layout and that layout's
own width and height; rotated states are never composed from each other.
"""

from __future__ import annotations

from .types import ROTATIONS, Position, Rotation, Size


def rotate_position(
    x: int, y: int, rotation: Rotation, width: int, height: int
) -> Position:
    """Map a local tile position into the rotated layout's local frame.

    ``width`` and ``height`` are the *unrotated* layout dimensions.
    """
    if rotation == 90:
        return (height - 1 - y, x)
    if rotation == 180:
        return (width - 1 - x, height - 1 - y)
    if rotation == 270:
        return (y, width - 1 - x)
    return (x, y)


def rotate_size(size: Size, rotation: Rotation) -> Size:
    if rotation in (90, 270):
        return (size[1], size[0])
    return (size[0], size[1])


def rotate_by_90(current: Rotation, direction: str) -> Rotation:
    """Step a preview rotation one quarter turn ("cw" or "ccw")."""
    idx = ROTATIONS.index(normalize_rotation(current))
    step = 1 if direction == "cw" else 3
    return ROTATIONS[(idx + step) % 4]


def normalize_rotation(value: object) -> Rotation:
    """Coerce a stored rotation to the closed set, defaulting to 0."""
    try:
        rotation = int(value) % 360  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return 0
    return rotation if rotation in ROTATIONS else 0
