"""Raster export of a ship layout.

The layout is painted into a numpy RGB array at one pixel per tile, then
scaled up with nearest-neighbour resampling so tiles stay crisp. Structures
on hidden layers or groups are skipped. Tile types are shaded off the
definition's colour: construction tiles use it as-is, blocked tiles are
darker and access tiles lighter. Hull tiles are painted underneath, lighter
along the hull edge than inside it, and the merged hull outline from
``hull.hull_outline`` is drawn on top.

``export_png`` saves the image with the project JSON embedded, so the file
can be loaded back with ``project_io.load_project``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image, ImageColor, ImageDraw

from ..engine.collision import typed_tiles
from ..engine.hull import hull_outline, is_inner_hull_tile
from ..engine.organization import is_structure_visible
from ..engine.types import PlannerState, StructureCatalog, TileType
from .project_io import create_project_file, save_project_png
from .settings import EXPORT_SCALE

logger = logging.getLogger(__name__)

BACKGROUND = (24, 26, 33)
GRID_LINE = (40, 43, 52)
HULL_FILL = (92, 98, 110)
HULL_EDGE = (122, 130, 145)
HULL_OUTLINE = (200, 205, 215)
FALLBACK_COLOR = (136, 136, 136)

# Blend factors toward black (blocked) and white (access).
BLOCKED_SHADE = 0.45
ACCESS_TINT = 0.55


def parse_color(color: str) -> tuple[int, int, int]:
    """Convert ``#rrggbb`` or ``hsl(h, s%, l%)`` to an RGB triple."""
    try:
        rgb = ImageColor.getrgb(color)
    except ValueError:
        logger.debug("Unparseable colour %r, using fallback", color)
        return FALLBACK_COLOR
    return rgb[0], rgb[1], rgb[2]


def _shade(rgb: tuple[int, int, int], tile_type: TileType) -> np.ndarray:
    base = np.array(rgb, dtype=np.float64)
    if tile_type is TileType.BLOCKED:
        base = base * (1.0 - BLOCKED_SHADE)
    elif tile_type is TileType.ACCESS:
        base = base + (255.0 - base) * ACCESS_TINT
    return np.clip(np.rint(base), 0, 255).astype(np.uint8)


def render_raster(
    state: PlannerState, catalog: StructureCatalog
) -> np.ndarray:
    """Paint the layout into a ``(height, width, 3)`` uint8 array, a pixel per tile."""
    raster = np.empty((state.grid.height, state.grid.width, 3), dtype=np.uint8)
    raster[:, :] = BACKGROUND

    for x, y in state.hull_tiles:
        if 0 <= x < state.grid.width and 0 <= y < state.grid.height:
            inner = is_inner_hull_tile(state.hull_tiles, x, y)
            raster[y, x] = HULL_FILL if inner else HULL_EDGE

    for struct in state.structures:
        if not is_structure_visible(state, struct):
            continue
        defn = catalog.find_structure(struct.structure_id)
        if defn is None:
            continue
        rgb = parse_color(defn.color)
        placed = typed_tiles(defn, struct.x, struct.y, struct.rotation)
        for (x, y), tile_type in placed.items():
            if 0 <= x < state.grid.width and 0 <= y < state.grid.height:
                raster[y, x] = _shade(rgb, tile_type)
    return raster


def render_layout(
    state: PlannerState,
    catalog: StructureCatalog,
    scale: int = EXPORT_SCALE,
    show_grid: bool | None = None,
) -> Image.Image:
    """Render the layout to an image ``scale`` pixels per tile."""
    if scale < 1:
        raise ValueError(f"scale must be positive, got {scale}")
    raster = render_raster(state, catalog)
    img = Image.fromarray(raster).resize(
        (state.grid.width * scale, state.grid.height * scale),
        Image.Resampling.NEAREST,
    )
    draw = ImageDraw.Draw(img)

    if show_grid is None:
        show_grid = state.show_grid
    if show_grid and scale >= 4:
        w, h = img.size
        for gx in range(0, w, scale):
            draw.line([(gx, 0), (gx, h)], fill=GRID_LINE)
        for gy in range(0, h, scale):
            draw.line([(0, gy), (w, gy)], fill=GRID_LINE)

    for ring in hull_outline(state.hull_tiles):
        points = [(cx * scale, cy * scale) for cx, cy in ring]
        draw.line(points, fill=HULL_OUTLINE, width=max(1, scale // 8))
    return img


def export_png(
    state: PlannerState,
    catalog: StructureCatalog,
    path: Path | str,
    scale: int = EXPORT_SCALE,
) -> None:
    """Render the layout and save it as a PNG carrying the project JSON."""
    img = render_layout(state, catalog, scale)
    save_project_png(img, create_project_file(state), path)
    logger.info(
        "Exported %d structures to %s (%dx%d px)",
        len(state.structures),
        path,
        img.width,
        img.height,
    )
