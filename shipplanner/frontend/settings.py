"""Planner configuration: grid presets and export options.

Grid presets are measured in 27-tile blocks ("2x1" is two blocks wide, one
tall). ``PlannerSettings`` collects the knobs the CLI and exporter read; it
round-trips through a small JSON file with ``from_dict`` / ``to_dict`` like
the other snapshot types.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from ..engine.types import DEFAULT_PRESET_LABEL, GridSize

logger = logging.getLogger(__name__)

BLOCK_SIZE = 27
EXPORT_SCALE = 20


@dataclass(frozen=True)
class GridPreset:
    label: str
    width: int
    height: int

    @property
    def grid(self) -> GridSize:
        return GridSize(self.width, self.height)


GRID_PRESETS: tuple[GridPreset, ...] = (
    GridPreset("1x1", BLOCK_SIZE, BLOCK_SIZE),
    GridPreset("2x1", 2 * BLOCK_SIZE, BLOCK_SIZE),
    GridPreset("1x2", BLOCK_SIZE, 2 * BLOCK_SIZE),
    GridPreset("2x2", 2 * BLOCK_SIZE, 2 * BLOCK_SIZE),
    GridPreset("3x1", 3 * BLOCK_SIZE, BLOCK_SIZE),
    GridPreset("1x3", BLOCK_SIZE, 3 * BLOCK_SIZE),
    GridPreset("3x2", 3 * BLOCK_SIZE, 2 * BLOCK_SIZE),
    GridPreset("2x3", 2 * BLOCK_SIZE, 3 * BLOCK_SIZE),
)


def find_preset(label: str) -> GridPreset | None:
    for preset in GRID_PRESETS:
        if preset.label == label:
            return preset
    return None


def find_smallest_fitting_preset(width: int, height: int) -> GridPreset:
    """Smallest preset (by area, then width) holding a ``width`` x ``height`` ship.

    Falls back to the largest preset when none is big enough.
    """
    by_size = sorted(GRID_PRESETS, key=lambda p: (p.width * p.height, p.width))
    for preset in by_size:
        if preset.width >= width and preset.height >= height:
            return preset
    return by_size[-1]


@dataclass(frozen=True)
class PlannerSettings:
    preset: str = DEFAULT_PRESET_LABEL
    show_grid: bool = True
    export_scale: int = EXPORT_SCALE
    catalog_path: str | None = None
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if find_preset(self.preset) is None:
            raise ValueError(f"Unknown grid preset: {self.preset}")
        if self.export_scale < 1:
            raise ValueError(
                f"export_scale must be positive, got {self.export_scale}"
            )

    @property
    def grid_preset(self) -> GridPreset:
        return next(p for p in GRID_PRESETS if p.label == self.preset)

    @staticmethod
    def from_dict(d: dict) -> PlannerSettings:
        return PlannerSettings(
            preset=d.get("preset", DEFAULT_PRESET_LABEL),
            show_grid=d.get("showGrid", True),
            export_scale=d.get("exportScale", EXPORT_SCALE),
            catalog_path=d.get("catalogPath"),
            log_level=d.get("logLevel", "WARNING"),
        )

    def to_dict(self) -> dict:
        d: dict = {
            "preset": self.preset,
            "showGrid": self.show_grid,
            "exportScale": self.export_scale,
            "logLevel": self.log_level,
        }
        if self.catalog_path is not None:
            d["catalogPath"] = self.catalog_path
        return d


def load_settings(path: Path | str) -> PlannerSettings:
    """Read settings from a JSON file.

    A missing file yields the defaults. A file that isn't a JSON object, or
    that names an unknown preset, raises ValueError.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("Settings file %s not found, using defaults", path)
        return PlannerSettings()
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed settings file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a JSON object")
    return PlannerSettings.from_dict(data)


def save_settings(settings: PlannerSettings, path: Path | str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(settings.to_dict(), f, indent=2)
        f.write("\n")
