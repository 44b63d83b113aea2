"""Command-line entry point for the ship planner.

Usage:
    shipplanner build-catalog extracted.json catalog.json [--merge-builtin]
    shipplanner check ship.json [--catalog catalog.json]
    shipplanner render ship.json ship.png [--scale 20] [--no-grid]
    shipplanner new ship.json [--preset 2x2]
    shipplanner import-ship parsed-ship.json ship.json [--catalog catalog.json]
    shipplanner presets

Global options, given before the subcommand: ``--settings`` (a JSON
settings file) and ``-v`` for debug logging. The settings file supplies the
catalog, the export scale, whether grid lines are drawn and the preset for
``new``.

Projects are written as JSON, or as a rendered PNG carrying the project when
the output name ends in ``.png``.

Exit status is 0 on success, 1 when ``check`` finds problems and 2 when an
input file can't be read.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from ..engine.catalog import assemble_catalog, merge_catalogs
from ..engine.catalog_io import (
    load_builtin_catalog,
    load_catalog,
    load_extracted_data,
    save_catalog,
)
from ..engine.collision import find_layout_problems
from ..engine.history import create_initial_history_state, history_reducer
from ..engine.ship_import import convert_ship, load_parsed_ship, ship_to_action
from ..engine.types import PlannerState, StructureCatalog
from .export import export_png
from .project_io import load_project, project_to_action, save_project_json
from .settings import (
    GRID_PRESETS,
    PlannerSettings,
    find_preset,
    find_smallest_fitting_preset,
    load_settings,
)

logger = logging.getLogger(__name__)


def _resolve_catalog(
    args: argparse.Namespace, settings: PlannerSettings
) -> StructureCatalog:
    path = getattr(args, "catalog", None) or settings.catalog_path
    if path:
        logger.debug("Using catalog %s", path)
        return load_catalog(Path(path))
    return load_builtin_catalog()


def _load_state(path: Path, catalog: StructureCatalog) -> PlannerState:
    project = load_project(path)
    history = history_reducer(
        create_initial_history_state(), project_to_action(project), catalog
    )
    return history.state


def _write_state(
    state: PlannerState,
    catalog: StructureCatalog,
    path: Path,
    settings: PlannerSettings,
) -> None:
    if path.suffix.lower() == ".png":
        state = replace(state, show_grid=settings.show_grid)
        export_png(state, catalog, path, settings.export_scale)
    else:
        save_project_json(state, path)


def cmd_build_catalog(args: argparse.Namespace, settings: PlannerSettings) -> int:
    data = load_extracted_data(Path(args.extracted))
    catalog = assemble_catalog(data)
    if args.merge_builtin:
        catalog = merge_catalogs(catalog, load_builtin_catalog())
    save_catalog(catalog, Path(args.output))
    version = f" (game {data.game_version})" if data.game_version else ""
    print(
        f"Wrote {catalog.structure_count()} structures in "
        f"{len(catalog.categories)} categories to {args.output}{version}"
    )
    return 0


def cmd_check(args: argparse.Namespace, settings: PlannerSettings) -> int:
    catalog = _resolve_catalog(args, settings)
    state = _load_state(Path(args.project), catalog)
    problems = find_layout_problems(state, catalog)
    print(
        f"{args.project}: {len(state.structures)} structures, "
        f"{len(state.hull_tiles)} hull tiles, "
        f"{state.grid.width}x{state.grid.height} grid"
    )
    for problem in problems:
        print(f"  {problem.instance_id}: {problem.message}")
    if problems:
        print(f"{len(problems)} problem(s) found")
        return 1
    print("OK")
    return 0


def cmd_render(args: argparse.Namespace, settings: PlannerSettings) -> int:
    catalog = _resolve_catalog(args, settings)
    state = _load_state(Path(args.project), catalog)
    state = replace(state, show_grid=settings.show_grid and not args.no_grid)
    scale = args.scale if args.scale is not None else settings.export_scale
    export_png(state, catalog, Path(args.output), scale)
    print(f"Rendered {args.project} to {args.output}")
    return 0


def cmd_new(args: argparse.Namespace, settings: PlannerSettings) -> int:
    if args.preset is not None:
        preset = find_preset(args.preset)
        if preset is None:
            raise ValueError(f"Unknown grid preset: {args.preset}")
    else:
        preset = settings.grid_preset
    state = PlannerState(grid=preset.grid, preset_label=preset.label)
    catalog = _resolve_catalog(args, settings)
    _write_state(state, catalog, Path(args.output), settings)
    print(f"Created empty {preset.label} project {args.output}")
    return 0


def cmd_import_ship(args: argparse.Namespace, settings: PlannerSettings) -> int:
    catalog = _resolve_catalog(args, settings)
    ship = load_parsed_ship(Path(args.ship))
    preset = find_smallest_fitting_preset(ship.meta.width, ship.meta.height)
    result = convert_ship(ship, catalog, preset.label, preset.grid)
    history = history_reducer(
        create_initial_history_state(), ship_to_action(result), catalog
    )
    _write_state(history.state, catalog, Path(args.output), settings)

    stats = result.stats
    print(
        f"Imported {ship.meta.name or args.ship} onto {preset.label}: "
        f"{stats.structures_created} structures, "
        f"{stats.hull_tiles_created} hull tiles "
        f"({stats.total_elements} elements)"
    )
    for warning in result.warnings:
        print(f"  warning: {warning.message}")
    return 0


def cmd_presets(args: argparse.Namespace, settings: PlannerSettings) -> int:
    for preset in GRID_PRESETS:
        print(f"{preset.label:>4}  {preset.width} x {preset.height}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shipplanner", description="Ship layout planner tools"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--settings", help="Path to a JSON settings file (default: built-in)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser(
        "build-catalog", help="Assemble a catalog from extracted game data"
    )
    p.add_argument("extracted", help="JSON dump of decoded game data")
    p.add_argument("output", help="Catalog JSON to write")
    p.add_argument(
        "--merge-builtin",
        action="store_true",
        help="Fill gaps from the built-in catalog",
    )
    p.set_defaults(func=cmd_build_catalog)

    p = sub.add_parser("check", help="Validate a saved project")
    p.add_argument("project", help="Project file (.json or .png)")
    p.add_argument("--catalog", help="Catalog JSON (default: built-in)")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("render", help="Render a saved project to PNG")
    p.add_argument("project", help="Project file (.json or .png)")
    p.add_argument("output", help="PNG file to write")
    p.add_argument("--catalog", help="Catalog JSON (default: built-in)")
    p.add_argument(
        "--scale", type=int, default=None, help="Pixels per tile (default: 20)"
    )
    p.add_argument(
        "--no-grid", action="store_true", help="Omit grid lines"
    )
    p.set_defaults(func=cmd_render)

    p = sub.add_parser("new", help="Write an empty project")
    p.add_argument("output", help="Project file to write (.json or .png)")
    p.add_argument("--preset", help="Grid preset (default: from settings)")
    p.add_argument("--catalog", help="Catalog JSON (default: built-in)")
    p.set_defaults(func=cmd_new)

    p = sub.add_parser(
        "import-ship", help="Convert a parsed save-game ship to a project"
    )
    p.add_argument("ship", help="JSON dump of a parsed ship")
    p.add_argument("output", help="Project file to write (.json or .png)")
    p.add_argument("--catalog", help="Catalog JSON (default: built-in)")
    p.set_defaults(func=cmd_import_ship)

    p = sub.add_parser("presets", help="List grid presets")
    p.set_defaults(func=cmd_presets)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.settings) if args.settings else PlannerSettings()
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    level = logging.DEBUG if args.verbose else settings.log_level.upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return args.func(args, settings)
    except (OSError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
