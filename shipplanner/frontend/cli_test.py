"""Tests for the shipplanner command-line entry point."""

import json

from PIL import Image

from ..engine.catalog_io import load_catalog
from ..engine.types import GridSize
from .cli import build_parser, main
from .project_io import METADATA_KEY, load_project


def _storage(id, x, y):
    return {
        "id": id,
        "structureId": "mid_1030",
        "categoryId": "storage",
        "x": x,
        "y": y,
        "rotation": 0,
        "layer": "Rooms",
        "orgLayerId": "layer-default",
    }


def _write_project(tmp_path, structures, name="ship.json"):
    path = tmp_path / name
    path.write_text(
        json.dumps(
            {
                "version": 4,
                "gridSize": {"width": 54, "height": 54},
                "preset": "2x2",
                "structures": structures,
                "hullTiles": [{"x": 0, "y": 10}],
                "userLayers": [{"id": "layer-default", "name": "Default"}],
                "userGroups": [],
                "activeLayerId": "layer-default",
            }
        )
    )
    return path


def test_subcommand_required():
    parser = build_parser()
    try:
        parser.parse_args([])
        assert False, "Expected SystemExit"
    except SystemExit as e:
        assert e.code == 2


def test_presets(capsys):
    assert main(["presets"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 8
    assert out[3] == " 2x2  54 x 54"


def test_check_ok(tmp_path, capsys):
    path = _write_project(tmp_path, [_storage("a", 0, 0), _storage("b", 5, 5)])
    assert main(["check", str(path)]) == 0
    out = capsys.readouterr().out
    assert "2 structures, 1 hull tiles, 54x54 grid" in out
    assert out.strip().endswith("OK")


def test_check_reports_problems(tmp_path, capsys):
    path = _write_project(
        tmp_path,
        [_storage("a", 0, 0), _storage("b", 1, 1), _storage("c", 53, 0)],
    )
    assert main(["check", str(path)]) == 1
    out = capsys.readouterr().out
    assert "b: " in out
    assert "overlaps another structure" in out
    assert "c: " in out
    assert "outside the 54x54 grid" in out
    assert "2 problem(s) found" in out


def test_render_writes_png(tmp_path, capsys):
    project = _write_project(tmp_path, [_storage("a", 0, 0)])
    out_path = tmp_path / "out" / "ship.png"
    out_path.parent.mkdir()
    assert main(["render", str(project), str(out_path), "--scale", "3"]) == 0
    with Image.open(out_path) as img:
        assert img.size == (162, 162)
        assert METADATA_KEY in img.text
    # The rendered PNG is itself a loadable project.
    assert main(["check", str(out_path)]) == 0


def test_render_uses_settings_scale(tmp_path):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"exportScale": 2, "logLevel": "info"}))
    project = _write_project(tmp_path, [])
    out_path = tmp_path / "ship.png"
    args = ["--settings", str(settings), "render", str(project), str(out_path)]
    assert main(args) == 0
    with Image.open(out_path) as img:
        assert img.size == (108, 108)


def test_build_catalog(tmp_path, capsys):
    extracted = tmp_path / "extracted.json"
    extracted.write_text(
        json.dumps(
            {
                "gameVersion": "0.20.1",
                "texts": {"100": "Small Energy Cell", "101": "Power"},
                "categories": [{"id": 4000, "nameTid": 101}],
                "structures": [
                    {
                        "mid": 55,
                        "nameTid": 100,
                        "subCatId": 4000,
                        "size": [1, 1],
                        "dataTiles": [{"x": 0, "y": 0}],
                    }
                ],
            }
        )
    )
    output = tmp_path / "catalog.json"
    assert main(["build-catalog", str(extracted), str(output)]) == 0
    assert "(game 0.20.1)" in capsys.readouterr().out
    catalog = load_catalog(output)
    assert catalog.find_structure("mid_55") is not None
    assert catalog.find_structure("wall_x1") is None

    merged = tmp_path / "merged.json"
    args = ["build-catalog", str(extracted), str(merged), "--merge-builtin"]
    assert main(args) == 0
    catalog = load_catalog(merged)
    assert catalog.find_structure("mid_55") is not None
    assert catalog.find_structure("wall_x1") is not None


def test_check_with_custom_catalog_flags_unknown(tmp_path, capsys):
    catalog = tmp_path / "catalog.json"
    catalog.write_text(json.dumps({"categories": []}))
    project = _write_project(tmp_path, [_storage("a", 0, 0)])
    assert main(["check", str(project), "--catalog", str(catalog)]) == 1
    assert "unknown structure mid_1030" in capsys.readouterr().out


def test_missing_file_is_error(tmp_path, capsys):
    assert main(["check", str(tmp_path / "nope.json")]) == 2
    assert capsys.readouterr().err.startswith("error: ")


def test_unsupported_extension_is_error(tmp_path, capsys):
    path = tmp_path / "ship.txt"
    path.write_text("{}")
    assert main(["check", str(path)]) == 2
    assert "Unsupported file extension" in capsys.readouterr().err


def test_invalid_project_is_error(tmp_path, capsys):
    path = tmp_path / "ship.json"
    path.write_text(json.dumps({"gridSize": {"width": 54, "height": 54}}))
    assert main(["check", str(path)]) == 2
    assert "missing preset" in capsys.readouterr().err


def test_bad_settings_is_error(tmp_path, capsys):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"preset": "9x9"}))
    assert main(["--settings", str(settings), "presets"]) == 2
    assert "Unknown grid preset" in capsys.readouterr().err


def test_null_coordinate_is_loaded(tmp_path, capsys):
    structure = dict(_storage("a", 0, 0), x=None)
    path = _write_project(tmp_path, [structure])
    assert main(["check", str(path)]) == 0


def test_non_numeric_coordinate_is_error(tmp_path, capsys):
    structure = dict(_storage("a", 0, 0), y="top")
    path = _write_project(tmp_path, [structure])
    assert main(["check", str(path)]) == 2
    assert "structure has non-numeric y" in capsys.readouterr().err


def _pixels(path):
    with Image.open(path) as img:
        return list(img.getdata())


def test_render_respects_show_grid_setting(tmp_path):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"showGrid": False}))
    project = _write_project(tmp_path, [_storage("a", 0, 0)])
    plain, gridless, no_grid = (
        tmp_path / "plain.png",
        tmp_path / "gridless.png",
        tmp_path / "no-grid.png",
    )
    assert main(["render", str(project), str(plain)]) == 0
    args = ["--settings", str(settings), "render", str(project), str(gridless)]
    assert main(args) == 0
    assert main(["render", str(project), str(no_grid), "--no-grid"]) == 0
    assert _pixels(gridless) == _pixels(no_grid)
    assert _pixels(gridless) != _pixels(plain)


def test_new_uses_preset_flag(tmp_path, capsys):
    path = tmp_path / "empty.json"
    assert main(["new", str(path), "--preset", "3x1"]) == 0
    assert "empty 3x1 project" in capsys.readouterr().out
    project = load_project(path)
    assert project.grid == GridSize(81, 27)
    assert project.preset == "3x1"
    assert project.structures == ()


def test_new_uses_settings_preset(tmp_path):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"preset": "1x1", "exportScale": 2}))
    path = tmp_path / "empty.png"
    assert main(["--settings", str(settings), "new", str(path)]) == 0
    with Image.open(path) as img:
        assert img.size == (54, 54)
    assert load_project(path).grid == GridSize(27, 27)


def test_new_unknown_preset_is_error(tmp_path, capsys):
    assert main(["new", str(tmp_path / "x.json"), "--preset", "7x7"]) == 2
    assert "Unknown grid preset: 7x7" in capsys.readouterr().err


def _write_ship(tmp_path, width, height, elements):
    path = tmp_path / "parsed.json"
    path.write_text(
        json.dumps(
            {
                "meta": {"sid": 3, "name": "Drifter", "width": width, "height": height},
                "elements": elements,
            }
        )
    )
    return path


def test_import_ship(tmp_path, capsys):
    ship = _write_ship(
        tmp_path,
        40,
        20,
        [
            {"x": 0, "y": 0, "mid": 1148},
            {"x": 1, "y": 0, "mid": 1148},
            {"x": 2, "y": 0, "mid": 9999},
            {"x": 5, "y": 5, "mid": 1030},
        ],
    )
    output = tmp_path / "ship.json"
    assert main(["import-ship", str(ship), str(output)]) == 0
    out = capsys.readouterr().out
    assert "Imported Drifter onto 2x1: 1 structures, 3 hull tiles" in out
    assert "warning: 1 tiles with 1 unknown structure types" in out

    project = load_project(output)
    assert project.grid == GridSize(54, 27)
    assert [s.structure_id for s in project.structures] == ["mid_1030"]
    assert [layer.name for layer in project.user_layers] == [
        "Hull",
        "Rooms",
        "Systems",
        "Furniture",
    ]
    assert main(["check", str(output)]) == 0


def test_import_ship_bad_dump_is_error(tmp_path, capsys):
    path = tmp_path / "parsed.json"
    path.write_text(json.dumps({"elements": []}))
    assert main(["import-ship", str(path), str(tmp_path / "out.json")]) == 2
    assert "Invalid ship dump: missing meta" in capsys.readouterr().err
