import dataclasses
import json
from pathlib import Path

import pytest

from mapbuilder.config import load_config
from mapbuilder.data import load_map_data
from mapbuilder.models import ValueRange
from mapbuilder.paths import parse_path
from mapbuilder.render import (
    MapRenderer,
    MatplotlibShapeRenderer,
    build_series,
    _to_matplotlib_path,
    format_render_lines,
    run_export_shapes,
    run_render_map,
)
from tests.conftest import SAMPLE_POINTS, write_project

MplPath = pytest.importorskip("matplotlib.path").Path


def test_render_png_with_manifest(project_config):
    report = run_render_map(project_config)
    assert report.ok, report.errors
    assert report.output_path == project_config.paths.output_dir / "map.png"
    assert report.output_path.read_bytes().startswith(b"\x89PNG")
    assert report.summary == {
        "points_total": 4,
        "points_drawn": 4,
        "points_skipped": 0,
        "points_null": 1,
    }

    manifest = json.loads(report.manifest_path.read_text(encoding="utf-8"))
    assert report.manifest_path.name == "map.manifest.json"
    assert manifest["points"] == {"total": 4, "drawn": 4, "skipped": 0}
    assert manifest["transform"]["scale_factor"] == pytest.approx(1.8)
    assert [item["label"] for item in manifest["legend"]] == ["< 10", "10 - 50", "> 50"]
    assert len(manifest["config_hash_sha256"]) == 64


def test_render_svg_without_manifest(tmp_path: Path):
    cfg = load_config(write_project(tmp_path, overrides={"chart": {"format": "svg"}}))
    out = tmp_path / "custom" / "regions.svg"
    report = run_render_map(cfg, output_path=out, write_manifest=False)
    assert report.ok, report.errors
    assert report.output_path == out
    assert "<svg" in out.read_text(encoding="utf-8")
    assert report.manifest_path is None


def test_render_transparent_background(tmp_path: Path):
    cfg = load_config(
        write_project(tmp_path, overrides={"chart": {"background": "transparent"}, "legend": {"enabled": False}})
    )
    report = run_render_map(cfg, write_manifest=False)
    assert report.ok, report.errors


def test_render_reports_degenerate_geometry(tmp_path: Path):
    points = [{"name": "Line", "value": 1, "path": "M 0 0 L 10 0"}]
    cfg = load_config(write_project(tmp_path, points=points))
    report = run_render_map(cfg)
    assert not report.ok
    assert "Cannot fit map to canvas" in report.errors[0]
    assert report.output_path is None
    assert "[ERROR]" in format_render_lines(report)[-1]


def test_render_warns_about_malformed_paths(tmp_path: Path):
    points = SAMPLE_POINTS + [{"name": "Broken", "value": 5, "path": "M 0 0 H 4"}]
    cfg = load_config(write_project(tmp_path, points=points))
    report = run_render_map(cfg, write_manifest=False)
    assert report.ok, report.errors
    assert report.warnings == [
        "Shapes skipped: Broken (Malformed path token 'H' at position 3: unsupported command)"
    ]
    assert report.summary["points_skipped"] == 1
    assert report.summary["points_drawn"] == 4


def test_render_missing_data_file(tmp_path: Path):
    cfg = load_config(write_project(tmp_path))
    cfg.paths.data.unlink()
    report = run_render_map(cfg)
    assert not report.ok
    assert "Failed loading map data" in report.errors[0]


def test_export_shapes_json(project_config):
    report = run_export_shapes(project_config)
    assert report.ok, report.errors
    assert report.shapes_path.name == "map.shapes.json"
    payload = json.loads(report.shapes_path.read_text(encoding="utf-8"))
    assert payload["plot"] == {"left": 10, "top": 10, "width": 200, "height": 180}
    north = payload["points"][0]
    assert north["name"] == "North"
    assert north["color"] == "#EFEFFF"
    assert north["shape_args"] == "M 10 10 L 190 10 L 190 82 L 10 82 Z"
    assert north["tooltip_anchor"] == pytest.approx([100.0, 46.0])
    assert payload["points"][3]["value"] is None
    assert [item["color"] for item in payload["legend_items"]] == ["#EFEFFF", "#B3B3FF", "#3333A0"]


def test_matplotlib_path_codes_follow_commands():
    path = parse_path("M 0 0 L 1 0 1 1 Z M 5 5 Q 6 6 7 5 Z")
    mpl_path = _to_matplotlib_path(MplPath, path)
    assert list(mpl_path.codes) == [
        MplPath.MOVETO,
        MplPath.LINETO,
        MplPath.LINETO,
        MplPath.CLOSEPOLY,
        MplPath.MOVETO,
        MplPath.CURVE3,
        MplPath.CURVE3,
        MplPath.CLOSEPOLY,
    ]
    assert tuple(mpl_path.vertices[3]) == (0.0, 0.0)
    assert tuple(mpl_path.vertices[7]) == (5.0, 5.0)


def test_implicit_lineto_after_move():
    mpl_path = _to_matplotlib_path(MplPath, parse_path("M 0 0 2 2"))
    assert list(mpl_path.codes) == [MplPath.MOVETO, MplPath.LINETO]


def test_shape_renderer_without_axes():
    renderer = MatplotlibShapeRenderer()
    shape = renderer.draw_shape(
        "path", parse_path("M 0 0 L 4 0 L 4 2 L 0 2 Z"), fill="red", stroke="black", stroke_width=1.0
    )
    assert shape.patch is None
    assert shape.get_bbox() == pytest.approx((0.0, 0.0, 4.0, 2.0))
    with pytest.raises(ValueError):
        renderer.draw_shape("circle", (), fill=None, stroke="black", stroke_width=1.0)


def test_path_without_leading_move_starts_a_subpath():
    mpl_path = _to_matplotlib_path(MplPath, parse_path("L 0 0 L 4 0 L 4 4"))
    assert list(mpl_path.codes) == [MplPath.MOVETO, MplPath.LINETO, MplPath.LINETO]


def test_drawing_after_close_reopens_at_subpath_start():
    mpl_path = _to_matplotlib_path(MplPath, parse_path("M 1 1 L 4 1 L 4 4 Z L 1 4"))
    assert list(mpl_path.codes) == [
        MplPath.MOVETO,
        MplPath.LINETO,
        MplPath.LINETO,
        MplPath.CLOSEPOLY,
        MplPath.MOVETO,
        MplPath.LINETO,
    ]
    assert tuple(mpl_path.vertices[4]) == (1.0, 1.0)
    assert tuple(mpl_path.vertices[5]) == (1.0, 4.0)


class _TextCapturingRenderer(MapRenderer):
    def __init__(self, cfg):
        super().__init__(cfg)
        self.texts = []

    def _draw_data_labels(self, *, ax, series):
        super()._draw_data_labels(ax=ax, series=series)
        self.texts = [(t.get_text(), t.get_position()) for t in ax.texts]


def test_render_draws_data_labels(tmp_path: Path):
    overrides = {"series": {"data_labels": {"enabled": True, "format": "{name} {value}"}}}
    cfg = load_config(write_project(tmp_path, overrides=overrides))
    series = build_series(cfg)
    series.set_data(load_map_data(cfg.paths.data))
    renderer = _TextCapturingRenderer(cfg)
    renderer.render(series, tmp_path / "labels.png")
    assert [text for text, _ in renderer.texts] == ["North 4", "Central 28", "East 73"]
    assert renderer.texts[0][1] == pytest.approx((100.0, 46.0))


def test_render_without_data_labels_adds_no_text(tmp_path: Path):
    cfg = load_config(write_project(tmp_path))
    series = build_series(cfg)
    series.set_data(load_map_data(cfg.paths.data))
    renderer = _TextCapturingRenderer(cfg)
    renderer.render(series, tmp_path / "plain.png")
    assert renderer.texts == []


def test_render_reports_unformattable_range_bound(tmp_path: Path):
    cfg = load_config(write_project(tmp_path))
    series_cfg = dataclasses.replace(
        cfg.series, value_ranges=(ValueRange(from_=float("inf"), color="red"),)
    )
    report = run_render_map(dataclasses.replace(cfg, series=series_cfg))
    assert not report.ok
    assert report.errors[0].startswith("Invalid series options: Cannot format non-finite number")
