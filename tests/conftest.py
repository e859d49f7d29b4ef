"""Shared test fixtures."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import pytest
import yaml

from mapbuilder.config import AppConfig, load_config
from mapbuilder.paths import iter_points


SQUARE_PATH = "M0 0 L10 0 L10 10 L0 10 Z"
WIDE_PATH = "M 10 0 L 30 0 L 30 10 L 10 10 Z"
TWO_ISLANDS_PATH = "M 0 0 L 2 0 L 2 2 Z M 8 6 L 10 6 L 10 8 Z"
BOWTIE_PATH = "M 0 0 L 10 10 L 10 0 L 0 10 Z"

SAMPLE_POINTS = [
    {"name": "North", "value": 4, "path": "M 0 0 L 100 0 L 100 40 L 0 40 Z"},
    {"name": "Central", "value": 27.5, "path": "M 0 40 L 60 40 L 60 80 L 0 80 Z"},
    {"name": "East", "value": 73, "path": "M 60 40 L 100 40 L 100 80 L 60 80 Z"},
    {"name": "Islands", "value": None, "path": "M 10 90 L 20 90 L 20 100 L 10 100 Z"},
]

BASE_CONFIG: dict[str, Any] = {
    "chart": {
        "width_px": 220,
        "height_px": 200,
        "margin_px": [10, 10, 10, 10],
        "dpi": 100,
        "background": "white",
        "format": "png",
        "output_name": "map",
    },
    "series": {
        "color": "#4572A7",
        "null_color": "#F8F8F8",
        "border_color": "silver",
        "value_ranges": [
            {"to": 10, "color": "#EFEFFF"},
            {"from": 10, "to": 50, "color": "#B3B3FF"},
            {"from": 50, "color": "#3333A0"},
        ],
    },
    "legend": {"value_decimals": 0},
    "paths": {
        "data": "data/regions.yaml",
        "output_dir": "build/maps",
        "logs_dir": "build/logs",
    },
    "build": {"write_manifest": True},
}


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def write_project(
    root: Path,
    *,
    points: list[dict[str, Any]] | None = None,
    overrides: dict[str, Any] | None = None,
) -> Path:
    """Write config.yaml plus its data file under `root`; return the config path."""
    raw = _merge(BASE_CONFIG, overrides or {})
    data_path = root / raw["paths"]["data"]
    data_path.parent.mkdir(parents=True, exist_ok=True)
    data_path.write_text(
        yaml.safe_dump({"points": SAMPLE_POINTS if points is None else points}, sort_keys=False),
        encoding="utf-8",
    )
    cfg_path = root / "config.yaml"
    cfg_path.write_text(yaml.safe_dump(raw, sort_keys=False), encoding="utf-8")
    return cfg_path


class BoxShape:
    def __init__(self, coords: list[tuple[float, float]]) -> None:
        self.coords = coords

    def get_bbox(self) -> tuple[float, float, float, float]:
        xs = [x for x, _ in self.coords]
        ys = [y for _, y in self.coords]
        return (min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))


class RecordingRenderer:
    """Shape renderer that records calls and reports coordinate extents."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    def draw_shape(self, shape_type, shape_args, *, fill, stroke, stroke_width):
        self.calls.append(
            {
                "shape_type": shape_type,
                "shape_args": shape_args,
                "fill": fill,
                "stroke": stroke,
                "stroke_width": stroke_width,
            }
        )
        return BoxShape(list(iter_points(shape_args)))


@pytest.fixture
def project_config(tmp_path: Path) -> AppConfig:
    return load_config(write_project(tmp_path))


@pytest.fixture
def recording_renderer() -> RecordingRenderer:
    return RecordingRenderer()
