from pathlib import Path

import pytest

from mapbuilder.data import dump_map_data, load_map_data
from mapbuilder.models import MapPointSpec


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_load_points_mapping_form(tmp_path: Path):
    path = _write(
        tmp_path / "regions.yaml",
        "points:\n"
        "  - {name: North, value: 4, path: 'M 0 0 L 1 0 L 1 1 Z'}\n"
        "  - {name: Islands, value: null, path: 'M 0 0 L 1 1'}\n",
    )
    points = load_map_data(path)
    assert points == [
        MapPointSpec(name="North", value=4.0, path="M 0 0 L 1 0 L 1 1 Z"),
        MapPointSpec(name="Islands", value=None, path="M 0 0 L 1 1"),
    ]


def test_load_points_plain_list(tmp_path: Path):
    path = _write(tmp_path / "regions.yaml", "- {name: A, path: 'M 0 0'}\n")
    points = load_map_data(path)
    assert points[0].value is None


def test_missing_data_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_map_data(tmp_path / "missing.yaml")


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("name: A\n", "Expected list of points"),
        ("- just a string\n", "Expected mapping at index 0"),
        ("- {name: A, value: 1}\n", "Invalid point at index 0"),
        ("- {name: A, value: high, path: 'M 0 0'}\n", "Invalid point at index 0"),
        ("- {name: '', path: 'M 0 0'}\n", "Invalid point at index 0"),
        ("- {name: A, value: .inf, path: 'M 0 0'}\n", "finite number for 'value'"),
        ("- {name: A, value: -.inf, path: 'M 0 0'}\n", "finite number for 'value'"),
        ("- {name: A, value: .nan, path: 'M 0 0'}\n", "finite number for 'value'"),
        ("- {name: A, path: 'M 0 0'}\n- {name: a, path: 'M 1 1'}\n", "Duplicate point name 'a'"),
    ],
)
def test_invalid_point_data(tmp_path: Path, text, message):
    path = _write(tmp_path / "regions.yaml", text)
    with pytest.raises(ValueError, match=message):
        load_map_data(path)


def test_dump_then_load(tmp_path: Path):
    points = [
        MapPointSpec(name="Åland", value=1.5, path="M 0 0 L 1 0 Z"),
        MapPointSpec(name="Empty", value=None, path=""),
    ]
    out = dump_map_data(points, tmp_path / "nested" / "regions.yaml")
    assert out.exists()
    assert load_map_data(out) == points
