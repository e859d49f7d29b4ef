from pathlib import Path

import pytest

from mapbuilder.io_geo import GeoDataRepository, geometry_to_path
from mapbuilder.paths import iter_points, parse_path

shapely_geometry = pytest.importorskip("shapely.geometry")


def test_polygon_to_path_flips_y_and_drops_closing_vertex():
    poly = shapely_geometry.Polygon([(0, 0), (10, 0), (10, 5), (0, 5)])
    path = geometry_to_path(poly)
    assert path == "M 0 0 L 10 0 10 -5 0 -5 Z"
    assert list(iter_points(parse_path(path))) == [(0, 0), (10, 0), (10, -5), (0, -5)]


def test_polygon_with_hole_and_multipolygon():
    outer = [(0, 0), (10, 0), (10, 10), (0, 10)]
    hole = [(2, 2), (4, 2), (4, 4)]
    multi = shapely_geometry.MultiPolygon(
        [shapely_geometry.Polygon(outer, [hole]), shapely_geometry.Polygon([(20, 0), (21, 0), (21, 1)])]
    )
    path = geometry_to_path(multi)
    commands = [t.command for t in parse_path(path) if t.is_command]
    assert commands == ["M", "L", "Z", "M", "L", "Z", "M", "L", "Z"]


def test_precision_rounds_coordinates():
    poly = shapely_geometry.Polygon([(0.12345, 1.98765), (1, 0), (100, 0.5)])
    assert geometry_to_path(poly, precision=2) == "M 0.12 -1.99 L 1 0 100 -0.5 Z"


def test_non_polygon_geometry_yields_empty_path():
    assert geometry_to_path(shapely_geometry.Point(1, 1)) == ""
    assert geometry_to_path(None) == ""


def test_to_points_from_geodataframe(tmp_path: Path):
    gpd = pytest.importorskip("geopandas")
    df = gpd.GeoDataFrame(
        {
            "NAME": ["Alpha", "Beta", "Gamma"],
            "pop": [12.5, float("nan"), 3],
            "geometry": [
                shapely_geometry.Polygon([(0, 0), (1, 0), (1, 1)]),
                shapely_geometry.Polygon([(1, 0), (2, 0), (2, 1)]),
                shapely_geometry.Point(5, 5),
            ],
        }
    )
    repo = GeoDataRepository(tmp_path / "regions.geojson")
    points = repo.to_points(df, value_column="pop")
    assert [p.name for p in points] == ["Alpha", "Beta"]
    assert points[0].value == 12.5
    assert points[1].value is None
    assert points[0].path == "M 0 0 L 1 0 1 -1 Z"

    with pytest.raises(ValueError, match="Value column"):
        repo.to_points(df, value_column="gdp")
    with pytest.raises(ValueError, match="name column"):
        repo.to_points(df, value_column=None, name_column="label")


def test_load_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        GeoDataRepository(tmp_path / "nope.geojson").load()
