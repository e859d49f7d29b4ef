"""Import of GeoJSON / shapefile regions into map point records."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Iterable, Sequence

from .models import MapPointSpec

_LOGGER = logging.getLogger("mapbuilder.io_geo")


def _first_existing_column(columns: Iterable[str], candidates: Sequence[str]) -> str | None:
    existing = {col.lower(): col for col in columns}
    for candidate in candidates:
        match = existing.get(candidate.lower())
        if match:
            return match
    return None


class GeoDataRepository:
    """Reads vector region files through GeoPandas."""

    NAME_COLUMNS = ("name", "NAME", "NAME_EN", "ADMIN", "NAME_LONG", "region", "id")

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Any:
        if not self.path.exists():
            raise FileNotFoundError(f"Geo data file not found: {self.path}")
        gpd = self._require_geopandas()
        return gpd.read_file(self.path)

    def detect_name_column(self, df: Any, preferred: str | None = None) -> str:
        candidates = (preferred,) if preferred else self.NAME_COLUMNS
        col = _first_existing_column([str(c) for c in df.columns], candidates)
        if col is None:
            cols = ", ".join(str(c) for c in df.columns)
            raise ValueError(f"Could not detect region name column. Available columns: {cols}")
        return col

    def to_points(
        self,
        df: Any,
        *,
        value_column: str | None,
        name_column: str | None = None,
        precision: int = 3,
    ) -> list[MapPointSpec]:
        """Convert each polygon row into a `MapPointSpec` with an SVG path."""
        name_col = self.detect_name_column(df, name_column)
        if value_column is not None and value_column not in df.columns:
            raise ValueError(f"Value column '{value_column}' not present in {self.path}")

        points: list[MapPointSpec] = []
        for row in df.itertuples(index=False):
            row_dict = row._asdict()
            name = str(row_dict.get(name_col) or "").strip()
            if not name:
                continue
            path = geometry_to_path(row_dict.get("geometry"), precision=precision)
            if not path:
                _LOGGER.debug("Skipping '%s': no polygon geometry", name)
                continue
            value = _to_float_or_none(row_dict.get(value_column)) if value_column else None
            points.append(MapPointSpec(name=name, value=value, path=path))
        return points

    @staticmethod
    def _require_geopandas() -> Any:
        try:
            import geopandas as gpd
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError("geopandas is required for geo data import") from exc
        return gpd


def geometry_to_path(geometry: Any, *, precision: int = 3) -> str:
    """Render polygon rings as `M x y L ... Z` subpaths.

    Latitude grows upward while device Y grows downward, so Y is negated.
    """
    parts: list[str] = []
    for ring in _iter_linear_rings(geometry):
        # Shapely rings repeat the first vertex at the end; Z closes instead.
        coords = list(ring[:-1]) if len(ring) > 1 and ring[0] == ring[-1] else list(ring)
        if len(coords) < 2:
            continue
        head, *tail = coords
        segment = [f"M {_fmt(head[0], precision)} {_fmt(-head[1], precision)}"]
        if tail:
            segment.append("L " + " ".join(f"{_fmt(x, precision)} {_fmt(-y, precision)}" for x, y in tail))
        segment.append("Z")
        parts.append(" ".join(segment))
    return " ".join(parts)


def _iter_linear_rings(geometry: Any) -> Sequence[Sequence[tuple[float, float]]]:
    geom_type = getattr(geometry, "geom_type", "")
    if geom_type == "Polygon":
        exterior = [(float(x), float(y)) for x, y, *_ in geometry.exterior.coords]
        rings: list[Sequence[tuple[float, float]]] = [exterior]
        for interior in geometry.interiors:
            rings.append([(float(x), float(y)) for x, y, *_ in interior.coords])
        return rings

    if geom_type in {"MultiPolygon", "GeometryCollection"}:
        rings = []
        for part in geometry.geoms:
            rings.extend(_iter_linear_rings(part))
        return rings

    return []


def _fmt(value: float, precision: int) -> str:
    rounded = round(float(value), precision)
    if rounded == 0:
        rounded = 0.0
    text = f"{rounded:.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _to_float_or_none(value: Any) -> float | None:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result
