"""Map point data loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from .models import MapPointSpec


def load_map_data(path: Path) -> list[MapPointSpec]:
    """Load and validate the region list (`name`, `value`, `path` per entry)."""
    if not path.exists():
        raise FileNotFoundError(f"Map data file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if isinstance(raw, Mapping) and "points" in raw:
        raw = raw["points"]
    if not isinstance(raw, list):
        raise ValueError(f"Expected list of points in {path}")

    points: list[MapPointSpec] = []
    seen_names: set[str] = set()
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Expected mapping at index {idx} in {path}")
        try:
            point = MapPointSpec.from_mapping(item)
        except ValueError as exc:
            raise ValueError(f"Invalid point at index {idx} in {path}: {exc}") from exc
        key = point.name.casefold()
        if key in seen_names:
            raise ValueError(f"Duplicate point name '{point.name}' in {path}")
        seen_names.add(key)
        points.append(point)
    return points


def dump_map_data(points: Iterable[MapPointSpec], path: Path) -> Path:
    """Write points in the format `load_map_data` reads."""
    payload: list[dict[str, Any]] = [
        {"name": point.name, "value": point.value, "path": point.path} for point in points
    ]
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump({"points": payload}, fh, sort_keys=False, allow_unicode=True, width=120)
    return path
