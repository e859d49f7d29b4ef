"""Validation layer for config and map data."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from .config import AppConfig
from .data import load_map_data
from .geometry import DEGENERATE_ERROR, compute_bounding_box
from .models import MapPointSpec, ValueRange
from .paths import MalformedPathError, PathCommand, parse_path
from .util import format_name_list, report_lines


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class Validator:
    """Checks config, point records, path grammar and overall map geometry."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        self._validate_value_ranges(report)
        points = self._validate_points(report)
        paths = self._validate_paths(report, points)
        self._validate_geometry(report, paths)
        self._validate_rings(report, paths)
        return report

    def _validate_value_ranges(self, report: ValidationReport) -> None:
        ranges = self.cfg.series.value_ranges
        if not ranges:
            report.add_warning(
                f"No value ranges configured; every region uses {self.cfg.series.color}."
            )
            return
        report.add_info(f"Loaded {len(ranges)} value ranges")
        for idx, later in enumerate(ranges):
            for earlier_idx in range(idx):
                if _ranges_overlap(ranges[earlier_idx], later):
                    report.add_info(
                        f"value_ranges[{earlier_idx}] overlaps value_ranges[{idx}]; "
                        f"value_ranges[{idx}] takes precedence where both match."
                    )

    def _validate_points(self, report: ValidationReport) -> list[MapPointSpec]:
        path = self.cfg.paths.data
        if not path.exists():
            report.add_error(f"Missing map data file: {path}")
            return []
        try:
            points = load_map_data(path)
        except Exception as exc:
            report.add_error(f"Failed parsing map data '{path}': {exc}")
            return []
        if not points:
            report.add_error(f"Map data file is empty: {path}")
            return []
        nulls = sum(1 for point in points if point.value is None)
        report.add_info(f"Loaded {len(points)} map points from {path} ({nulls} without data)")
        return points

    def _validate_paths(
        self,
        report: ValidationReport,
        points: Sequence[MapPointSpec],
    ) -> dict[str, PathCommand]:
        parsed: dict[str, PathCommand] = {}
        failures: list[str] = []
        for point in points:
            try:
                parsed[point.name] = parse_path(point.path)
            except MalformedPathError as exc:
                failures.append(f"{point.name}({exc.token!r}@{exc.position})")
        if failures:
            msg = "Malformed paths (shapes will be skipped): " + format_name_list(sorted(failures))
            if points and not parsed:
                report.add_error(msg)
            else:
                report.add_warning(msg)
        empty = sorted(name for name, path in parsed.items() if not path)
        if empty:
            report.add_warning("Regions with empty paths: " + format_name_list(empty))
        return parsed

    def _validate_geometry(self, report: ValidationReport, paths: dict[str, PathCommand]) -> None:
        if not paths:
            return
        box = compute_bounding_box(paths.values())
        if not box.is_degenerate:
            report.add_info(
                f"Map extent: x=[{box.min_x:g}, {box.max_x:g}], y=[{box.min_y:g}, {box.max_y:g}]"
            )
            return
        msg = (
            "Map geometry has no usable extent "
            f"(x=[{box.min_x:g}, {box.max_x:g}], y=[{box.min_y:g}, {box.max_y:g}])."
        )
        if self.cfg.series.on_degenerate == DEGENERATE_ERROR:
            report.add_error(msg)
        else:
            report.add_warning(msg + " Unit scale will be used.")

    def _validate_rings(self, report: ValidationReport, paths: dict[str, PathCommand]) -> None:
        polygon_factory = _require_shapely_polygon()
        invalid: list[str] = []
        for name, path in paths.items():
            for ring in _subpath_rings(path):
                if len(ring) < 3:
                    continue
                if not polygon_factory(ring).is_valid:
                    invalid.append(name)
                    break
        if invalid:
            report.add_warning(
                "Regions with self-intersecting outlines: " + format_name_list(sorted(invalid))
            )


def _ranges_overlap(left: ValueRange, right: ValueRange) -> bool:
    left_lo = float("-inf") if left.from_ is None else left.from_
    left_hi = float("inf") if left.to is None else left.to
    right_lo = float("-inf") if right.from_ is None else right.from_
    right_hi = float("inf") if right.to is None else right.to
    return left_lo <= right_hi and right_lo <= left_hi


def _subpath_rings(path: PathCommand) -> list[list[tuple[float, float]]]:
    rings: list[list[tuple[float, float]]] = []
    current: list[tuple[float, float]] = []
    for token in path:
        if token.is_command:
            if token.command == "M" and current:
                rings.append(current)
                current = []
            continue
        current.append((token.x, token.y))
    if current:
        rings.append(current)
    return rings


def _require_shapely_polygon() -> Any:
    try:
        from shapely.geometry import Polygon
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for outline validation") from exc
    return Polygon


def format_report_lines(report: ValidationReport) -> Iterable[str]:
    return report_lines(
        infos=report.infos,
        warnings=report.warnings,
        errors=report.errors,
        ok_message="Validation completed with no errors.",
    )
