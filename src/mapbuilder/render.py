"""Choropleth map rendering pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from .config import AppConfig
from .data import load_map_data
from .geometry import DegenerateGeometryError
from .models import RenderManifest
from .paths import PathCommand
from .series import MapSeries, PlotArea
from .util import format_name_list, report_lines, sha256_file, write_json

_BACKGROUND_TRANSPARENT = "transparent"

_LOGGER = logging.getLogger("mapbuilder.render")


@dataclass(slots=True)
class RenderMapReport:
    output_path: Path | None = None
    shapes_path: Path | None = None
    manifest_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class MatplotlibShape:
    """Handle for one drawn region; answers bounding-box queries."""

    def __init__(self, mpl_path: Any, patch: Any | None = None) -> None:
        self.mpl_path = mpl_path
        self.patch = patch

    def get_bbox(self) -> tuple[float, float, float, float]:
        extents = self.mpl_path.get_extents()
        return (float(extents.x0), float(extents.y0), float(extents.width), float(extents.height))


class MatplotlibShapeRenderer:
    """Host shape renderer drawing device-space paths as matplotlib patches.

    Without an axes it only builds the paths, which is enough for tooltip
    anchors when no image is wanted.
    """

    def __init__(self, ax: Any | None = None) -> None:
        self.ax = ax
        self._path_cls, self._patch_cls = _require_matplotlib_path()

    def draw_shape(
        self,
        shape_type: str,
        shape_args: PathCommand,
        *,
        fill: str | None,
        stroke: str,
        stroke_width: float,
    ) -> MatplotlibShape:
        if shape_type != "path":
            raise ValueError(f"Unsupported shape type: {shape_type}")
        mpl_path = _to_matplotlib_path(self._path_cls, shape_args)
        patch = None
        if self.ax is not None:
            patch = self._patch_cls(
                mpl_path,
                facecolor=fill if fill is not None else "none",
                edgecolor=stroke,
                linewidth=stroke_width,
                joinstyle="round",
            )
            self.ax.add_patch(patch)
        return MatplotlibShape(mpl_path, patch)


class MapRenderer:
    """Deterministic renderer for one choropleth map image."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    @property
    def plot_area(self) -> PlotArea:
        chart = self.cfg.chart
        return PlotArea(
            left=chart.plot_left,
            top=chart.plot_top,
            width=chart.plot_width,
            height=chart.plot_height,
        )

    def render(self, series: MapSeries, output_path: Path) -> Path:
        plt = _require_pyplot()
        chart = self.cfg.chart
        fig = plt.figure(figsize=(chart.width_px / chart.dpi, chart.height_px / chart.dpi), dpi=chart.dpi)
        try:
            # One data unit per pixel, origin top-left like the path coordinates.
            ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))
            ax.set_xlim(0, chart.width_px)
            ax.set_ylim(chart.height_px, 0)
            ax.axis("off")
            _apply_background(fig=fig, ax=ax, background=chart.background)

            series.translate(self.plot_area)
            drawn = series.draw_points(MatplotlibShapeRenderer(ax))
            _LOGGER.debug("Drew %d shapes", drawn)
            self._draw_data_labels(ax=ax, series=series)
            self._draw_legend(ax=ax, series=series)

            output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(
                output_path,
                dpi=chart.dpi,
                format=chart.format,
                transparent=chart.background.casefold() == _BACKGROUND_TRANSPARENT,
            )
            return output_path
        finally:
            plt.close(fig)

    def _draw_data_labels(self, *, ax: Any, series: MapSeries) -> None:
        options = self.cfg.series.data_labels
        for label in series.data_labels():
            ax.text(
                label.x,
                label.y,
                label.text,
                color=options.color,
                fontsize=options.font_size,
                ha="center",
                va="center",
                clip_on=False,
                zorder=3,
            )

    def _draw_legend(self, *, ax: Any, series: MapSeries) -> None:
        if not self.cfg.legend.enabled or not series.legend_items:
            return
        patch_cls = _require_legend_patch()
        handles = [
            patch_cls(
                facecolor=item.color,
                edgecolor=self.cfg.series.border_color,
                label=item.label,
            )
            for item in series.legend_items
        ]
        ax.legend(handles=handles, loc=self.cfg.legend.location, frameon=False)


def build_series(cfg: AppConfig) -> MapSeries:
    return MapSeries(cfg.series, cfg.legend)


def run_render_map(
    cfg: AppConfig,
    *,
    output_path: Path | None = None,
    write_manifest: bool | None = None,
) -> RenderMapReport:
    """Load map data, fit it into the chart and write the map image."""
    t0 = time.perf_counter()
    report = RenderMapReport()
    series = _load_series(cfg, report)
    if series is None:
        return report

    if output_path is None:
        output_path = cfg.paths.output_dir / f"{cfg.chart.output_name}.{cfg.chart.format}"
    renderer = MapRenderer(cfg)
    try:
        renderer.render(series, output_path)
    except DegenerateGeometryError as exc:
        report.add_error(str(exc))
        return report
    except Exception as exc:
        _LOGGER.exception("Map rendering failed")
        report.add_error(f"Map rendering failed: {exc}")
        return report
    report.output_path = output_path
    _summarize(report, series)
    report.add_info(f"Map written to {output_path} in {time.perf_counter() - t0:.2f}s")

    should_write_manifest = cfg.build.write_manifest if write_manifest is None else write_manifest
    if should_write_manifest and series.transform is not None:
        manifest = RenderManifest.create(
            config_hash_sha256=sha256_file(cfg.source_path),
            data_hash_sha256=sha256_file(cfg.paths.data),
            image_path=str(output_path),
            points_total=report.summary["points_total"],
            points_drawn=report.summary["points_drawn"],
            points_skipped=report.summary["points_skipped"],
            transform=series.transform.to_dict(),
            legend=series.legend_items,
        )
        manifest_path = output_path.with_suffix(".manifest.json")
        write_json(manifest_path, manifest.to_dict())
        report.manifest_path = manifest_path
        report.add_info(f"Render manifest written to {manifest_path}")
    return report


def run_export_shapes(cfg: AppConfig, *, output_path: Path | None = None) -> RenderMapReport:
    """Fit the map and write device-space shapes plus legend items as JSON."""
    report = RenderMapReport()
    series = _load_series(cfg, report)
    if series is None:
        return report

    renderer = MapRenderer(cfg)
    try:
        series.translate(renderer.plot_area)
    except DegenerateGeometryError as exc:
        report.add_error(str(exc))
        return report
    series.draw_points(MatplotlibShapeRenderer())
    _summarize(report, series)

    if output_path is None:
        output_path = cfg.paths.output_dir / f"{cfg.chart.output_name}.shapes.json"
    plot = renderer.plot_area
    write_json(
        output_path,
        {
            "plot": {"left": plot.left, "top": plot.top, "width": plot.width, "height": plot.height},
            "transform": series.transform.to_dict() if series.transform is not None else None,
            "points": series.shapes(),
            "legend_items": [item.to_dict() for item in series.legend_items],
        },
    )
    report.shapes_path = output_path
    report.add_info(f"Shapes written to {output_path}")
    return report


def format_render_lines(report: RenderMapReport) -> Sequence[str]:
    return list(
        report_lines(
            infos=report.infos,
            warnings=report.warnings,
            errors=report.errors,
            ok_message="Map rendering completed with no errors.",
        )
    )


def _load_series(cfg: AppConfig, report: RenderMapReport) -> MapSeries | None:
    try:
        records = load_map_data(cfg.paths.data)
    except Exception as exc:
        report.add_error(f"Failed loading map data '{cfg.paths.data}': {exc}")
        return None
    report.add_info(f"Loaded {len(records)} map points from {cfg.paths.data}")
    if not records:
        report.add_error("Map data is empty; nothing to render.")
        return None

    try:
        series = build_series(cfg)
    except ValueError as exc:
        report.add_error(f"Invalid series options: {exc}")
        return None
    series.set_data(records)
    skipped = series.skipped_points
    if skipped:
        report.add_warning(
            "Shapes skipped: "
            + format_name_list(sorted(f"{point.name} ({point.skip_reason})" for point in skipped))
        )
    return series


def _summarize(report: RenderMapReport, series: MapSeries) -> None:
    total = len(series.points)
    drawn = sum(1 for point in series.points if point.tooltip_anchor is not None)
    nulls = sum(1 for point in series.points if point.is_null)
    report.summary = {
        "points_total": total,
        "points_drawn": drawn,
        "points_skipped": len(series.skipped_points),
        "points_null": nulls,
    }
    report.add_info(
        "Render summary: "
        f"points_total={total}, "
        f"points_drawn={drawn}, "
        f"points_skipped={len(series.skipped_points)}, "
        f"points_null={nulls}"
    )


def _to_matplotlib_path(path_cls: Any, shape_args: PathCommand) -> Any:
    vertices: list[tuple[float, float]] = []
    codes: list[int] = []
    command: str | None = None
    subpath_start: tuple[float, float] | None = None
    subpath_open = False
    first_after_command = False
    for token in shape_args:
        if token.is_command:
            command = token.command
            first_after_command = True
            if command == "Z" and subpath_open:
                vertices.append(subpath_start)
                codes.append(path_cls.CLOSEPOLY)
                subpath_open = False
            continue
        vertex = (float(token.x), float(token.y))
        starts_subpath = command == "M" and first_after_command
        first_after_command = False
        if not subpath_open and not starts_subpath:
            if subpath_start is None:
                starts_subpath = True
            else:
                # Drawing after Z continues from the closed subpath's start.
                vertices.append(subpath_start)
                codes.append(path_cls.MOVETO)
                subpath_open = True
        if starts_subpath:
            subpath_start = vertex
            subpath_open = True
            vertices.append(vertex)
            codes.append(path_cls.MOVETO)
            continue
        if command == "C":
            code = path_cls.CURVE4
        elif command == "Q":
            code = path_cls.CURVE3
        else:
            code = path_cls.LINETO
        vertices.append(vertex)
        codes.append(code)
    return path_cls(vertices, codes)


def _apply_background(*, fig: Any, ax: Any, background: str) -> None:
    if background.casefold() == _BACKGROUND_TRANSPARENT:
        fig.patch.set_facecolor("white")
        fig.patch.set_alpha(0.0)
        ax.set_facecolor((1.0, 1.0, 1.0, 0.0))
    else:
        fig.patch.set_facecolor(background)
        ax.set_facecolor(background)


def _require_pyplot() -> Any:
    try:
        import matplotlib

        matplotlib.use("Agg", force=False)
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for map rendering") from exc
    return plt


def _require_matplotlib_path() -> tuple[Any, Any]:
    try:
        from matplotlib.patches import PathPatch
        from matplotlib.path import Path as MplPath
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for shape drawing") from exc
    return (MplPath, PathPatch)


def _require_legend_patch() -> Any:
    try:
        from matplotlib.patches import Patch
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for legend rendering") from exc
    return Patch
