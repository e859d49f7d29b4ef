"""Map series: per-pass orchestration of parsing, fitting and classification."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import partial
from typing import Any, Iterable, Protocol

from .classify import NumberFormat, build_legend_items, classify, format_number
from .config import LegendConfig, SeriesConfig
from .geometry import BoundingBox, Transform, build_transform, compute_bounding_box, transform_path
from .models import LegendItem, MapPointSpec
from .paths import MalformedPathError, PathCommand, format_path, parse_path

_LOGGER = logging.getLogger("mapbuilder.series")

SHAPE_TYPE_PATH = "path"


@dataclass(frozen=True, slots=True)
class PlotArea:
    """Drawing surface supplied by the host, in device pixels."""

    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class DisplayValue:
    """Per-pass view of a point value; `drawable` is never None."""

    raw: float | None
    drawable: float

    @classmethod
    def of(cls, value: float | None) -> DisplayValue:
        return cls(raw=value, drawable=0.0 if value is None else value)


@dataclass(frozen=True, slots=True)
class DataLabel:
    name: str
    text: str
    x: float
    y: float


class DrawnShape(Protocol):
    def get_bbox(self) -> tuple[float, float, float, float]:
        """Return (x, y, width, height) of the drawn shape in device space."""
        ...


class ShapeRenderer(Protocol):
    def draw_shape(
        self,
        shape_type: str,
        shape_args: PathCommand,
        *,
        fill: str | None,
        stroke: str,
        stroke_width: float,
    ) -> DrawnShape:
        ...


@dataclass(slots=True)
class MapPoint:
    name: str
    value: float | None
    path: PathCommand | None
    color: str | None
    skip_reason: str | None = None
    shape_type: str | None = None
    shape_args: PathCommand | None = None
    tooltip_anchor: tuple[float, float] | None = None
    plot_x: float | None = None
    plot_y: float | None = None

    @property
    def is_null(self) -> bool:
        return self.value is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "color": self.color,
            "shape_type": self.shape_type,
            "shape_args": format_path(self.shape_args) if self.shape_args is not None else None,
            "tooltip_anchor": list(self.tooltip_anchor) if self.tooltip_anchor is not None else None,
            "plot_x": self.plot_x,
            "plot_y": self.plot_y,
        }


class MapSeries:
    """Choropleth series: fits every region path into the plot area and colors it.

    Legend items are resolved once from the configured value ranges. Each
    call to `translate` is a full render pass that recomputes the bounding
    box and transform over the current points; `draw_points` hands the
    device-space shapes to a host renderer and records tooltip anchors.
    """

    def __init__(
        self,
        options: SeriesConfig,
        legend: LegendConfig | None = None,
        *,
        number_format: NumberFormat | None = None,
    ) -> None:
        self.options = options
        legend = legend or LegendConfig()
        if number_format is None:
            number_format = partial(
                format_number,
                decimal_point=legend.decimal_point,
                thousands_sep=legend.thousands_sep,
            )
        self.number_format = number_format
        self.legend_items: tuple[LegendItem, ...] = build_legend_items(
            options.value_ranges,
            legend.value_decimals,
            number_format,
        )
        self.points: list[MapPoint] = []
        self.bounding_box: BoundingBox | None = None
        self.transform: Transform | None = None
        self.plot: PlotArea | None = None
        self.max_value: float | None = None

    @property
    def skipped_points(self) -> list[MapPoint]:
        return [point for point in self.points if point.path is None]

    def resolve_color(self, value: float | None) -> str | None:
        if value is None:
            return self.options.null_color
        return classify(value, self.options.value_ranges, default=self.options.color)

    def set_data(self, records: Iterable[MapPointSpec]) -> None:
        """Replace all points.

        Shapes with unreadable paths or non-finite values are kept for
        tooltips and listed in `skipped_points`, but take no part in fitting
        or drawing.
        """
        points: list[MapPoint] = []
        for record in records:
            path: PathCommand | None = None
            reason: str | None = None
            if record.value is not None and not math.isfinite(record.value):
                reason = f"non-finite value {record.value!r}"
            else:
                try:
                    path = parse_path(record.path)
                except MalformedPathError as exc:
                    reason = str(exc)
            if reason is not None:
                _LOGGER.warning("Skipping shape for '%s': %s", record.name, reason)
            points.append(
                MapPoint(
                    name=record.name,
                    value=record.value,
                    path=path,
                    color=self.resolve_color(record.value),
                    skip_reason=reason,
                )
            )
        self.points = points
        self.bounding_box = None
        self.transform = None
        self.plot = None
        self.max_value = None

    def translate(self, plot: PlotArea) -> Transform:
        """Run one render pass: fit all shapes into `plot` and compute device paths."""
        try:
            box = compute_bounding_box(point.path for point in self.points)
            transform = build_transform(
                box,
                plot.width,
                plot.height,
                on_degenerate=self.options.on_degenerate,
            )
        except ValueError:
            self._reset_pass()
            raise

        shape_args: list[PathCommand | None] = []
        max_value: float | None = None
        for point in self.points:
            if point.path is None:
                shape_args.append(None)
            else:
                shape_args.append(transform_path(point.path, transform, plot.left, plot.top))
            if point.value is not None and (max_value is None or point.value > max_value):
                max_value = point.value

        for point, args in zip(self.points, shape_args):
            point.shape_type = SHAPE_TYPE_PATH if args is not None else None
            point.shape_args = args
            point.tooltip_anchor = None
            point.plot_x = None
            point.plot_y = None
        self.bounding_box = box
        self.transform = transform
        self.plot = plot
        self.max_value = max_value
        _LOGGER.debug(
            "Translated %d shapes (scale=%g, min=(%g, %g))",
            sum(1 for args in shape_args if args is not None),
            transform.scale_factor,
            transform.min_x,
            transform.min_y,
        )
        return transform

    def display_values(self) -> tuple[DisplayValue, ...]:
        return tuple(DisplayValue.of(point.value) for point in self.points)

    def draw_points(self, renderer: ShapeRenderer) -> int:
        """Draw every translated shape and anchor its tooltip at the shape center."""
        if self.plot is None:
            raise RuntimeError("translate() must run before draw_points()")
        drawn = 0
        for point, display in zip(self.points, self.display_values()):
            if not point.shape_args or not math.isfinite(display.drawable):
                continue
            graphic = renderer.draw_shape(
                point.shape_type or SHAPE_TYPE_PATH,
                point.shape_args,
                fill=point.color,
                stroke=self.options.border_color,
                stroke_width=self.options.border_width,
            )
            x, y, width, height = graphic.get_bbox()
            point.tooltip_anchor = (x + width / 2, y + height / 2)
            point.plot_x = point.tooltip_anchor[0] - self.plot.left
            point.plot_y = point.tooltip_anchor[1] - self.plot.top
            drawn += 1
        return drawn

    def data_labels(self) -> list[DataLabel]:
        """Labels for drawn, non-null points, placed at plot offset + `plot_x`/`plot_y`."""
        options = self.options.data_labels
        if not options.enabled or self.plot is None:
            return []
        labels: list[DataLabel] = []
        for point in self.points:
            if point.value is None or point.plot_x is None or point.plot_y is None:
                continue
            text = options.format.format(
                name=point.name,
                value=self.number_format(point.value, options.value_decimals),
            )
            labels.append(
                DataLabel(
                    name=point.name,
                    text=text,
                    x=self.plot.left + point.plot_x,
                    y=self.plot.top + point.plot_y,
                )
            )
        return labels

    def shapes(self) -> list[dict[str, Any]]:
        return [point.to_dict() for point in self.points]

    def destroy(self) -> None:
        self.points = []
        self._reset_pass()

    def _reset_pass(self) -> None:
        for point in self.points:
            point.shape_type = None
            point.shape_args = None
            point.tooltip_anchor = None
            point.plot_x = None
            point.plot_y = None
        self.bounding_box = None
        self.transform = None
        self.plot = None
        self.max_value = None
