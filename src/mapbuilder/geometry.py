"""Bounding box, fit-to-canvas transform, and device-space path mapping."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

from .paths import PathCommand, PathToken, iter_points

_LOGGER = logging.getLogger("mapbuilder.geometry")

# Sentinels chosen so an empty scan leaves min > max.
_BOX_MIN_SENTINEL = float(2**31 - 1)
_BOX_MAX_SENTINEL = float(-(2**31))

DEGENERATE_ERROR = "error"
DEGENERATE_UNIT = "unit"
DEGENERATE_MODES = frozenset({DEGENERATE_ERROR, DEGENERATE_UNIT})


@dataclass(frozen=True, slots=True)
class BoundingBox:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def is_valid(self) -> bool:
        """False for the inverted box produced by an empty scan."""
        return self.min_x <= self.max_x and self.min_y <= self.max_y

    @property
    def is_degenerate(self) -> bool:
        return self.max_x <= self.min_x or self.max_y <= self.min_y


@dataclass(frozen=True, slots=True)
class Transform:
    min_x: float
    min_y: float
    scale_factor: float

    def to_dict(self) -> dict[str, float]:
        return {"min_x": self.min_x, "min_y": self.min_y, "scale_factor": self.scale_factor}


class DegenerateGeometryError(ValueError):
    """Raised when the shapes have no extent along one or both axes."""

    def __init__(self, box: BoundingBox) -> None:
        if box.is_valid:
            detail = f"zero extent (width={box.width:g}, height={box.height:g})"
        else:
            detail = "no coordinates"
        super().__init__(f"Cannot fit map to canvas: {detail}")
        self.box = box


def compute_bounding_box(paths: Iterable[PathCommand | None]) -> BoundingBox:
    """Overall extent of every coordinate pair in `paths`.

    Subpaths are scanned as one stream. `None` entries are skipped.
    """
    min_x = min_y = _BOX_MIN_SENTINEL
    max_x = max_y = _BOX_MAX_SENTINEL
    for path in paths:
        if path is None:
            continue
        for x, y in iter_points(path):
            if x < min_x:
                min_x = x
            if x > max_x:
                max_x = x
            if y < min_y:
                min_y = y
            if y > max_y:
                max_y = y
    return BoundingBox(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y)


def build_transform(
    box: BoundingBox,
    canvas_width: float,
    canvas_height: float,
    *,
    on_degenerate: str = DEGENERATE_ERROR,
) -> Transform:
    """Uniform scale and offset fitting `box` inside the canvas.

    The smaller of the two axis ratios is used so nothing is clipped and
    shapes keep their proportions.
    """
    if canvas_width <= 0 or canvas_height <= 0:
        raise ValueError("canvas width/height must be > 0")
    if on_degenerate not in DEGENERATE_MODES:
        raise ValueError(f"Unknown degenerate geometry mode: {on_degenerate!r}")

    if box.is_degenerate:
        if on_degenerate == DEGENERATE_ERROR:
            raise DegenerateGeometryError(box)
        _LOGGER.warning(
            "Degenerate map extent (min=(%g, %g), max=(%g, %g)); falling back to unit scale.",
            box.min_x,
            box.min_y,
            box.max_x,
            box.max_y,
        )
        if not box.is_valid:
            return Transform(min_x=0.0, min_y=0.0, scale_factor=1.0)
        return Transform(min_x=box.min_x, min_y=box.min_y, scale_factor=1.0)

    scale_factor = min(canvas_width / box.width, canvas_height / box.height)
    return Transform(min_x=box.min_x, min_y=box.min_y, scale_factor=scale_factor)


def transform_path(
    path: PathCommand,
    transform: Transform,
    origin_x: float,
    origin_y: float,
) -> PathCommand:
    """Map `path` into device space; commands pass through unchanged."""
    out: list[PathToken] = []
    for token in path:
        if token.is_command:
            out.append(token)
            continue
        out.append(
            PathToken.point(
                _round_half_up(origin_x + (token.x - transform.min_x) * transform.scale_factor),
                _round_half_up(origin_y + (token.y - transform.min_y) * transform.scale_factor),
            )
        )
    return tuple(out)


def invert_point(
    x: float,
    y: float,
    transform: Transform,
    origin_x: float,
    origin_y: float,
) -> tuple[float, float]:
    """Map a device-space coordinate back to data space."""
    return (
        transform.min_x + (x - origin_x) / transform.scale_factor,
        transform.min_y + (y - origin_y) / transform.scale_factor,
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
