"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .geometry import DEGENERATE_ERROR, DEGENERATE_MODES
from .models import ValueRange


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValueError(f"Expected float for '{field_name}'")
    if not math.isfinite(value):
        raise ValueError(f"Expected finite number for '{field_name}'")
    return float(value)


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class ChartConfig:
    width_px: int
    height_px: int
    margin_px: tuple[int, int, int, int]
    dpi: int
    background: str
    format: str
    output_name: str

    @property
    def plot_left(self) -> int:
        return self.margin_px[3]

    @property
    def plot_top(self) -> int:
        return self.margin_px[0]

    @property
    def plot_width(self) -> int:
        return self.width_px - self.margin_px[1] - self.margin_px[3]

    @property
    def plot_height(self) -> int:
        return self.height_px - self.margin_px[0] - self.margin_px[2]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ChartConfig:
        margin_raw = raw.get("margin_px", [10, 10, 10, 10])
        if not isinstance(margin_raw, list) or len(margin_raw) != 4:
            raise ValueError("Expected [top, right, bottom, left] list for 'chart.margin_px'")
        margin = tuple(_int(item, f"chart.margin_px[{idx}]") for idx, item in enumerate(margin_raw))
        fmt = _str(raw.get("format", "png"), "chart.format").casefold()
        if fmt not in {"png", "svg"}:
            raise ValueError("chart.format must be one of: png, svg")

        cfg = cls(
            width_px=_int(raw.get("width_px"), "chart.width_px"),
            height_px=_int(raw.get("height_px"), "chart.height_px"),
            margin_px=cast(tuple[int, int, int, int], margin),
            dpi=_int(raw.get("dpi", 100), "chart.dpi"),
            background=_str(raw.get("background", "white"), "chart.background"),
            format=fmt,
            output_name=_str(raw.get("output_name", "map"), "chart.output_name"),
        )
        if cfg.dpi <= 0:
            raise ValueError("chart.dpi must be > 0")
        if cfg.plot_width <= 0 or cfg.plot_height <= 0:
            raise ValueError("chart margins leave no plot area")
        return cfg


@dataclass(frozen=True, slots=True)
class DataLabelsConfig:
    """Per-region text drawn at the shape center; `format` takes `{name}` and `{value}`."""

    enabled: bool = False
    format: str = "{value}"
    value_decimals: int = 0
    color: str = "black"
    font_size: float = 8.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> DataLabelsConfig:
        fmt = raw.get("format", "{value}")
        if not isinstance(fmt, str):
            raise ValueError("Expected string for 'series.data_labels.format'")
        try:
            fmt.format(name="", value="")
        except (KeyError, IndexError, ValueError) as exc:
            raise ValueError(f"Invalid 'series.data_labels.format': {exc}") from exc
        value_decimals = _int(raw.get("value_decimals", 0), "series.data_labels.value_decimals")
        if value_decimals < 0:
            raise ValueError("series.data_labels.value_decimals must be >= 0")
        font_size = _float(raw.get("font_size", 8.0), "series.data_labels.font_size")
        if font_size <= 0:
            raise ValueError("series.data_labels.font_size must be > 0")
        return cls(
            enabled=_bool(raw.get("enabled", False), "series.data_labels.enabled"),
            format=fmt,
            value_decimals=value_decimals,
            color=_str(raw.get("color", "black"), "series.data_labels.color"),
            font_size=font_size,
        )


@dataclass(frozen=True, slots=True)
class SeriesConfig:
    value_ranges: tuple[ValueRange, ...] = ()
    color: str = "#4572A7"
    null_color: str = "#F8F8F8"
    border_color: str = "silver"
    border_width: float = 1.0
    min_opacity: float = 0.2
    on_degenerate: str = DEGENERATE_ERROR
    data_labels: DataLabelsConfig = DataLabelsConfig()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SeriesConfig:
        ranges_raw = raw.get("value_ranges", [])
        if ranges_raw is None:
            ranges_raw = []
        if not isinstance(ranges_raw, list):
            raise ValueError("Expected list for 'series.value_ranges'")
        value_ranges = tuple(
            ValueRange.from_mapping(
                _mapping(item, f"series.value_ranges[{idx}]"),
                f"series.value_ranges[{idx}]",
            )
            for idx, item in enumerate(ranges_raw)
        )

        min_opacity = _float(raw.get("min_opacity", 0.2), "series.min_opacity")
        if not 0.0 <= min_opacity <= 1.0:
            raise ValueError("series.min_opacity must be between 0 and 1")
        border_width = _float(raw.get("border_width", 1.0), "series.border_width")
        if border_width < 0:
            raise ValueError("series.border_width must be >= 0")
        on_degenerate = _str(
            raw.get("on_degenerate", DEGENERATE_ERROR), "series.on_degenerate"
        ).casefold()
        if on_degenerate not in DEGENERATE_MODES:
            raise ValueError(
                "series.on_degenerate must be one of: " + ", ".join(sorted(DEGENERATE_MODES))
            )

        return cls(
            value_ranges=value_ranges,
            color=_str(raw.get("color", "#4572A7"), "series.color"),
            null_color=_str(raw.get("null_color", "#F8F8F8"), "series.null_color"),
            border_color=_str(raw.get("border_color", "silver"), "series.border_color"),
            border_width=border_width,
            min_opacity=min_opacity,
            on_degenerate=on_degenerate,
            data_labels=DataLabelsConfig.from_mapping(
                _mapping(raw.get("data_labels", {}), "series.data_labels")
            ),
        )


@dataclass(frozen=True, slots=True)
class LegendConfig:
    enabled: bool = True
    value_decimals: int = 2
    decimal_point: str = "."
    thousands_sep: str = ","
    location: str = "lower left"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LegendConfig:
        value_decimals = _int(raw.get("value_decimals", 2), "legend.value_decimals")
        if value_decimals < 0:
            raise ValueError("legend.value_decimals must be >= 0")
        # Separators may legitimately be a single space, so no strip/empty check.
        decimal_point = raw.get("decimal_point", ".")
        thousands_sep = raw.get("thousands_sep", ",")
        if not isinstance(decimal_point, str) or not decimal_point:
            raise ValueError("Expected non-empty string for 'legend.decimal_point'")
        if not isinstance(thousands_sep, str):
            raise ValueError("Expected string for 'legend.thousands_sep'")
        return cls(
            enabled=_bool(raw.get("enabled", True), "legend.enabled"),
            value_decimals=value_decimals,
            decimal_point=decimal_point,
            thousands_sep=thousands_sep,
            location=_str(raw.get("location", "lower left"), "legend.location"),
        )


@dataclass(frozen=True, slots=True)
class PathsConfig:
    data: Path
    output_dir: Path
    logs_dir: Path

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.output_dir, self.logs_dir)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            data=_path_from_cfg(raw.get("data"), "paths.data", root_dir),
            output_dir=_path_from_cfg(raw.get("output_dir"), "paths.output_dir", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir", "build/logs"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class BuildConfig:
    write_manifest: bool = True

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> BuildConfig:
        return cls(write_manifest=_bool(raw.get("write_manifest", True), "build.write_manifest"))


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    chart: ChartConfig
    series: SeriesConfig
    legend: LegendConfig
    paths: PathsConfig
    build: BuildConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        return cls(
            source_path=source_path.resolve(),
            chart=ChartConfig.from_mapping(_mapping(raw.get("chart"), "chart")),
            series=SeriesConfig.from_mapping(_mapping(raw.get("series", {}), "series")),
            legend=LegendConfig.from_mapping(_mapping(raw.get("legend", {}), "legend")),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            build=BuildConfig.from_mapping(_mapping(raw.get("build", {}), "build")),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
